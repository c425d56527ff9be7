"""
Known stall signatures, in match priority order.

The first signature matching any captured line wins, so specific prompts
come before generic phrases such as "Would you like to".
"""

from typing import Tuple

from ..core.models import StallSignature

# Affirmative, blank acknowledgement, negative
DEFAULT_FALLBACK_INPUTS: Tuple[str, ...] = ("y", "", "n")

# Prompts that only want a keypress must never receive a "n" or "q"
ACKNOWLEDGE_ONLY: Tuple[str, ...] = ("", " ")

YES_NO: Tuple[str, ...] = ("y", "yes", "")

DEFAULT_SIGNATURES: Tuple[StallSignature, ...] = (
    StallSignature("Do you want to proceed?", "approval-prompt"),
    StallSignature("Approval required", "approval-required"),
    StallSignature('Type "y" to confirm', "type-y-confirm", fallback_inputs=YES_NO),
    StallSignature("Continue? (y/n)", "continue-yes-no", fallback_inputs=YES_NO),
    StallSignature("Press any key to continue", "press-any-key", fallback_inputs=ACKNOWLEDGE_ONLY),
    StallSignature("Enter to continue", "enter-to-continue", fallback_inputs=ACKNOWLEDGE_ONLY),
    StallSignature("Waiting for user input", "waiting-for-input"),
    StallSignature("Please confirm", "please-confirm"),
    StallSignature("Proceed with", "proceed-with"),
    StallSignature("Would you like to", "would-you-like-to"),
)


def fallback_inputs_for(signature, default: Tuple[str, ...]) -> Tuple[str, ...]:
    """Inputs to try for a session stalled on signature."""
    if signature is not None and signature.fallback_inputs:
        return signature.fallback_inputs
    return default

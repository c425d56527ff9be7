"""Stall signatures, classification, recovery, escalation and reporting."""

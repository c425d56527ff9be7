"""tmux session access: pane capture and keystroke injection."""

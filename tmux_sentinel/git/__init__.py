"""Version-control inspection of tracked projects."""

"""Console rendering for the command line entry point."""

"""Core data model, error taxonomy and run driver."""

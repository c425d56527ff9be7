"""Operator notification channels."""

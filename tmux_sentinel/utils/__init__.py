"""Subprocess, file and configuration helpers."""

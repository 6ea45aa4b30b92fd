"""Command-line interface for treasury."""

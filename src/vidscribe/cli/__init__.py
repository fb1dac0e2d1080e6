"""Command-line interface for vidscribe."""

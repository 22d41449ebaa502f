"""Command-line interface for blphttp."""

"""Command-line interface for taskflow."""

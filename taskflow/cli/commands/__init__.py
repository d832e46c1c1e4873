"""CLI commands for taskflow."""

"""Command-line interface for reanalyst."""

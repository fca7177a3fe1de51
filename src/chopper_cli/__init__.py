"""Command-line interface for chopper-grep."""

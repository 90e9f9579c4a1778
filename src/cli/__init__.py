"""Command-line interface and simulation runner."""

"""CLI commands for stackctl."""

"""Click commands for the lilyenv CLI."""

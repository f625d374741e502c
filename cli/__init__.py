"""Command-line interface for drugcrawl."""

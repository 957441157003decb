"""Command-line interface for svgloop."""

"""Command line interface for msyn."""

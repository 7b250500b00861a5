"""Command line interface for xfetch."""

"""Command line entry point: ``flowmcp``."""

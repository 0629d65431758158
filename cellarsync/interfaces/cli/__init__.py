"""Command-line interface for cellarsync."""

from .__main__ import cli, main

__all__ = ["cli", "main"]

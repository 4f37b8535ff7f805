"""Typer CLI over the workspace core."""

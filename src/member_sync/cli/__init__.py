"""
CLI package for member_sync.

Provides the Typer application entrypoint and shared CLI utilities.
"""

from member_sync.cli.app import app, main

__all__ = [
    "app",
    "main",
]

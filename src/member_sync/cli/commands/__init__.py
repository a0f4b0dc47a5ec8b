"""
CLI command modules for member_sync.

Each command module defines Typer-compatible command functions.
"""

from member_sync.cli.commands.family import family_command
from member_sync.cli.commands.identity import duplicates_command, member_id_command
from member_sync.cli.commands.notifications import notifications_command

__all__ = [
    "duplicates_command",
    "family_command",
    "member_id_command",
    "notifications_command",
]

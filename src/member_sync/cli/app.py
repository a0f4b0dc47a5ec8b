from __future__ import annotations

import typer

from member_sync.cli.commands import (
    duplicates_command,
    family_command,
    member_id_command,
    notifications_command,
)

app = typer.Typer(
    name="member-sync",
    help="Member identity, family linkage and notification tools",
    add_completion=False,
)

app.command("member-id")(member_id_command)
app.command("duplicates")(duplicates_command)
app.command("family")(family_command)
app.command("notifications")(notifications_command)


def main():
    app()


if __name__ == "__main__":
    main()

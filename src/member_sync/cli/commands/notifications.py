from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from member_sync.cli.utils import load_members, load_messages, parse_today, write_json
from member_sync.events.scheduler import compute_notifications
from member_sync.logging import log_info

console = Console()


def notifications_command(
    members: Path = typer.Argument(..., exists=True, readable=True, help="Members JSON file"),
    messages: Optional[Path] = typer.Option(
        None,
        "--messages",
        "-m",
        exists=True,
        readable=True,
        help="Custom scheduled messages JSON file",
    ),
    today: Optional[str] = typer.Option(
        None,
        "--today",
        help="Reference date (YYYY-MM-DD); defaults to the current date",
    ),
    company: Optional[str] = typer.Option(
        None,
        "--company",
        "-c",
        help="Only members of this company id",
    ),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table"),
    out: Optional[Path] = typer.Option(
        None,
        "--out",
        "-o",
        help="Write JSON output to file instead of stdout",
    ),
    pretty: bool = typer.Option(False, "--pretty", help="Pretty-print JSON"),
):
    """
    List upcoming birthdays, anniversaries, occasions, renewals and today's messages.
    """
    population = load_members(members)
    if company is not None:
        population = population.for_tenant(company)

    reference = parse_today(today)
    items = compute_notifications(population, load_messages(messages), reference)
    log_info("notifications: %d item(s) for %d member(s) as of %s", len(items), len(population), reference)

    if as_json or out:
        write_json([n.to_dict() for n in items], out=out, pretty=pretty)
        return

    table = Table(title=f"Notifications ({len(items)})")
    table.add_column("Date", style="bold")
    table.add_column("Type")
    table.add_column("Member")
    table.add_column("Message")

    for n in items:
        table.add_row(n.date.date().isoformat(), n.type.value, n.member.name, n.message)

    console.print(table)

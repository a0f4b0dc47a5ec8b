from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from member_sync.cli.utils import load_member, load_members
from member_sync.identity.member_id import generate_member_id
from member_sync.registry.duplicates import find_duplicates

console = Console()


def member_id_command(
    name: str = typer.Argument(..., help="Member name"),
    address: str = typer.Argument("", help="Postal address"),
    mobile: str = typer.Argument("", help="Mobile number"),
):
    """
    Print the member id derived from name, address and mobile.
    """
    typer.echo(generate_member_id(name, address, mobile))


def duplicates_command(
    members: Path = typer.Argument(..., exists=True, readable=True, help="Members JSON file"),
    draft: Path = typer.Argument(..., exists=True, readable=True, help="Draft member JSON file"),
):
    """
    List existing members whose id collides with a draft's.
    """
    candidate = load_member(draft)
    if not candidate.member_id:
        candidate.member_id = generate_member_id(candidate.name, candidate.address, candidate.mobile)

    matches = find_duplicates(candidate, load_members(members))
    if not matches:
        console.print(f"No duplicates for {candidate.member_id}")
        return

    table = Table(title=f"Members sharing id {candidate.member_id}")
    table.add_column("Storage id", style="bold")
    table.add_column("Name")
    table.add_column("DOB")
    table.add_column("Mobile")
    for m in matches:
        table.add_row(m.id or "", m.name, m.dob or "", m.mobile or "")
    console.print(table)
    raise typer.Exit(code=2)

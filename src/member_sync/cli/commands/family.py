from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.tree import Tree

from member_sync.cli.utils import load_members
from member_sync.logging import log_warning
from member_sync.registry.link_entities import FamilyNode, build_family_tree

console = Console()


def _label(node: FamilyNode) -> str:
    label = f"{node.name} [dim]({node.member_id or 'covered'})[/dim]"
    if node.is_spoc:
        label = f"[bold]{label}[/bold] SPOC"
    if node.relieved:
        label += " [yellow]relieved[/yellow]"
    if node.covered_only:
        label += " [cyan]no record[/cyan]"
    return label


def family_command(
    members: Path = typer.Argument(..., exists=True, readable=True, help="Members JSON file"),
    member_id: str = typer.Argument(..., help="Business member id of any family member"),
    company: Optional[str] = typer.Option(
        None,
        "--company",
        "-c",
        help="Only members of this company id",
    ),
):
    """
    Show the family a member belongs to.
    """
    population = load_members(members)
    if company is not None:
        population = population.for_tenant(company)
    matches = population.by_member_id(member_id)
    if not matches:
        log_warning("family: no member with id %s in %s", member_id, members)
        console.print(f"[red]No member with id {member_id}[/red]")
        raise typer.Exit(code=1)

    root = build_family_tree(matches[0], population)
    if root is None:
        console.print(f"{matches[0].name} is not part of a family group.")
        return

    tree = Tree(_label(root))
    for child in root.children:
        tree.add(_label(child))
    console.print(tree)

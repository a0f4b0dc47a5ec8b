from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from member_sync.registry.entities import Member, MemberPopulation
from member_sync.registry.family_graph import matches_covered_member


@dataclass(slots=True)
class FamilyNode:
    id: Optional[str]
    name: str
    member_id: Optional[str]
    is_spoc: bool = False
    relieved: bool = False
    # Listed on a Family policy but without a standalone record
    covered_only: bool = False
    children: List["FamilyNode"] = field(default_factory=list)


def family_root(member: Member, population: MemberPopulation) -> Optional[Member]:
    """The SPOC whose family ``member`` belongs to (itself when it is one)."""
    if member.is_spoc:
        return member
    if member.spoc_id:
        return population.for_tenant(member.company_id).find_spoc(member.spoc_id)
    return None


def build_family_tree(member: Member, population: MemberPopulation) -> Optional[FamilyNode]:
    """
    One-level family tree rooted at the SPOC.

    Children are the dependent records pointing at the SPOC (relieved ones
    included and flagged) followed by covered members that have no record.
    Pure: the population is not modified.
    """
    spoc = family_root(member, population)
    if spoc is None:
        return None

    scoped = population.for_tenant(spoc.company_id)
    dependents = [d for d in scoped.dependents_of(spoc.member_id) if d.id != spoc.id]

    root = FamilyNode(
        id=spoc.id,
        name=spoc.name,
        member_id=spoc.member_id,
        is_spoc=spoc.is_spoc,
    )

    for dep in dependents:
        root.children.append(
            FamilyNode(
                id=dep.id,
                name=dep.name,
                member_id=dep.member_id,
                is_spoc=dep.is_spoc,
                relieved=dep.is_relieved,
            )
        )

    for policy in spoc.family_policies():
        for entry in policy.covered():
            if not entry.name:
                continue
            if entry.member_id == spoc.member_id:
                continue
            if any(matches_covered_member(entry, d.member_id, d.name, d.dob) for d in dependents):
                continue
            if any(c.covered_only and c.id == entry.id for c in root.children):
                continue
            root.children.append(
                FamilyNode(
                    id=entry.id,
                    name=entry.name,
                    member_id=entry.member_id,
                    covered_only=True,
                )
            )

    return root

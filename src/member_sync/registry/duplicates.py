"""
Duplicate detection for new member drafts.

Member ids are derived from name/address/mobile fragments and can collide.
Before a new record is created, every existing record in the same tenant
carrying the same id is surfaced to the caller, who picks one of:

- create anyway (a second, independent record sharing the id)
- merge the draft into one of the existing records
- abandon the draft

Nothing here resolves a collision on its own.
"""

from __future__ import annotations

import copy
from dataclasses import fields
from typing import Iterable, List

from member_sync.logging import get_logger
from member_sync.registry.entities import Member, MemberPopulation
from member_sync.registry.utils import is_empty

log = get_logger(__name__)

# Never taken from the draft during a merge.
_MERGE_PROTECTED = {"id", "raw"}


def find_duplicates(draft: Member, existing: Iterable[Member]) -> List[Member]:
    """
    Existing members in the draft's tenant whose ``member_id`` equals the draft's.

    Exact match only. A draft without a member id has no duplicates.
    """
    if not draft.member_id:
        return []

    population = existing if isinstance(existing, MemberPopulation) else MemberPopulation.of(existing)
    matches = [
        m
        for m in population.for_tenant(draft.company_id).by_member_id(draft.member_id)
        if draft.is_new or m.id != draft.id
    ]

    if matches:
        log.info(
            "Member id %s collides with %d existing record(s) in company %s",
            draft.member_id,
            len(matches),
            draft.company_id,
        )
    return matches


def merge_into(draft: Member, existing: Member) -> Member:
    """
    Shallow-merge ``draft`` over ``existing``.

    Draft values win wherever the draft carries one; empty draft values
    (None, "", empty list) leave the existing value in place. The existing
    storage id is kept so the result persists as an update. Unmodeled
    ``raw`` keys merge the same way.
    """
    merged = copy.deepcopy(existing)

    for f in fields(Member):
        if f.name in _MERGE_PROTECTED:
            continue
        value = getattr(draft, f.name)
        if is_empty(value):
            continue
        setattr(merged, f.name, copy.deepcopy(value))

    for key, value in draft.raw.items():
        if not is_empty(value):
            merged.raw[key] = copy.deepcopy(value)

    log.debug("Merged draft %s into existing record %s", draft.member_id, existing.id)
    return merged


__all__ = ["find_duplicates", "merge_into"]

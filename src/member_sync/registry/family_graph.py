"""
Family graph reconciliation.

A SPOC (family head) owns Family policies whose ``covered_members`` list the
people insured under them. Each covered member may be linked, through its
``member_id``, to a standalone dependent record whose ``spoc_id`` points back
at the SPOC. Both sides can be edited independently; ``reconcile`` keeps them
consistent for a single save and ``relieve`` detaches a dependent.

Nothing here touches the store. Both operations work on deep copies of the
snapshot they are given and return a plan for the orchestrator to persist.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from member_sync.config import get_config
from member_sync.core.exceptions import (
    LinkResolutionError,
    NotADependentError,
    SpocNotFoundError,
)
from member_sync.identity.member_id import generate_member_id
from member_sync.logging import get_logger
from member_sync.registry.entities import CoveredMember, Member, MemberPopulation
from member_sync.registry.utils import norm_name

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

@dataclass
class PendingLink:
    """Covered-member entry waiting for the id of a dependent not yet created."""
    policy_index: int
    entry_index: int
    dependent_index: int


@dataclass
class ReconcilePlan:
    member_to_persist: Member
    dependents_to_create: List[Member] = field(default_factory=list)
    dependents_to_update: List[Member] = field(default_factory=list)
    pending_links: List[PendingLink] = field(default_factory=list)

    def link_created(self, created: List[Member]) -> Member:
        """
        Write the business ids of freshly created dependents onto the
        covered-member entries they came from. Entries that already carry a
        link are left alone.
        """
        member = self.member_to_persist
        for link in self.pending_links:
            if link.dependent_index >= len(created):
                continue
            entry = member.policies[link.policy_index].covered()[link.entry_index]
            if not entry.member_id:
                entry.member_id = created[link.dependent_index].member_id
        return member


@dataclass
class ReliefPlan:
    dependent: Member
    spoc: Member


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

def matches_covered_member(
    entry: CoveredMember,
    member_id: Optional[str],
    name: Optional[str],
    dob: Optional[str],
) -> bool:
    """
    Does ``entry`` refer to the member identified by (member_id, name, dob)?

    A linked entry matches on ``member_id`` only. Name (trimmed,
    case-insensitive) plus exact dob is a fallback for legacy entries that
    predate the link.
    """
    if entry.member_id:
        return bool(member_id) and entry.member_id == member_id
    return bool(norm_name(name)) and norm_name(entry.name) == norm_name(name) and entry.dob == dob


def family_label(name: str) -> str:
    return f"{name}'s Family"


def _staged(updates: Dict[str, Member], member: Member) -> Member:
    """Working copy of ``member`` queued for update, created on first use."""
    key = member.id or member.member_id
    if key not in updates:
        updates[key] = copy.deepcopy(member)
    return updates[key]


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class FamilyGraphManager:
    """
    Keeps SPOCs, their Family policies and their dependents consistent.
    """

    def __init__(self, config: Any = None):
        cfg = config or get_config()
        self.dependent_defaults: Dict[str, Any] = dict(getattr(cfg, "dependent_defaults", {}) or {})

    # -- reconcile ----------------------------------------------------------

    def reconcile(
        self,
        old_member: Optional[Member],
        draft: Member,
        population: MemberPopulation,
        *,
        now: Optional[datetime] = None,
    ) -> ReconcilePlan:
        member = copy.deepcopy(draft)
        scoped = population.for_tenant(member.company_id).without(member.id)
        updates: Dict[str, Member] = {}

        self._recompute_spoc(old_member, member, scoped, updates)
        creates, links = self._provision_covered_members(old_member, member, scoped, updates, now)
        self._propagate_to_spoc(old_member, member, scoped, updates)

        plan = ReconcilePlan(
            member_to_persist=member,
            dependents_to_create=creates,
            dependents_to_update=list(updates.values()),
            pending_links=links,
        )
        log.debug(
            "Reconciled %s: spoc=%s creates=%d updates=%d",
            member.member_id,
            member.is_spoc,
            len(plan.dependents_to_create),
            len(plan.dependents_to_update),
        )
        return plan

    def _recompute_spoc(
        self,
        old: Optional[Member],
        member: Member,
        scoped: MemberPopulation,
        updates: Dict[str, Member],
    ) -> None:
        was_spoc = bool(old and old.is_spoc)
        renamed = old is not None and old.name != member.name

        member.is_spoc = any(p.is_family for p in member.policies)

        if not member.is_spoc:
            if not member.spoc_id:
                member.family_name = None
            return

        if not was_spoc or renamed or not member.family_name:
            member.family_name = family_label(member.name)

        if was_spoc and renamed:
            for dep in scoped.dependents_of(old.member_id):
                staged = _staged(updates, dep)
                staged.family_name = member.family_name
                staged.spoc_id = member.member_id
            log.info("Family of %s relabelled to %r", member.member_id, member.family_name)

    def _provision_covered_members(
        self,
        old: Optional[Member],
        member: Member,
        scoped: MemberPopulation,
        updates: Dict[str, Member],
        now: Optional[datetime],
    ) -> Tuple[List[Member], List[PendingLink]]:
        creates: List[Member] = []
        links: List[PendingLink] = []
        # Same person listed on several Family policies gets one record.
        planned: Dict[Tuple[str, Optional[str]], int] = {}
        # Links already held by the saved record, keyed by entry id.
        held: Dict[str, str] = {
            e.id: e.member_id
            for p in (old.family_policies() if old else [])
            for e in p.covered()
            if e.id and e.member_id
        }

        for p_idx, policy in enumerate(member.policies):
            if not policy.is_family:
                continue
            policy.family_head_member_id = member.member_id

            for e_idx, entry in enumerate(policy.covered()):
                if entry.id in held and entry.member_id != held[entry.id]:
                    if entry.member_id:
                        log.warning(
                            "Covered member %s keeps link %s; %s ignored",
                            entry.id,
                            held[entry.id],
                            entry.member_id,
                        )
                    entry.member_id = held[entry.id]
                if entry.member_id:
                    continue
                if not norm_name(entry.name):
                    log.debug("Skipping unnamed covered member %s", entry.id)
                    continue

                if matches_covered_member(entry, None, member.name, member.dob):
                    entry.member_id = member.member_id
                    continue

                matches = scoped.match_name_dob(entry.name, entry.dob)
                if len(matches) > 1:
                    raise LinkResolutionError(entry, matches)

                if matches:
                    self._link_existing(member, entry, matches[0], updates)
                    continue

                key = (norm_name(entry.name), entry.dob)
                if key not in planned:
                    planned[key] = len(creates)
                    creates.append(self.synthesize_dependent(member, entry, now=now))
                links.append(PendingLink(p_idx, e_idx, planned[key]))

        return creates, links

    def _link_existing(
        self,
        member: Member,
        entry: CoveredMember,
        existing: Member,
        updates: Dict[str, Member],
    ) -> None:
        if not existing.spoc_id:
            staged = _staged(updates, existing)
            staged.spoc_id = member.member_id
            staged.family_name = member.family_name
            entry.member_id = existing.member_id or None
        elif existing.spoc_id == member.member_id:
            entry.member_id = existing.member_id or None
        else:
            log.warning(
                "Covered member %r matches %s, already a dependent of %s; left unlinked",
                entry.name,
                existing.member_id,
                existing.spoc_id,
            )

    def synthesize_dependent(
        self,
        spoc: Member,
        entry: CoveredMember,
        *,
        now: Optional[datetime] = None,
    ) -> Member:
        """Build a full dependent record for a covered member with no record of its own."""
        address = entry.address or spoc.address
        mobile = entry.mobile or spoc.mobile

        raw = copy.deepcopy(self.dependent_defaults)
        if now is not None:
            raw["createdAt"] = now.isoformat()

        return Member(
            member_id=generate_member_id(entry.name, address, mobile),
            name=entry.name,
            dob=entry.dob,
            gender=entry.gender,
            mobile=mobile,
            email=entry.email or spoc.email,
            address=address,
            state=spoc.state,
            city=spoc.city,
            is_spoc=False,
            family_name=spoc.family_name,
            spoc_id=spoc.member_id,
            policies=[],
            assigned_to=list(spoc.assigned_to),
            company_id=spoc.company_id,
            raw=raw,
        )

    def _propagate_to_spoc(
        self,
        old: Optional[Member],
        member: Member,
        scoped: MemberPopulation,
        updates: Dict[str, Member],
    ) -> None:
        spoc_id = member.spoc_id or (old.spoc_id if old else None)
        if not spoc_id or member.is_relieved:
            return

        spoc = scoped.find_spoc(spoc_id)
        if spoc is None or not spoc.is_spoc:
            log.warning("SPOC %s for dependent %s not found; covered entry not refreshed", spoc_id, member.member_id)
            return

        before = old or member
        working = copy.deepcopy(updates.get(spoc.id or spoc.member_id, spoc))
        changed = False

        for policy in working.family_policies():
            for entry in policy.covered():
                if not matches_covered_member(entry, before.member_id, before.name, before.dob):
                    continue
                entry.name = member.name
                entry.dob = member.dob
                entry.gender = member.gender
                entry.email = member.email
                entry.mobile = member.mobile
                if not entry.member_id and member.member_id:
                    entry.member_id = member.member_id
                changed = True

        if changed:
            updates[spoc.id or spoc.member_id] = working
            log.info("Refreshed covered entry for %s on SPOC %s", member.member_id, spoc.member_id)

    # -- relieve ------------------------------------------------------------

    def relieve(
        self,
        storage_id: str,
        population: MemberPopulation,
        *,
        now: datetime,
    ) -> ReliefPlan:
        """
        Detach a dependent from its family.

        Its entries are removed from every Family policy of the SPOC, matched
        strictly by ``member_id``. The dependent keeps ``spoc_id`` so the
        family history stays navigable and gains ``relieved_timestamp``.
        """
        target = population.get(storage_id)
        if target is None or not target.spoc_id:
            raise NotADependentError(f"Member {storage_id!r} is not a dependent or could not be found")

        spoc = population.for_tenant(target.company_id).find_spoc(target.spoc_id)
        if spoc is None or not spoc.is_spoc:
            raise SpocNotFoundError(f"SPOC {target.spoc_id!r} for member {target.member_id!r} not found")

        dependent = copy.deepcopy(target)
        dependent.relieved_timestamp = now.isoformat()

        spoc = copy.deepcopy(spoc)
        for policy in spoc.family_policies():
            if policy.covered_members is None:
                continue
            policy.covered_members = [
                e for e in policy.covered_members
                if not (e.member_id and e.member_id == target.member_id)
            ]

        log.info("Relieved %s from family of %s", target.member_id, spoc.member_id)
        return ReliefPlan(dependent=dependent, spoc=spoc)


__all__ = [
    "FamilyGraphManager",
    "PendingLink",
    "ReconcilePlan",
    "ReliefPlan",
    "family_label",
    "matches_covered_member",
]

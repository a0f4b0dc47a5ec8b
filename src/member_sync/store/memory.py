from __future__ import annotations

import asyncio
import copy
import uuid
from typing import Dict, Iterable, List, Optional

from member_sync.logging import get_logger
from member_sync.registry.entities import Lead, Member, MemberPopulation

log = get_logger(__name__)


class InMemoryStore:
    """
    Dict-backed ``MemberStore``.

    Assigns storage ids on create and hands out deep copies so callers never
    share state with the store. ``latency`` adds an ``asyncio.sleep`` to every
    call.
    """

    def __init__(
        self,
        members: Optional[Iterable[Member]] = None,
        leads: Optional[Iterable[Lead]] = None,
        *,
        latency: float = 0.0,
    ):
        self.members: Dict[str, Member] = {}
        self.leads: Dict[str, Lead] = {}
        self.latency = latency
        # Ordered record of calls, e.g. ("create_member", "RA12_____")
        self.calls: List[tuple] = []

        for m in members or []:
            m = copy.deepcopy(m)
            m.id = m.id or self._new_id()
            self.members[m.id] = m
        for lead in leads or []:
            lead = copy.deepcopy(lead)
            lead.id = lead.id or self._new_id("lead")
            self.leads[lead.id] = lead

    @staticmethod
    def _new_id(prefix: str = "") -> str:
        token = uuid.uuid4().hex[:12]
        return f"{prefix}-{token}" if prefix else token

    async def _pause(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    def snapshot(self) -> MemberPopulation:
        return MemberPopulation.of(copy.deepcopy(m) for m in self.members.values())

    # -- members ------------------------------------------------------------

    async def create_member(self, payload: Member) -> Member:
        await self._pause()
        member = copy.deepcopy(payload)
        member.id = self._new_id()
        self.members[member.id] = member
        self.calls.append(("create_member", member.member_id))
        log.debug("Created member %s (%s)", member.id, member.member_id)
        return copy.deepcopy(member)

    async def update_member(self, member: Member) -> Member:
        await self._pause()
        if member.id not in self.members:
            raise KeyError(f"Member not found: {member.id}")
        stored = copy.deepcopy(member)
        self.members[member.id] = stored
        self.calls.append(("update_member", member.member_id))
        return copy.deepcopy(stored)

    async def delete_member(self, storage_id: str) -> None:
        await self._pause()
        if self.members.pop(storage_id, None) is None:
            raise KeyError(f"Member not found: {storage_id}")
        self.calls.append(("delete_member", storage_id))

    # -- leads --------------------------------------------------------------

    async def create_lead(self, payload: Lead) -> Lead:
        await self._pause()
        lead = copy.deepcopy(payload)
        lead.id = self._new_id("lead")
        self.leads[lead.id] = lead
        self.calls.append(("create_lead", lead.id))
        return copy.deepcopy(lead)

    async def update_lead(self, lead: Lead) -> Lead:
        await self._pause()
        if lead.id not in self.leads:
            raise KeyError(f"Lead not found: {lead.id}")
        self.leads[lead.id] = copy.deepcopy(lead)
        self.calls.append(("update_lead", lead.id))
        return copy.deepcopy(lead)

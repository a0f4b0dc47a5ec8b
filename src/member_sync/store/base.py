from __future__ import annotations

from typing import Protocol

from member_sync.registry.entities import Lead, Member


class MemberStore(Protocol):
    """
    Async persistence collaborator.

    Returned records are authoritative: callers replace their working copy
    with whatever comes back (server-assigned ids included).
    """

    async def create_member(self, payload: Member) -> Member: ...

    async def update_member(self, member: Member) -> Member: ...

    async def delete_member(self, storage_id: str) -> None: ...

    async def create_lead(self, payload: Lead) -> Lead: ...

    async def update_lead(self, lead: Lead) -> Lead: ...

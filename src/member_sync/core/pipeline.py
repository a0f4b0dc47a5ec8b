from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Iterable, List, Optional, Tuple, TypeVar, Union

from member_sync.core.context import SyncContext
from member_sync.core.exceptions import (
    DuplicateDetected,
    PersistenceError,
    SyncError,
    ValidationError,
)
from member_sync.dates.normalizer import add_years, parse_date
from member_sync.identity.member_id import generate_member_id
from member_sync.registry.duplicates import find_duplicates, merge_into
from member_sync.registry.entities import Lead, Member, MemberPopulation
from member_sync.registry.family_graph import FamilyGraphManager, ReconcilePlan
from member_sync.store.base import MemberStore

T = TypeVar("T")

REQUIRED_NEW_MEMBER_FIELDS = ("name", "mobile", "dob")
DEFAULT_STORE_TIMEOUT = 10.0


class SyncState(str, Enum):
    VALIDATING = "Validating"
    DUPLICATE_CHECK = "DuplicateCheck"
    RECONCILING = "Reconciling"
    PERSISTING = "Persisting"
    DONE = "Done"
    FAILED = "Failed"


@dataclass
class SyncDone:
    """Everything the store returned, so callers can refresh without re-fetching."""
    member: Optional[Member]
    created_dependents: List[Member] = field(default_factory=list)
    updated_members: List[Member] = field(default_factory=list)
    lead: Optional[Lead] = None
    trace: List[SyncState] = field(default_factory=list)

    ok = True
    state = SyncState.DONE

    def persisted(self) -> List[Member]:
        head = [self.member] if self.member is not None else []
        return head + self.created_dependents + self.updated_members


@dataclass
class SyncFailed:
    error: SyncError
    failed_in: SyncState
    # Records the store already accepted before the failure
    committed: List[Member] = field(default_factory=list)
    trace: List[SyncState] = field(default_factory=list)

    ok = False
    state = SyncState.FAILED

    @property
    def duplicates(self) -> List[Member]:
        if isinstance(self.error, DuplicateDetected):
            return self.error.candidates
        return []


SyncResult = Union[SyncDone, SyncFailed]


class SyncOrchestrator:
    """
    Runs a member save as one logical transaction:
    validate, check duplicates, reconcile the family graph, persist.

    Typed failures are returned as ``SyncFailed``; nothing raises out of the
    public coroutines. Store errors are never retried here.
    """

    def __init__(
        self,
        context: SyncContext,
        store: MemberStore,
        *,
        family: Optional[FamilyGraphManager] = None,
    ):
        self.ctx = context
        self.log = context.logger
        self.store = store
        self.family = family or FamilyGraphManager(context.config)
        sync_cfg = getattr(context.config, "sync", {}) or {}
        self.timeout = float(sync_cfg.get("store_timeout_seconds", DEFAULT_STORE_TIMEOUT))
        self.won_status = str(sync_cfg.get("won_lead_status", "Won"))

    # ------------------------------------------------------------------
    # save
    # ------------------------------------------------------------------

    async def save(
        self,
        draft: Member,
        population: MemberPopulation,
        *,
        merge_target_id: Optional[str] = None,
        force_create: bool = False,
        lead: Optional[Lead] = None,
    ) -> SyncResult:
        """
        Persist ``draft`` against the ``population`` snapshot.

        ``merge_target_id`` merges a new draft into that existing record;
        ``force_create`` creates it despite colliding ids; ``lead`` is marked
        won once the member is saved.
        """
        trace: List[SyncState] = [SyncState.VALIDATING]

        try:
            member = self._prepare(draft)
            old: Optional[Member] = None

            if member.is_new:
                self._validate(member)

            if merge_target_id:
                target = population.for_tenant(member.company_id).get(merge_target_id)
                if target is None:
                    raise ValidationError(f"Merge target {merge_target_id!r} not found")
                member = merge_into(member, target)
                old = target
            elif member.is_new:
                if not force_create:
                    trace.append(SyncState.DUPLICATE_CHECK)
                    duplicates = find_duplicates(member, population)
                    if duplicates:
                        raise DuplicateDetected(member.member_id, duplicates)
            else:
                old = population.get(member.id)
                if old is None:
                    raise ValidationError(f"Original member {member.id!r} not found for update")

            trace.append(SyncState.RECONCILING)
            plan = self.family.reconcile(old, member, population, now=self.ctx.now())
        except SyncError as exc:
            return self._fail(exc, trace, [])

        trace.append(SyncState.PERSISTING)
        committed: List[Member] = []
        try:
            done = await self._persist(plan, committed)
        except PersistenceError as exc:
            return self._fail(exc, trace, committed)

        if lead is not None:
            done.lead = await self._convert_lead(lead)

        trace.append(SyncState.DONE)
        done.trace = trace

        verb = "created" if draft.is_new and not merge_target_id else "updated"
        self.log.info(
            "Member %s %s (%d dependents created, %d records updated)",
            done.member.member_id if done.member else "?",
            verb,
            len(done.created_dependents),
            len(done.updated_members),
        )
        self.ctx.toast(f"Customer {verb} successfully!", "success")
        return done

    async def save_all(
        self,
        drafts: Iterable[Member],
        population: MemberPopulation,
    ) -> Tuple[List[SyncResult], MemberPopulation]:
        """
        Save ``drafts`` one after another.

        Whatever the store accepted for one draft, including the committed
        prefix of a failed one, is folded into the working set before the
        next draft is checked. Returns the per-draft results and that set.
        """
        results: List[SyncResult] = []
        for draft in drafts:
            result = await self.save(draft, population)
            accepted = result.persisted() if result.ok else result.committed
            if accepted:
                population = population.apply(accepted)
            results.append(result)

        failed = sum(1 for r in results if not r.ok)
        if failed:
            self.log.warning("Batch save: %d of %d draft(s) failed", failed, len(results))
        return results, population

    def _prepare(self, draft: Member) -> Member:
        member = copy.deepcopy(draft)
        if not member.company_id:
            member.company_id = self.ctx.company_id
        if not member.member_id and member.is_new:
            member.member_id = generate_member_id(member.name, member.address, member.mobile)
        if self.ctx.user_id and member.is_new:
            member.raw.setdefault("createdBy", self.ctx.user_id)
        return member

    @staticmethod
    def _validate(member: Member) -> None:
        missing = [
            name for name in REQUIRED_NEW_MEMBER_FIELDS
            if not str(getattr(member, name) or "").strip()
        ]
        if missing:
            raise ValidationError.missing_fields(missing)

    async def _persist(self, plan: ReconcilePlan, committed: List[Member]) -> SyncDone:
        # Dependents first: the primary's covered-member entries reference them.
        created: List[Member] = []
        for dependent in plan.dependents_to_create:
            result = await self._call(
                self.store.create_member(dependent),
                committed,
                f"create dependent {dependent.member_id}",
            )
            created.append(result)
            committed.append(result)

        member = plan.link_created(created)

        if member.is_new:
            primary = await self._call(self.store.create_member(member), committed, f"create member {member.member_id}")
        else:
            primary = await self._call(self.store.update_member(member), committed, f"update member {member.member_id}")
        committed.append(primary)

        updated: List[Member] = []
        for other in plan.dependents_to_update:
            result = await self._call(
                self.store.update_member(other),
                committed,
                f"update member {other.member_id}",
            )
            updated.append(result)
            committed.append(result)

        return SyncDone(member=primary, created_dependents=created, updated_members=updated)

    async def _convert_lead(self, lead: Lead) -> Optional[Lead]:
        won = copy.deepcopy(lead)
        won.status = self.won_status
        try:
            updated = await self._call(self.store.update_lead(won), [], f"update lead {lead.id}")
        except PersistenceError as exc:
            self.ctx.toast(f"Customer saved but lead could not be updated: {exc}", "error")
            return None
        self.ctx.toast(f'Lead "{updated.name}" marked as {self.won_status}.', "success")
        return updated

    # ------------------------------------------------------------------
    # relieve / renew / delete
    # ------------------------------------------------------------------

    async def relieve(self, storage_id: str, population: MemberPopulation) -> SyncResult:
        """Detach a dependent from its family and persist both records."""
        trace: List[SyncState] = [SyncState.RECONCILING]
        try:
            plan = self.family.relieve(storage_id, population, now=self.ctx.now())
        except SyncError as exc:
            return self._fail(exc, trace, [])

        trace.append(SyncState.PERSISTING)
        committed: List[Member] = []
        try:
            dependent = await self._call(self.store.update_member(plan.dependent), committed, f"relieve {plan.dependent.member_id}")
            committed.append(dependent)
            spoc = await self._call(self.store.update_member(plan.spoc), committed, f"update SPOC {plan.spoc.member_id}")
            committed.append(spoc)
        except PersistenceError as exc:
            return self._fail(exc, trace, committed)

        trace.append(SyncState.DONE)
        self.ctx.toast(
            f"{dependent.name} has been relieved and can now manage their own family policies.",
            "success",
        )
        return SyncDone(member=dependent, updated_members=[spoc], trace=trace)

    async def renew_policy(self, member: Member, policy_id: str) -> SyncResult:
        """Push a policy's renewal date one year forward."""
        trace: List[SyncState] = [SyncState.VALIDATING]
        updated = copy.deepcopy(member)
        policy = next((p for p in updated.policies if p.id == policy_id), None)
        renewal = parse_date(policy.renewal_date) if policy is not None else None
        if policy is None or renewal is None:
            return self._fail(ValidationError(f"Policy {policy_id!r} not found or has no renewal date"), trace, [])

        policy.renewal_date = add_years(renewal, 1).isoformat()

        trace.append(SyncState.PERSISTING)
        try:
            saved = await self._call(self.store.update_member(updated), [], f"renew policy {policy_id}")
        except PersistenceError as exc:
            return self._fail(exc, trace, [])

        trace.append(SyncState.DONE)
        self.ctx.toast("Policy renewed successfully!", "success")
        return SyncDone(member=saved, trace=trace)

    async def delete(self, storage_id: str) -> SyncResult:
        trace: List[SyncState] = [SyncState.PERSISTING]
        try:
            await self._call(self.store.delete_member(storage_id), [], f"delete member {storage_id}")
        except PersistenceError as exc:
            return self._fail(exc, trace, [])
        trace.append(SyncState.DONE)
        self.ctx.toast("Member deleted successfully.", "success")
        return SyncDone(member=None, trace=trace)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    async def _call(self, awaitable: Awaitable[T], committed: List[Any], what: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise PersistenceError(f"Timed out after {self.timeout:g}s: {what}", committed) from exc
        except Exception as exc:
            self.log.exception("Store call failed: %s", what)
            raise PersistenceError(f"{what} failed: {exc}", committed) from exc

    def _fail(self, exc: SyncError, trace: List[SyncState], committed: List[Member]) -> SyncFailed:
        failed_in = trace[-1]
        trace.append(SyncState.FAILED)

        if isinstance(exc, DuplicateDetected):
            self.log.info("Save halted in %s: %s", failed_in.value, exc)
        else:
            self.log.warning("Save failed in %s: %s", failed_in.value, exc)
            self.ctx.toast(f"Error saving customer: {exc}", "error")

        return SyncFailed(error=exc, failed_in=failed_in, committed=list(committed), trace=trace)

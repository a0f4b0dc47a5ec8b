import asyncio

from builders import FIXED_NOW, covered, family_policy, individual_policy, member

from member_sync.core.exceptions import (
    DuplicateDetected,
    NotADependentError,
    PersistenceError,
    ValidationError,
)
from member_sync.core.pipeline import SyncOrchestrator, SyncState
from member_sync.registry.entities import Lead
from member_sync.store import InMemoryStore

ASHA_ID = "AS1243210"
RAVI_ID = "RA1243210"


class FailingStore(InMemoryStore):
    """Rejects creates and updates for the given business ids."""

    def __init__(self, *args, fail_on=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_on = set(fail_on)

    async def create_member(self, payload):
        if payload.member_id in self.fail_on:
            raise RuntimeError("store unavailable")
        return await super().create_member(payload)

    async def update_member(self, member):
        if member.member_id in self.fail_on:
            raise RuntimeError("store unavailable")
        return await super().update_member(member)


def _asha_draft():
    return member(
        "Asha Rao",
        policies=[family_policy(covered("Ravi Rao", dob="2005-03-03"))],
    )


def _saved_family():
    asha = member(
        "Asha Rao",
        id="s-asha",
        member_id=ASHA_ID,
        is_spoc=True,
        family_name="Asha Rao's Family",
        policies=[family_policy(covered("Ravi Rao", dob="2005-03-03", id="cm-ravi", member_id=RAVI_ID))],
    )
    ravi = member(
        "Ravi Rao",
        id="s-ravi",
        member_id=RAVI_ID,
        dob="2005-03-03",
        spoc_id=ASHA_ID,
        family_name="Asha Rao's Family",
    )
    return asha, ravi


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

def test_new_spoc_creates_dependent_before_primary(context, toasts):
    store = InMemoryStore()
    orch = SyncOrchestrator(context, store)

    result = asyncio.run(orch.save(_asha_draft(), store.snapshot()))

    assert result.ok
    assert result.trace == [
        SyncState.VALIDATING,
        SyncState.DUPLICATE_CHECK,
        SyncState.RECONCILING,
        SyncState.PERSISTING,
        SyncState.DONE,
    ]
    assert store.calls == [("create_member", RAVI_ID), ("create_member", ASHA_ID)]

    asha = result.member
    assert asha.id in store.members
    assert asha.is_spoc
    assert asha.raw["createdBy"] == "advisor-1"
    assert asha.policies[0].covered()[0].member_id == RAVI_ID

    [ravi] = result.created_dependents
    assert ravi.id in store.members
    assert ravi.spoc_id == ASHA_ID
    assert ravi.is_spoc is False
    assert len(result.persisted()) == 2
    assert toasts == [("success", "Customer created successfully!")]


def test_missing_fields_blocks_before_store(context, toasts):
    store = InMemoryStore()
    draft = member("Ravi", dob=None, mobile=" ")

    result = asyncio.run(SyncOrchestrator(context, store).save(draft, store.snapshot()))

    assert not result.ok
    assert isinstance(result.error, ValidationError)
    assert result.error.missing == ["mobile", "dob"]
    assert result.failed_in is SyncState.VALIDATING
    assert store.calls == []
    assert toasts == [("error", "Error saving customer: Missing required fields: mobile, dob")]


def test_save_all_checks_later_drafts_against_earlier_saves(context):
    store = InMemoryStore()

    results, population = asyncio.run(
        SyncOrchestrator(context, store).save_all([_asha_draft(), member("Asha Rao")], store.snapshot())
    )

    first, second = results
    assert first.ok
    assert isinstance(second.error, DuplicateDetected)
    assert [m.id for m in second.duplicates] == [first.member.id]
    assert store.calls == [("create_member", RAVI_ID), ("create_member", ASHA_ID)]
    assert sorted(m.member_id for m in population.members) == [ASHA_ID, RAVI_ID]


# ---------------------------------------------------------------------------
# Duplicates
# ---------------------------------------------------------------------------

def _colliding_store():
    return InMemoryStore([member("Ravi Kumar", id="s-1", member_id="RA12_____", mobile="N/A")])


def _colliding_draft():
    return member("Ravi", address="12 MG Road", mobile="N/A", dob="1992-02-02")


def test_duplicate_halts_before_persisting(context, toasts):
    store = _colliding_store()

    result = asyncio.run(SyncOrchestrator(context, store).save(_colliding_draft(), store.snapshot()))

    assert not result.ok
    assert isinstance(result.error, DuplicateDetected)
    assert result.failed_in is SyncState.DUPLICATE_CHECK
    assert SyncState.PERSISTING not in result.trace
    assert [m.id for m in result.duplicates] == ["s-1"]
    assert store.calls == []
    assert toasts == []


def test_create_anyway(context):
    store = _colliding_store()

    result = asyncio.run(
        SyncOrchestrator(context, store).save(_colliding_draft(), store.snapshot(), force_create=True)
    )

    assert result.ok
    assert SyncState.DUPLICATE_CHECK not in result.trace
    assert sorted(m.member_id for m in store.members.values()) == ["RA12_____", "RA12_____"]


def test_merge_into_existing(context, toasts):
    store = _colliding_store()
    draft = _colliding_draft()
    draft.email = "ravi@example.com"

    result = asyncio.run(
        SyncOrchestrator(context, store).save(draft, store.snapshot(), merge_target_id="s-1")
    )

    assert result.ok
    assert store.calls == [("update_member", "RA12_____")]
    assert len(store.members) == 1
    saved = store.members["s-1"]
    assert saved.name == "Ravi"
    assert saved.email == "ravi@example.com"
    assert toasts == [("success", "Customer updated successfully!")]


def test_merge_target_must_exist(context):
    store = _colliding_store()
    result = asyncio.run(
        SyncOrchestrator(context, store).save(_colliding_draft(), store.snapshot(), merge_target_id="s-404")
    )
    assert isinstance(result.error, ValidationError)
    assert store.calls == []


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------

def test_spoc_rename_updates_primary_then_dependents(context):
    asha, ravi = _saved_family()
    store = InMemoryStore([asha, ravi])
    asha.name = "Asha Iyer"

    result = asyncio.run(SyncOrchestrator(context, store).save(asha, store.snapshot()))

    assert result.ok
    assert SyncState.DUPLICATE_CHECK not in result.trace
    assert store.calls == [("update_member", ASHA_ID), ("update_member", RAVI_ID)]
    assert store.members["s-ravi"].family_name == "Asha Iyer's Family"


def test_dependent_edit_refreshes_spoc_entry(context):
    asha, ravi = _saved_family()
    store = InMemoryStore([asha, ravi])
    ravi.name = "Ravindra Rao"

    result = asyncio.run(SyncOrchestrator(context, store).save(ravi, store.snapshot()))

    assert result.ok
    assert store.calls == [("update_member", RAVI_ID), ("update_member", ASHA_ID)]
    entry = store.members["s-asha"].policies[0].covered()[0]
    assert (entry.id, entry.name, entry.member_id) == ("cm-ravi", "Ravindra Rao", RAVI_ID)
    assert [m.id for m in result.updated_members] == ["s-asha"]


def test_spoc_entry_without_member_id_keeps_saved_link(context):
    asha, ravi = _saved_family()
    store = InMemoryStore([asha, ravi])
    entry = asha.policies[0].covered()[0]
    entry.member_id = None
    entry.name = "Ravindra Rao"

    result = asyncio.run(SyncOrchestrator(context, store).save(asha, store.snapshot()))

    assert result.ok
    assert len(store.members) == 2
    assert store.calls == [("update_member", ASHA_ID)]
    assert store.members["s-asha"].policies[0].covered()[0].member_id == RAVI_ID


def test_update_of_unknown_member_fails(context):
    store = InMemoryStore()
    ghost = member("Ghost", id="s-404", member_id="GH00_____")
    result = asyncio.run(SyncOrchestrator(context, store).save(ghost, store.snapshot()))
    assert isinstance(result.error, ValidationError)
    assert result.failed_in is SyncState.VALIDATING


# ---------------------------------------------------------------------------
# Persistence failures
# ---------------------------------------------------------------------------

def test_failure_mid_plan_reports_committed_prefix(context, toasts):
    store = FailingStore(fail_on={ASHA_ID})
    draft = member(
        "Asha Rao",
        policies=[family_policy(covered("Ravi Rao", dob="2005-03-03"), covered("Meena Rao", dob="2012-08-08"))],
    )

    result = asyncio.run(SyncOrchestrator(context, store).save(draft, store.snapshot()))

    assert not result.ok
    assert isinstance(result.error, PersistenceError)
    assert result.failed_in is SyncState.PERSISTING
    assert [m.member_id for m in result.committed] == [RAVI_ID, "ME1243210"]
    assert [m.member_id for m in result.error.committed] == [RAVI_ID, "ME1243210"]
    assert toasts[-1][0] == "error"
    assert "store unavailable" in toasts[-1][1]


def test_store_timeout_is_terminal(context):
    store = InMemoryStore(latency=0.5)
    orch = SyncOrchestrator(context, store)
    orch.timeout = 0.01

    result = asyncio.run(orch.save(_asha_draft(), store.snapshot()))

    assert not result.ok
    assert isinstance(result.error, PersistenceError)
    assert "Timed out" in str(result.error)
    assert result.committed == []


# ---------------------------------------------------------------------------
# Lead conversion
# ---------------------------------------------------------------------------

def test_lead_marked_won_after_save(context, toasts):
    store = InMemoryStore(leads=[Lead(id="lead-1", name="Asha Rao", phone="9876543210")])

    result = asyncio.run(
        SyncOrchestrator(context, store).save(_asha_draft(), store.snapshot(), lead=store.leads["lead-1"])
    )

    assert result.ok
    assert result.lead.status == "Won"
    assert store.leads["lead-1"].status == "Won"
    assert store.calls[-1] == ("update_lead", "lead-1")
    assert ("success", 'Lead "Asha Rao" marked as Won.') in toasts


def test_lead_failure_does_not_fail_save(context, toasts):
    store = InMemoryStore()

    result = asyncio.run(
        SyncOrchestrator(context, store).save(_asha_draft(), store.snapshot(), lead=Lead(id="lead-x", name="X"))
    )

    assert result.ok
    assert result.lead is None
    assert any(sev == "error" and "lead could not be updated" in msg for sev, msg in toasts)


# ---------------------------------------------------------------------------
# Relieve / renew / delete
# ---------------------------------------------------------------------------

def test_relieve_persists_dependent_and_spoc(context):
    asha, ravi = _saved_family()
    store = InMemoryStore([asha, ravi])

    result = asyncio.run(SyncOrchestrator(context, store).relieve("s-ravi", store.snapshot()))

    assert result.ok
    assert store.calls == [("update_member", RAVI_ID), ("update_member", ASHA_ID)]
    saved = store.members["s-ravi"]
    assert saved.spoc_id == ASHA_ID
    assert saved.relieved_timestamp == FIXED_NOW.isoformat()
    assert store.members["s-asha"].policies[0].covered() == []


def test_relieve_non_dependent(context):
    asha, ravi = _saved_family()
    store = InMemoryStore([asha, ravi])
    result = asyncio.run(SyncOrchestrator(context, store).relieve("s-asha", store.snapshot()))
    assert isinstance(result.error, NotADependentError)
    assert result.failed_in is SyncState.RECONCILING
    assert store.calls == []


def test_renew_policy_moves_date_one_year(context, toasts):
    asha = member("Asha Rao", id="s-asha", member_id=ASHA_ID, policies=[individual_policy(renewal_date="2024-06-10")])
    store = InMemoryStore([asha])

    result = asyncio.run(SyncOrchestrator(context, store).renew_policy(asha, "p-ind"))

    assert result.ok
    assert store.members["s-asha"].policies[0].renewal_date == "2025-06-10"
    assert asha.policies[0].renewal_date == "2024-06-10"
    assert toasts == [("success", "Policy renewed successfully!")]


def test_renew_unknown_policy(context):
    asha = member("Asha Rao", id="s-asha", member_id=ASHA_ID)
    result = asyncio.run(SyncOrchestrator(context, InMemoryStore([asha])).renew_policy(asha, "p-missing"))
    assert isinstance(result.error, ValidationError)


def test_delete(context):
    asha, ravi = _saved_family()
    store = InMemoryStore([asha, ravi])
    orch = SyncOrchestrator(context, store)

    assert asyncio.run(orch.delete("s-ravi")).ok
    assert "s-ravi" not in store.members

    result = asyncio.run(orch.delete("s-ravi"))
    assert isinstance(result.error, PersistenceError)

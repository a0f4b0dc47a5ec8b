from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional, Sequence

if TYPE_CHECKING:
    from member_sync.registry.entities import CoveredMember, Member


class SyncError(Exception):
    """Base exception for synchronization failures."""


class ValidationError(SyncError):
    """Raised when a save request cannot be accepted as submitted."""

    def __init__(self, message: str, missing: Sequence[str] = ()):
        self.missing = list(missing)
        super().__init__(message)

    @classmethod
    def missing_fields(cls, missing: Sequence[str]) -> "ValidationError":
        return cls(f"Missing required fields: {', '.join(missing)}", missing)


class DuplicateDetected(SyncError):
    """Raised when a new member's id collides with existing records in the tenant."""

    def __init__(self, member_id: str, candidates: List["Member"]):
        self.member_id = member_id
        self.candidates = list(candidates)
        super().__init__(
            f"{len(self.candidates)} existing member(s) already use member id {member_id!r}"
        )


class NotADependentError(SyncError):
    """Raised when relieving a member that has no SPOC."""


class SpocNotFoundError(SyncError):
    """Raised when a dependent's SPOC record cannot be located."""


class LinkResolutionError(SyncError):
    """Raised when a covered member cannot be matched or safely auto-created."""

    def __init__(self, entry: "CoveredMember", candidates: List["Member"]):
        self.entry = entry
        self.candidates = list(candidates)
        super().__init__(
            f"Covered member {entry.name!r} ({entry.dob}) matches "
            f"{len(self.candidates)} existing members"
        )


class PersistenceError(SyncError):
    """Wraps a store failure together with whatever was already committed."""

    def __init__(self, message: str, committed: Optional[List[Any]] = None):
        self.committed = list(committed or [])
        super().__init__(message)

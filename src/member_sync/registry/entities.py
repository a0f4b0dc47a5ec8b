from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from member_sync.registry.utils import _emit, _records, _split_known, norm_name


FAMILY = "Family"
INDIVIDUAL = "Individual"
ACTIVE = "Active"


# -----------------------------
# Small atoms
# -----------------------------

_OCCASION_FIELDS = {"id": "id", "name": "name", "date": "date"}


@dataclass(slots=True)
class SpecialOccasion:
    id: str = ""
    name: str = ""
    date: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpecialOccasion":
        known, raw = _split_known(data, _OCCASION_FIELDS)
        return cls(**known, raw=raw)

    def to_dict(self) -> Dict[str, Any]:
        return _emit(self, _OCCASION_FIELDS, self.raw)


_COMMISSION_FIELDS = {"amount": "amount", "status": "status"}


@dataclass(slots=True)
class Commission:
    amount: float = 0
    status: str = "Pending"
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Commission":
        known, raw = _split_known(data, _COMMISSION_FIELDS)
        return cls(**known, raw=raw)

    def to_dict(self) -> Dict[str, Any]:
        return _emit(self, _COMMISSION_FIELDS, self.raw)


_COVERED_FIELDS = {
    "id": "id",
    "name": "name",
    "dob": "dob",
    "gender": "gender",
    "mobile": "mobile",
    "email": "email",
    "address": "address",
    "memberId": "member_id",
}


@dataclass(slots=True)
class CoveredMember:
    """
    A person insured under a Family policy.

    ``member_id`` is the permanent link to the standalone dependent record.
    Once set it is never cleared or reassigned.
    """
    id: str = ""
    name: str = ""
    dob: Optional[str] = None
    gender: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    member_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CoveredMember":
        known, raw = _split_known(data, _COVERED_FIELDS)
        return cls(**known, raw=raw)

    def to_dict(self) -> Dict[str, Any]:
        return _emit(self, _COVERED_FIELDS, self.raw)


# -----------------------------
# Policy
# -----------------------------

_POLICY_FIELDS = {
    "id": "id",
    "policyType": "policy_type",
    "premium": "premium",
    "renewalDate": "renewal_date",
    "status": "status",
    "policyHolderType": "policy_holder_type",
    "coveredMembers": "covered_members",
    "commission": "commission",
    "familyHeadMemberId": "family_head_member_id",
}


@dataclass(slots=True)
class Policy:
    id: str = ""
    policy_type: str = ""
    premium: float = 0
    renewal_date: Optional[str] = None
    status: str = ACTIVE
    policy_holder_type: Optional[str] = None
    covered_members: Optional[List[CoveredMember]] = None
    commission: Optional[Commission] = None
    family_head_member_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_family(self) -> bool:
        return self.policy_holder_type == FAMILY

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE

    def covered(self) -> List[CoveredMember]:
        return self.covered_members or []

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Policy":
        known, raw = _split_known(data, _POLICY_FIELDS)
        known["covered_members"] = _records(known.get("covered_members"), CoveredMember.from_dict)
        if isinstance(known.get("commission"), dict):
            known["commission"] = Commission.from_dict(known["commission"])
        return cls(**known, raw=raw)

    def to_dict(self) -> Dict[str, Any]:
        return _emit(self, _POLICY_FIELDS, self.raw)


# -----------------------------
# Member
# -----------------------------

_MEMBER_FIELDS = {
    "id": "id",
    "memberId": "member_id",
    "name": "name",
    "dob": "dob",
    "gender": "gender",
    "mobile": "mobile",
    "email": "email",
    "address": "address",
    "state": "state",
    "city": "city",
    "anniversary": "anniversary",
    "otherSpecialOccasions": "other_special_occasions",
    "isSPOC": "is_spoc",
    "familyName": "family_name",
    "spocId": "spoc_id",
    "relievedTimestamp": "relieved_timestamp",
    "policies": "policies",
    "assignedTo": "assigned_to",
    "companyId": "company_id",
    "automatedGreetingsEnabled": "automated_greetings_enabled",
}


@dataclass(slots=True)
class Member:
    # Storage identity, assigned by the store; empty for drafts.
    id: Optional[str] = None
    member_id: str = ""
    name: str = ""
    dob: Optional[str] = None
    gender: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    anniversary: Optional[str] = None
    other_special_occasions: Optional[List[SpecialOccasion]] = None

    # Family linkage
    is_spoc: bool = False
    family_name: Optional[str] = None
    spoc_id: Optional[str] = None
    relieved_timestamp: Optional[str] = None

    policies: List[Policy] = field(default_factory=list)
    assigned_to: List[str] = field(default_factory=list)
    company_id: Optional[str] = None
    automated_greetings_enabled: Optional[bool] = None

    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_new(self) -> bool:
        return not self.id

    @property
    def is_dependent(self) -> bool:
        return bool(self.spoc_id)

    @property
    def is_relieved(self) -> bool:
        return bool(self.relieved_timestamp)

    @property
    def greetings_enabled(self) -> bool:
        return self.automated_greetings_enabled is not False

    def family_policies(self) -> List[Policy]:
        return [p for p in self.policies if p.is_family]

    def occasions(self) -> List[SpecialOccasion]:
        return self.other_special_occasions or []

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Member":
        known, raw = _split_known(data, _MEMBER_FIELDS)
        known["other_special_occasions"] = _records(
            known.get("other_special_occasions"), SpecialOccasion.from_dict
        )
        known["policies"] = _records(known.get("policies"), Policy.from_dict) or []
        known["assigned_to"] = list(known.get("assigned_to") or [])
        known["is_spoc"] = bool(known.get("is_spoc", False))
        return cls(**known, raw=raw)

    def to_dict(self) -> Dict[str, Any]:
        return _emit(self, _MEMBER_FIELDS, self.raw)


# -----------------------------
# Leads and scheduled messages
# -----------------------------

_LEAD_FIELDS = {
    "id": "id",
    "name": "name",
    "phone": "phone",
    "email": "email",
    "status": "status",
    "assignedTo": "assigned_to",
    "companyId": "company_id",
}


@dataclass(slots=True)
class Lead:
    id: Optional[str] = None
    name: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    status: str = "Lead"
    assigned_to: Optional[str] = None
    company_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Lead":
        known, raw = _split_known(data, _LEAD_FIELDS)
        return cls(**known, raw=raw)

    def to_dict(self) -> Dict[str, Any]:
        return _emit(self, _LEAD_FIELDS, self.raw)


_MESSAGE_FIELDS = {
    "id": "id",
    "memberId": "member_id",
    "message": "message",
    "dateTime": "date_time",
}


@dataclass(slots=True)
class CustomMessage:
    """A one-off message scheduled for a member (``member_id`` is the storage id)."""
    id: str = ""
    member_id: str = ""
    message: str = ""
    date_time: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomMessage":
        known, raw = _split_known(data, _MESSAGE_FIELDS)
        return cls(**known, raw=raw)

    def to_dict(self) -> Dict[str, Any]:
        return _emit(self, _MESSAGE_FIELDS, self.raw)


# -----------------------------
# Population snapshot
# -----------------------------

@dataclass(frozen=True, slots=True)
class MemberPopulation:
    """
    Read-only snapshot of the member records a pipeline run reasons about.

    Lookups by business id are only meaningful after ``for_tenant`` since
    member ids are not unique across companies.
    """
    members: Tuple[Member, ...] = ()

    @classmethod
    def of(cls, members: Iterable[Member]) -> "MemberPopulation":
        return cls(tuple(members))

    @classmethod
    def from_dicts(cls, rows: Iterable[Dict[str, Any]]) -> "MemberPopulation":
        return cls(tuple(Member.from_dict(r) for r in rows))

    def __iter__(self) -> Iterator[Member]:
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)

    def for_tenant(self, company_id: Optional[str]) -> "MemberPopulation":
        return MemberPopulation(tuple(m for m in self.members if m.company_id == company_id))

    def get(self, storage_id: Optional[str]) -> Optional[Member]:
        if not storage_id:
            return None
        for m in self.members:
            if m.id == storage_id:
                return m
        return None

    def by_member_id(self, member_id: Optional[str]) -> List[Member]:
        if not member_id:
            return []
        return [m for m in self.members if m.member_id == member_id]

    def find_spoc(self, member_id: Optional[str]) -> Optional[Member]:
        """The family head carrying ``member_id``, preferring records flagged SPOC."""
        candidates = self.by_member_id(member_id)
        for m in candidates:
            if m.is_spoc:
                return m
        return candidates[0] if candidates else None

    def dependents_of(self, member_id: Optional[str]) -> List[Member]:
        if not member_id:
            return []
        return [m for m in self.members if m.spoc_id == member_id]

    def match_name_dob(self, name: Optional[str], dob: Optional[str]) -> List[Member]:
        key = norm_name(name)
        if not key:
            return []
        return [m for m in self.members if norm_name(m.name) == key and m.dob == dob]

    def without(self, storage_id: Optional[str]) -> "MemberPopulation":
        if not storage_id:
            return self
        return MemberPopulation(tuple(m for m in self.members if m.id != storage_id))

    def apply(self, persisted: Iterable[Member]) -> "MemberPopulation":
        """New snapshot with persisted records replacing (by storage id) or appended."""
        merged: Dict[Any, Member] = {}
        order: List[Any] = []
        for m in self.members:
            key = m.id if m.id else ("__draft__", len(order))
            merged[key] = m
            order.append(key)
        for m in persisted:
            if m.id not in merged:
                order.append(m.id)
            merged[m.id] = m
        return MemberPopulation(tuple(merged[k] for k in order))

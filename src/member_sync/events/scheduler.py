# src/member_sync/events/scheduler.py

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from member_sync.config import get_config
from member_sync.dates.normalizer import (
    days_until,
    parse_date,
    parse_datetime,
    to_date,
    with_year,
)
from member_sync.identity.member_id import notification_id
from member_sync.registry.entities import CustomMessage, Lead, Member, Policy


# ---------------------------------------------------------------------------
# Notification types
# ---------------------------------------------------------------------------

class NotificationType(str, Enum):
    BIRTHDAY = "Birthday"
    ANNIVERSARY = "Anniversary"
    SPECIAL_OCCASION = "Special Occasion"
    POLICY_RENEWAL = "Policy Renewal"
    CUSTOM = "Custom"
    TASK_ASSIGNMENT = "Task Assignment"


class RenewalStatus(str, Enum):
    OVERDUE = "Overdue"
    DUE = "Due"
    LATER = "Later"


# Id prefix per notification type
ID_PREFIXES: Dict[NotificationType, str] = {
    NotificationType.BIRTHDAY: "bday",
    NotificationType.ANNIVERSARY: "anniv",
    NotificationType.SPECIAL_OCCASION: "special",
    NotificationType.POLICY_RENEWAL: "renew",
    NotificationType.CUSTOM: "custom",
    NotificationType.TASK_ASSIGNMENT: "task-assign",
}

DEFAULT_WINDOW_DAYS = 30


# ---------------------------------------------------------------------------
# Notification
# ---------------------------------------------------------------------------

@dataclass
class NotificationTarget:
    """The member (or lead) a notification is about."""
    id: str
    name: str
    mobile: Optional[str] = None

    @classmethod
    def of(cls, member: Member) -> "NotificationTarget":
        return cls(id=member.id or "", name=member.name, mobile=member.mobile)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "mobile": self.mobile or ""}


@dataclass
class Notification:
    """
    A derived reminder. Recomputed from the population, never stored.
    """
    id: str
    type: NotificationType
    date: datetime
    message: str
    member: NotificationTarget

    policy: Optional[Policy] = None
    occasion_name: Optional[str] = None
    source: str = "auto"
    dismissed: bool = False
    days_until: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "date": self.date.isoformat(),
            "message": self.message,
            "member": self.member.to_dict(),
            "source": self.source,
        }
        if self.occasion_name is not None:
            out["occasionName"] = self.occasion_name
        if self.policy is not None:
            out["policy"] = self.policy.to_dict()
        if self.dismissed:
            out["dismissed"] = True
        return out


# ---------------------------------------------------------------------------
# Occurrence helpers
# ---------------------------------------------------------------------------

def next_occurrence(value: Optional[str], today: Union[date, datetime]) -> Optional[date]:
    """
    Next yearly occurrence of the month/day in ``value`` on or after ``today``.
    None when ``value`` is empty or unparsable.
    """
    d = parse_date(value)
    if d is None:
        return None
    today = to_date(today)
    occurrence = with_year(d, today.year)
    if occurrence < today:
        occurrence = with_year(d, today.year + 1)
    return occurrence


def classify_renewal(policy: Policy, today: Union[date, datetime], *, window_days: Optional[int] = None) -> Optional[RenewalStatus]:
    renewal = parse_datetime(policy.renewal_date)
    if renewal is None:
        return None
    window = _window("renewal_window_days", window_days)
    remaining = days_until(renewal, today)
    if remaining < 0:
        return RenewalStatus.OVERDUE
    if remaining <= window:
        return RenewalStatus.DUE
    return RenewalStatus.LATER


def _window(key: str, override: Optional[int]) -> int:
    if override is not None:
        return override
    return int(get_config().scheduler.get(key, DEFAULT_WINDOW_DAYS))


def _days_label(n: int) -> str:
    return f"{n} day" if n == 1 else f"{n} days"


def _as_midnight(d: date) -> datetime:
    return datetime(d.year, d.month, d.day)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

def _birthday_message(name: str, n: int) -> str:
    if n == 0:
        return f"Happy Birthday to {name} today! Wishing you a wonderful year ahead."
    return f"Birthday for {name} in {_days_label(n)}."


def _anniversary_message(name: str, n: int) -> str:
    if n == 0:
        return f"Happy Anniversary to {name} today! May this special day bring you joy."
    return f"Anniversary for {name} in {_days_label(n)}."


def _occasion_message(name: str, occasion: str, n: int) -> str:
    if n == 0:
        return f"Today is a special day for {name}: {occasion}!"
    return f"Upcoming special day for {name}: {occasion} in {_days_label(n)}."


def _renewal_message(name: str, n: int) -> str:
    if n == 0:
        return f"Policy renewal for {name} is due today."
    return f"Policy renewal for {name} is due in {_days_label(n)}."


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

class _Emitter:
    """Collects notifications and hands out the running id counter."""

    def __init__(self) -> None:
        self.items: List[Notification] = []
        self.counter = 0

    def emit(self, kind: NotificationType, source_id: Any, **kwargs: Any) -> None:
        nid = notification_id(ID_PREFIXES[kind], source_id, self.counter)
        self.counter += 1
        self.items.append(Notification(id=nid, type=kind, **kwargs))


def compute_notifications(
    members: Iterable[Member],
    custom_messages: Iterable[CustomMessage],
    today: Union[date, datetime],
    *,
    lookahead_days: Optional[int] = None,
    renewal_window_days: Optional[int] = None,
) -> List[Notification]:
    """
    Upcoming notifications for ``members`` as of ``today``, sorted by date.

    * Birthdays, anniversaries and special occasions falling within the
      lookahead window (inclusive of today), unless the member opted out of
      automated greetings.
    * Renewals of Active policies due within the renewal window; overdue ones
      are not emitted.
    * Custom messages scheduled for today.

    Ids are ``{prefix}-{source}-{counter}``; the same input yields the same ids.
    """
    today = to_date(today)
    lookahead = _window("lookahead_days", lookahead_days)
    renewal_window = _window("renewal_window_days", renewal_window_days)

    members = list(members)
    out = _Emitter()

    for member in members:
        target = NotificationTarget.of(member)

        if member.greetings_enabled:
            occ = next_occurrence(member.dob, today)
            if occ is not None and days_until(occ, today) <= lookahead:
                n = days_until(occ, today)
                out.emit(
                    NotificationType.BIRTHDAY, member.id,
                    date=_as_midnight(occ), message=_birthday_message(member.name, n),
                    member=target, days_until=n,
                )

            occ = next_occurrence(member.anniversary, today)
            if occ is not None and days_until(occ, today) <= lookahead:
                n = days_until(occ, today)
                out.emit(
                    NotificationType.ANNIVERSARY, member.id,
                    date=_as_midnight(occ), message=_anniversary_message(member.name, n),
                    member=target, days_until=n,
                )

            for occasion in member.occasions():
                occ = next_occurrence(occasion.date, today)
                if occ is None or days_until(occ, today) > lookahead:
                    continue
                n = days_until(occ, today)
                out.emit(
                    NotificationType.SPECIAL_OCCASION, f"{member.id}-{occasion.id}",
                    date=_as_midnight(occ),
                    message=_occasion_message(member.name, occasion.name, n),
                    member=target, occasion_name=occasion.name, days_until=n,
                )

        for policy in member.policies:
            if not policy.is_active:
                continue
            renewal = parse_datetime(policy.renewal_date)
            if renewal is None:
                continue
            n = days_until(renewal, today)
            if 0 <= n <= renewal_window:
                out.emit(
                    NotificationType.POLICY_RENEWAL, policy.id,
                    date=renewal, message=_renewal_message(member.name, n),
                    member=target, policy=policy, days_until=n,
                )

    by_id = {m.id: m for m in members if m.id}
    for msg in custom_messages:
        when = parse_datetime(msg.date_time)
        if when is None or when.date() != today:
            continue
        member = by_id.get(msg.member_id)
        if member is None:
            continue
        out.emit(
            NotificationType.CUSTOM, msg.id,
            date=when, message=msg.message,
            member=NotificationTarget.of(member), source="custom", days_until=0,
        )

    return sorted(out.items, key=lambda n: n.date)


def task_assignment_notification(
    task_id: str,
    description: str,
    *,
    when: datetime,
    member: Optional[Member] = None,
    lead: Optional[Lead] = None,
) -> Notification:
    """Notification for an advisor a task was just reassigned to."""
    if member is not None:
        target = NotificationTarget.of(member)
    elif lead is not None:
        target = NotificationTarget(id=lead.id or "", name=lead.name, mobile=lead.phone)
    else:
        target = NotificationTarget(id="", name="Personal Task", mobile="")

    return Notification(
        id=notification_id(ID_PREFIXES[NotificationType.TASK_ASSIGNMENT], task_id, when.strftime("%Y%m%d%H%M%S")),
        type=NotificationType.TASK_ASSIGNMENT,
        date=when,
        message=f'Task "{description}" has been reassigned to you.',
        member=target,
    )


def undismissed(notifications: Iterable[Notification]) -> List[Notification]:
    return [n for n in notifications if not n.dismissed]


def dismiss_all(notifications: Iterable[Notification]) -> List[Notification]:
    return [replace(n, dismissed=True) for n in notifications]


__all__ = [
    "Notification",
    "NotificationTarget",
    "NotificationType",
    "RenewalStatus",
    "classify_renewal",
    "compute_notifications",
    "dismiss_all",
    "next_occurrence",
    "task_assignment_notification",
    "undismissed",
]

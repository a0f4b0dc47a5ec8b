from datetime import date, datetime

from builders import individual_policy, member

from member_sync.events.scheduler import (
    NotificationType,
    RenewalStatus,
    classify_renewal,
    compute_notifications,
    dismiss_all,
    next_occurrence,
    task_assignment_notification,
    undismissed,
)
from member_sync.registry.entities import CustomMessage, SpecialOccasion

TODAY = date(2024, 6, 1)


def _types(items):
    return [n.type for n in items]


# ---------------------------------------------------------------------------
# Annual events
# ---------------------------------------------------------------------------

def test_birthday_today():
    m = member("Asha Rao", id="s-1", dob="1990-06-01")
    [n] = compute_notifications([m], [], TODAY)
    assert n.type is NotificationType.BIRTHDAY
    assert n.id == "bday-s-1-0"
    assert n.date == datetime(2024, 6, 1)
    assert n.days_until == 0
    assert "today" in n.message
    assert n.member.name == "Asha Rao"


def test_lookahead_window_is_inclusive_of_thirty_days():
    inside = member("In", id="s-1", dob="1990-07-01")
    outside = member("Out", id="s-2", dob="1990-07-02")
    items = compute_notifications([inside, outside], [], TODAY)
    assert [n.member.id for n in items] == ["s-1"]
    assert items[0].message == "Birthday for In in 30 days."


def test_passed_event_rolls_to_next_year():
    assert next_occurrence("1990-05-31", TODAY) == date(2025, 5, 31)
    assert next_occurrence("1990-06-01", datetime(2024, 6, 1, 23, 59)) == date(2024, 6, 1)
    assert next_occurrence(None, TODAY) is None
    assert next_occurrence("not a date", TODAY) is None


def test_leap_day_birthday_lands_on_march_first():
    m = member("Leap", id="s-1", dob="2000-02-29")
    [n] = compute_notifications([m], [], date(2023, 2, 20))
    assert n.date == datetime(2023, 3, 1)
    assert n.message == "Birthday for Leap in 9 days."


def test_anniversary_and_occasions():
    m = member(
        "Asha Rao",
        id="s-1",
        anniversary="2010-06-02",
        other_special_occasions=[SpecialOccasion(id="o1", name="Graduation", date="2015-06-10")],
    )
    anniv, special = compute_notifications([m], [], TODAY)

    assert anniv.type is NotificationType.ANNIVERSARY
    assert anniv.message == "Anniversary for Asha Rao in 1 day."
    assert special.type is NotificationType.SPECIAL_OCCASION
    assert special.id == "special-s-1-o1-1"
    assert special.occasion_name == "Graduation"
    assert special.message == "Upcoming special day for Asha Rao: Graduation in 9 days."


def test_greetings_opt_out_keeps_renewals():
    m = member(
        "Asha Rao",
        id="s-1",
        dob="1990-06-01",
        anniversary="2010-06-01",
        automated_greetings_enabled=False,
        policies=[individual_policy(renewal_date="2024-06-10")],
    )
    items = compute_notifications([m], [], TODAY)
    assert _types(items) == [NotificationType.POLICY_RENEWAL]


# ---------------------------------------------------------------------------
# Renewals
# ---------------------------------------------------------------------------

def test_renewal_boundaries():
    m = member(
        "Asha Rao",
        id="s-1",
        policies=[
            individual_policy(id="p-30", renewal_date="2024-07-01"),
            individual_policy(id="p-31", renewal_date="2024-07-02"),
            individual_policy(id="p-overdue", renewal_date="2024-05-31"),
        ],
    )
    items = compute_notifications([m], [], TODAY)

    assert [n.policy.id for n in items] == ["p-30"]
    assert items[0].id == "renew-p-30-0"
    assert items[0].message == "Policy renewal for Asha Rao is due in 30 days."

    statuses = {p.id: classify_renewal(p, TODAY) for p in m.policies}
    assert statuses == {
        "p-30": RenewalStatus.DUE,
        "p-31": RenewalStatus.LATER,
        "p-overdue": RenewalStatus.OVERDUE,
    }


def test_renewal_partial_day_rounds_up():
    m = member("Asha Rao", id="s-1", policies=[individual_policy(renewal_date="2024-06-01T10:00:00Z")])
    [n] = compute_notifications([m], [], TODAY)
    assert n.days_until == 1
    assert n.date == datetime(2024, 6, 1, 10, 0)


def test_inactive_policy_has_no_renewal():
    m = member("Asha Rao", id="s-1", policies=[individual_policy(renewal_date="2024-06-05", status="Lapsed")])
    assert compute_notifications([m], [], TODAY) == []


def test_renewal_carries_policy_in_json():
    m = member("Asha Rao", id="s-1", policies=[individual_policy(renewal_date="2024-06-05")])
    [n] = compute_notifications([m], [], TODAY)
    out = n.to_dict()
    assert out["type"] == "Policy Renewal"
    assert out["policy"]["renewalDate"] == "2024-06-05"
    assert out["member"] == {"id": "s-1", "name": "Asha Rao", "mobile": "9876543210"}


# ---------------------------------------------------------------------------
# Custom messages
# ---------------------------------------------------------------------------

def test_custom_messages_only_on_the_day():
    m = member("Asha Rao", id="s-1")
    messages = [
        CustomMessage(id="c-today", member_id="s-1", message="Call back", date_time="2024-06-01T15:00:00"),
        CustomMessage(id="c-tomorrow", member_id="s-1", message="Later", date_time="2024-06-02T09:00:00"),
        CustomMessage(id="c-orphan", member_id="s-404", message="Nobody", date_time="2024-06-01T09:00:00"),
    ]
    [n] = compute_notifications([m], messages, TODAY)
    assert n.type is NotificationType.CUSTOM
    assert n.id == "custom-c-today-0"
    assert n.source == "custom"
    assert n.message == "Call back"


# ---------------------------------------------------------------------------
# Ordering and determinism
# ---------------------------------------------------------------------------

def test_sorted_by_date():
    members = [
        member("Later", id="s-1", dob="1990-06-20"),
        member("Sooner", id="s-2", policies=[individual_policy(renewal_date="2024-06-03")]),
    ]
    msg = CustomMessage(id="c1", member_id="s-1", message="Hi", date_time="2024-06-01T08:00:00")
    items = compute_notifications(members, [msg], TODAY)
    assert _types(items) == [
        NotificationType.CUSTOM,
        NotificationType.POLICY_RENEWAL,
        NotificationType.BIRTHDAY,
    ]


def test_recompute_is_identical():
    members = [
        member("Asha Rao", id="s-1", dob="1990-06-01", anniversary="2010-06-15",
               policies=[individual_policy(renewal_date="2024-06-20")]),
        member("Ravi Rao", id="s-2", dob="2005-06-03"),
    ]
    first = [n.to_dict() for n in compute_notifications(members, [], TODAY)]
    second = [n.to_dict() for n in compute_notifications(members, [], TODAY)]
    assert first == second
    assert len({n["id"] for n in first}) == len(first)


def test_window_overrides():
    m = member("Asha Rao", id="s-1", dob="1990-06-10", policies=[individual_policy(renewal_date="2024-06-10")])
    assert compute_notifications([m], [], TODAY, lookahead_days=5, renewal_window_days=5) == []


# ---------------------------------------------------------------------------
# Task assignment and dismissal
# ---------------------------------------------------------------------------

def test_task_assignment_notification():
    when = datetime(2024, 6, 1, 9, 30, 5)
    n = task_assignment_notification("t-1", "Collect KYC", when=when)
    assert n.id == "task-assign-t-1-20240601093005"
    assert n.type is NotificationType.TASK_ASSIGNMENT
    assert n.member.name == "Personal Task"
    assert n.message == 'Task "Collect KYC" has been reassigned to you.'

    m = member("Asha Rao", id="s-1")
    assert task_assignment_notification("t-2", "Renew", when=when, member=m).member.id == "s-1"


def test_dismiss_all():
    m = member("Asha Rao", id="s-1", dob="1990-06-01")
    items = compute_notifications([m], [], TODAY)
    dismissed = dismiss_all(items)
    assert undismissed(dismissed) == []
    assert undismissed(items) == items
    assert dismissed[0].to_dict()["dismissed"] is True

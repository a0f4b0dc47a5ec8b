from .scheduler import (
    Notification,
    NotificationType,
    RenewalStatus,
    classify_renewal,
    compute_notifications,
    dismiss_all,
    next_occurrence,
    task_assignment_notification,
    undismissed,
)
__all__ = [
    "Notification",
    "NotificationType",
    "RenewalStatus",
    "classify_renewal",
    "compute_notifications",
    "dismiss_all",
    "next_occurrence",
    "task_assignment_notification",
    "undismissed",
]

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional


ToastSink = Callable[[str, str], None]


@dataclass
class SyncContext:
    """
    Shared pipeline context.
    Carries the tenant, the outcome sink and the clock used for timestamps.
    """

    config: Any
    logger: Any

    company_id: Optional[str] = None
    user_id: Optional[str] = None

    add_toast: Optional[ToastSink] = None
    clock: Callable[[], datetime] = field(default=datetime.now)

    debug: bool = False

    def toast(self, message: str, severity: str = "success") -> None:
        if self.add_toast is not None:
            self.add_toast(message, severity)
        elif severity == "error":
            self.logger.error(message)
        else:
            self.logger.info(message)

    def now(self) -> datetime:
        return self.clock()

# src/member_sync/identity/member_id.py
from __future__ import annotations

import re
from typing import Optional

from member_sync.config import get_config


NAME_PART_LEN = 2
ADDRESS_PART_LEN = 2
MOBILE_PART_LEN = 5

_NON_ALPHA = re.compile(r"[^A-Za-z]")
_NON_DIGIT = re.compile(r"[^0-9]")


# -----------------------------
# Fragment helpers
# -----------------------------

def _letters(value: Optional[str]) -> str:
    return _NON_ALPHA.sub("", value or "")


def _digits(value: Optional[str]) -> str:
    return _NON_DIGIT.sub("", value or "")


def _fillers() -> tuple[str, str, str]:
    cfg = get_config().identity
    return (
        str(cfg.get("name_filler", "_"))[:1] or "_",
        str(cfg.get("address_filler", "0"))[:1] or "0",
        str(cfg.get("mobile_filler", "_"))[:1] or "_",
    )


# -----------------------------
# Member identity
# -----------------------------

def generate_member_id(
    name: Optional[str],
    address: Optional[str],
    mobile: Optional[str],
) -> str:
    """
    Human-readable member identifier: two name letters, two address digits,
    last five mobile digits.

    Lossy: two different people can share an id, so uniqueness is
    checked by the duplicate resolver before a record is created.
    """
    name_fill, address_fill, mobile_fill = _fillers()

    name_part = _letters(name)[:NAME_PART_LEN].upper().ljust(NAME_PART_LEN, name_fill)
    address_part = _digits(address)[:ADDRESS_PART_LEN].ljust(ADDRESS_PART_LEN, address_fill)
    mobile_digits = _digits(mobile)
    mobile_part = mobile_digits[-MOBILE_PART_LEN:].ljust(MOBILE_PART_LEN, mobile_fill)

    return f"{name_part}{address_part}{mobile_part}"


# -----------------------------
# Notification identity
# -----------------------------

def notification_id(prefix: str, source_id: object, counter: object) -> str:
    """
    ``{prefix}-{source}-{counter}``; stable for the same input order.
    """
    return f"{prefix}-{'' if source_id is None else source_id}-{counter}"


__all__ = [
    "generate_member_id",
    "notification_id",
]

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

T = TypeVar("T")


def _split_known(data: Dict[str, Any], fields: Dict[str, str]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Split a wire dict into (attribute kwargs, unmodeled leftovers).
    ``fields`` maps wire key -> attribute name.
    """
    known: Dict[str, Any] = {}
    raw: Dict[str, Any] = {}
    for key, value in (data or {}).items():
        attr = fields.get(key)
        if attr is None:
            raw[key] = value
        else:
            known[attr] = value
    return known, raw


def _emit(obj: Any, fields: Dict[str, str], raw: Dict[str, Any]) -> Dict[str, Any]:
    """Inverse of _split_known: unmodeled keys first, modeled keys that are set."""
    out: Dict[str, Any] = dict(raw)
    for key, attr in fields.items():
        value = getattr(obj, attr)
        if value is None:
            continue
        if hasattr(value, "to_dict"):
            value = value.to_dict()
        elif isinstance(value, list):
            value = [v.to_dict() if hasattr(v, "to_dict") else v for v in value]
        out[key] = value
    return out


def _records(items: Optional[Iterable[Any]], factory: Callable[[Dict[str, Any]], T]) -> Optional[List[T]]:
    if items is None:
        return None
    return [item if not isinstance(item, dict) else factory(item) for item in items]


def norm_name(name: Optional[str]) -> str:
    """Case- and whitespace-insensitive name key."""
    return (name or "").strip().lower()


def is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, dict)) and not value)

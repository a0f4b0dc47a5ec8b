from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any, List, Optional

import typer

from member_sync.dates.normalizer import parse_date
from member_sync.logging import log_error
from member_sync.registry.entities import CustomMessage, Member, MemberPopulation


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        log_error("Could not read %s: %s", path, exc)
        raise typer.BadParameter(f"{path} is not valid JSON: {exc}") from exc


def load_members(path: Path) -> MemberPopulation:
    """
    Members from a JSON file: a list of member dicts, or ``{"members": [...]}``.
    """
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("members", [])
    return MemberPopulation.from_dicts(data)


def load_member(path: Path) -> Member:
    data = _read_json(path)
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must contain a single member object")
    return Member.from_dict(data)


def load_messages(path: Optional[Path]) -> List[CustomMessage]:
    if path is None:
        return []
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("customMessages", [])
    return [CustomMessage.from_dict(row) for row in data]


def parse_today(value: Optional[str]) -> date:
    if value is None:
        return date.today()
    parsed = parse_date(value)
    if parsed is None:
        raise typer.BadParameter(f"Unrecognised date: {value!r}")
    return parsed


def write_json(
    data: Any,
    *,
    out: Path | None,
    pretty: bool,
):
    """
    Write JSON to stdout or file.
    """
    if pretty:
        payload = json.dumps(data, indent=2, ensure_ascii=False)
    else:
        payload = json.dumps(data, separators=(",", ":"), ensure_ascii=False)

    if out:
        out.write_text(payload, encoding="utf-8")
    else:
        typer.echo(payload)

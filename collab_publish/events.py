"""Helpers for NIP-01 events handled as JSON dictionaries."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Iterable, List, Optional

logger = logging.getLogger(__name__)


def _now() -> int:
    return int(time.time())


def new_event(kind: int, content: str = "", tags: Optional[List[List[str]]] = None) -> dict:
    return {
        "kind": int(kind),
        "created_at": None,
        "tags": [list(tag) for tag in tags or []],
        "content": content,
    }


def ensure_tags(event: dict) -> List[List[str]]:
    tags = event.get("tags", [])
    if not isinstance(tags, list):
        tags = []
        event["tags"] = tags
    return tags


def _read_tags(event: dict) -> List[Any]:
    tags = event.get("tags") if isinstance(event, dict) else None
    return tags if isinstance(tags, list) else []


def tag_values(event: dict, key: str) -> List[str]:
    """String values of every ``key`` tag; never modifies ``event``."""
    return [
        tag[1]
        for tag in _read_tags(event)
        if isinstance(tag, list) and len(tag) >= 2 and tag[0] == key and isinstance(tag[1], str)
    ]


def tag_value(event: dict, key: str) -> Optional[str]:
    values = tag_values(event, key)
    return values[0] if values else None


def remove_tags(event: dict, key: str) -> None:
    event["tags"] = [tag for tag in ensure_tags(event) if not (isinstance(tag, list) and tag and tag[0] == key)]


def upsert_single_tag(event: dict, key: str, value: str) -> None:
    remove_tags(event, key)
    event["tags"].append([key, value])


def parse_extra_tags(raw: Any) -> List[List[str]]:
    """Return the well-formed tags in ``raw``.

    Accepts a list of string lists or a JSON string encoding one. Anything
    else yields an empty list; malformed entries are dropped one by one.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Ignoring extra tags that are not valid JSON")
            return []
    if not isinstance(raw, list):
        return []
    valid: List[List[str]] = []
    for tag in raw:
        if not isinstance(tag, list) or not tag:
            continue
        if not all(isinstance(item, str) for item in tag):
            continue
        valid.append(list(tag))
    return valid


def _created_at(event: dict) -> int:
    value = event.get("created_at")
    return value if isinstance(value, int) else 0


def newest_event(events: Iterable[dict]) -> Optional[dict]:
    """Pick the event with the highest ``created_at``.

    Ties go to the lexicographically lowest event id so every reader
    converges on the same record regardless of relay ordering.
    """
    best: Optional[dict] = None
    for event in events:
        if best is None:
            best = event
            continue
        if _created_at(event) > _created_at(best):
            best = event
        elif _created_at(event) == _created_at(best) and str(event.get("id") or "") < str(best.get("id") or ""):
            best = event
    return best


def sort_newest_first(events: Iterable[dict]) -> List[dict]:
    return sorted(events, key=lambda event: (-_created_at(event), str(event.get("id") or "")))

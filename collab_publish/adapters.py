"""Kind adapters.

An adapter knows how to build, read and publish the target events of one
event kind. The registry maps kind numbers to adapters and hands out a
``GenericAdapter`` for anything it has not seen.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol

from .events import ensure_tags, new_event, parse_extra_tags, tag_value, upsert_single_tag

logger = logging.getLogger(__name__)

KIND_ARTICLE = 30023
KIND_WIKI = 30818
KIND_VERSIONED_ARTICLE = 3023

# Tags the protocol owns; user templates never get to set them.
_RESERVED_TAGS = ("d", "a")

_KNOWN_KINDS: Dict[int, str] = {
    0: "Profile Metadata",
    1: "Short Note",
    3: "Contacts",
    4: "Encrypted DM",
    5: "Deletion",
    6: "Repost",
    7: "Reaction",
    11: "Thread",
    20: "Image",
    21: "Video",
    22: "Short Video",
    1063: "Media",
    1111: "Reply",
    1222: "Voice Message",
    1934: "Task",
    3023: "Versioned Article",
    30023: "Article",
    30024: "Draft Article",
    30040: "Modular Article",
    30402: "Classified",
    30818: "Wiki",
}


def kind_label(kind: int) -> str:
    if kind in _KNOWN_KINDS:
        return _KNOWN_KINDS[kind]
    if 30000 <= kind < 40000:
        return f"Addressable ({kind})"
    if 20000 <= kind < 30000:
        return f"Ephemeral ({kind})"
    if 10000 <= kind < 20000:
        return f"Replaceable ({kind})"
    return f"Kind {kind}"


def is_addressable_kind(kind: int) -> bool:
    return 30000 <= kind < 40000


class EventPublisher(Protocol):
    async def publish_replaceable(self, event: dict) -> dict:
        ...

    async def publish_append(self, event: dict) -> dict:
        ...


class KindAdapter(Protocol):
    kind: int
    label: str
    is_replaceable: bool

    def get_title(self, event: dict) -> str:
        ...

    def get_content(self, event: dict) -> str:
        ...

    def build(self, identifier: str, fields: Mapping[str, Any]) -> dict:
        ...

    def apply_update(self, event: dict, fields: Mapping[str, Any]) -> None:
        ...

    async def publish(self, event: dict, publisher: EventPublisher) -> dict:
        ...


def _field_str(fields: Mapping[str, Any], key: str) -> Optional[str]:
    value = fields.get(key) if isinstance(fields, Mapping) else None
    return value if isinstance(value, str) else None


def _extra_tags(fields: Mapping[str, Any]) -> List[List[str]]:
    if not isinstance(fields, Mapping):
        return []
    return [tag for tag in parse_extra_tags(fields.get("tags")) if tag[0] not in _RESERVED_TAGS]


def _split_title(tags: List[List[str]]) -> tuple[Optional[str], List[List[str]]]:
    title: Optional[str] = None
    rest: List[List[str]] = []
    for tag in tags:
        if tag[0] == "title":
            title = tag[1] if len(tag) > 1 else ""
            continue
        rest.append(tag)
    return title, rest


def _content(event: dict) -> str:
    content = event.get("content")
    return content if isinstance(content, str) else ""


async def _publish_by_policy(adapter: KindAdapter, event: dict, publisher: EventPublisher) -> dict:
    if adapter.is_replaceable:
        return await publisher.publish_replaceable(event)
    return await publisher.publish_append(event)


class _TitledAdapter:
    """Shared behaviour for kinds that carry a ``title`` tag and a text body."""

    kind: int
    label: str
    is_replaceable: bool
    always_title = False

    def get_title(self, event: dict) -> str:
        return tag_value(event, "title") or "Untitled"

    def get_content(self, event: dict) -> str:
        return _content(event)

    def build(self, identifier: str, fields: Mapping[str, Any]) -> dict:
        tag_title, extra = _split_title(_extra_tags(fields))
        title = _field_str(fields, "title")
        if title is None:
            title = tag_title
        event = new_event(self.kind, _field_str(fields, "content") or "", [["d", identifier]])
        if title or self.always_title:
            event["tags"].append(["title", title or ""])
        ensure_tags(event).extend(extra)
        return event

    def apply_update(self, event: dict, fields: Mapping[str, Any]) -> None:
        tag_title, extra = _split_title(_extra_tags(fields))
        title = _field_str(fields, "title")
        if title is None:
            title = tag_title
        if title is not None:
            upsert_single_tag(event, "title", title)
        content = _field_str(fields, "content")
        if content is not None:
            event["content"] = content
        ensure_tags(event).extend(extra)

    async def publish(self, event: dict, publisher: EventPublisher) -> dict:
        return await _publish_by_policy(self, event, publisher)


class ArticleAdapter(_TitledAdapter):
    """Long-form article (kind 30023), one replaceable slot per author."""

    kind = KIND_ARTICLE
    label = "Article"
    is_replaceable = True
    always_title = True


class WikiAdapter(_TitledAdapter):
    kind = KIND_WIKI
    label = "Wiki"
    is_replaceable = True

    def get_title(self, event: dict) -> str:
        return tag_value(event, "title") or tag_value(event, "d") or "Untitled"


class VersionedArticleAdapter(_TitledAdapter):
    """Regular (non-replaceable) article: every publish is kept as a version.

    The ``d`` tag is still written so that all versions of one document can be
    found with a ``#d`` filter.
    """

    kind = KIND_VERSIONED_ARTICLE
    label = "Versioned Article"
    is_replaceable = False


class GenericAdapter:
    """Fallback for any kind: raw content plus free-form extra tags."""

    def __init__(self, kind: int) -> None:
        self.kind = int(kind)

    @property
    def label(self) -> str:
        return kind_label(self.kind)

    @property
    def is_replaceable(self) -> bool:
        return is_addressable_kind(self.kind)

    def get_title(self, event: dict) -> str:
        for key in ("title", "name", "subject"):
            value = tag_value(event, key)
            if value:
                return value
        content = _content(event)
        if content:
            return content[:60] + ("…" if len(content) > 60 else "")
        return f"Kind {event.get('kind', self.kind)} event"

    def get_content(self, event: dict) -> str:
        return _content(event)

    def build(self, identifier: str, fields: Mapping[str, Any]) -> dict:
        event = new_event(self.kind, _field_str(fields, "content") or "", [["d", identifier]])
        ensure_tags(event).extend(_extra_tags(fields))
        return event

    def apply_update(self, event: dict, fields: Mapping[str, Any]) -> None:
        content = _field_str(fields, "content")
        if content is not None:
            event["content"] = content
        # Extra tags are additive; previously set custom tags stay.
        ensure_tags(event).extend(_extra_tags(fields))

    async def publish(self, event: dict, publisher: EventPublisher) -> dict:
        return await _publish_by_policy(self, event, publisher)


class AdapterRegistry:
    def __init__(self) -> None:
        self._adapters: Dict[int, KindAdapter] = {}

    @classmethod
    def with_builtins(cls) -> "AdapterRegistry":
        registry = cls()
        registry.register(ArticleAdapter())
        registry.register(WikiAdapter())
        registry.register(VersionedArticleAdapter())
        return registry

    def register(self, adapter: KindAdapter) -> None:
        """Register ``adapter``; a later registration for the same kind wins."""
        if adapter.kind in self._adapters:
            logger.debug("Replacing adapter for kind %d", adapter.kind)
        self._adapters[adapter.kind] = adapter

    def lookup(self, kind: int) -> KindAdapter:
        adapter = self._adapters.get(int(kind))
        if adapter is not None:
            return adapter
        return GenericAdapter(kind)

    def kinds(self) -> List[int]:
        return sorted(self._adapters)

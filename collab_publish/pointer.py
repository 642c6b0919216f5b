"""Collaborative pointer records (kind 39382).

A pointer names the target kind of a document and every public key allowed to
publish versions of it. Relays are not trusted to deduplicate or order, so a
pointer is always resolved by querying broadly and keeping the newest record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .codec import POINTER_KIND, AddressPointer, encode_address, format_coordinate
from .errors import PointerNotFound
from .events import new_event, newest_event, tag_value, tag_values
from .transport import EventFilter, RelayPool

logger = logging.getLogger(__name__)

DEFAULT_TARGET_KIND = 30023


def _unique(values: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


@dataclass
class PointerRecord:
    identifier: str
    author_pubkey: str
    target_kind: int
    authorized_pubkeys: List[str] = field(default_factory=list)
    created_at: int = 0
    event_id: Optional[str] = None
    kind: int = POINTER_KIND

    @property
    def coordinate(self) -> str:
        return format_coordinate(self.kind, self.author_pubkey, self.identifier)

    def is_authorized(self, pubkey: str) -> bool:
        return pubkey.lower() in self.authorized_pubkeys

    def address(self, relays: Sequence[str] = ()) -> str:
        return encode_address(AddressPointer(self.kind, self.author_pubkey, self.identifier, tuple(relays)))

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "pubkey": self.author_pubkey,
            "dTag": self.identifier,
            "targetKind": self.target_kind,
            "authors": list(self.authorized_pubkeys),
        }


def build_pointer_event(identifier: str, target_kind: int, authorized_pubkeys: Sequence[str]) -> dict:
    tags: List[List[str]] = [["d", identifier], ["k", str(int(target_kind))]]
    for pubkey in _unique(key.lower() for key in authorized_pubkeys):
        tags.append(["p", pubkey])
    return new_event(POINTER_KIND, "", tags)


def parse_pointer_event(raw: dict, default_target_kind: int = DEFAULT_TARGET_KIND, identifier: str = "") -> PointerRecord:
    target_kind = default_target_kind
    k_value = tag_value(raw, "k")
    if k_value is not None:
        try:
            target_kind = int(k_value)
        except ValueError:
            logger.warning("Pointer has unparsable target kind %r; using %d", k_value, default_target_kind)
    author = str(raw.get("pubkey") or "").lower()
    authorized = _unique(pubkey.lower() for pubkey in tag_values(raw, "p"))
    if author and author not in authorized:
        authorized.insert(0, author)
    created_at = raw.get("created_at")
    return PointerRecord(
        identifier=tag_value(raw, "d") or identifier,
        author_pubkey=author,
        target_kind=target_kind,
        authorized_pubkeys=authorized,
        created_at=created_at if isinstance(created_at, int) else 0,
        event_id=raw.get("id"),
        kind=int(raw.get("kind", POINTER_KIND)),
    )


async def resolve_pointer(
    relay: RelayPool,
    address: AddressPointer,
    default_target_kind: int = DEFAULT_TARGET_KIND,
) -> PointerRecord:
    """Return the newest pointer record published at ``address``."""
    event_filter = EventFilter(kinds=[address.kind], authors=[address.pubkey], identifier=address.identifier)
    candidates = [event for event in await relay.query(event_filter, live=True) if event_filter.matches(event)]
    if not candidates:
        raise PointerNotFound(address)
    selected = newest_event(candidates)
    logger.debug("Resolved pointer %s from %d candidate(s)", address.coordinate, len(candidates))
    return parse_pointer_event(selected, default_target_kind, address.identifier)


async def publish_pointer(relay: RelayPool, signed_event: dict) -> None:
    """Broadcast a signed pointer record exactly as signed."""
    await relay.send(signed_event)

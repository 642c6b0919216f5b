"""Create, fetch, update and list collaborative documents.

Every operation re-resolves its pointer from the relays; nothing is kept
between calls except what the signer holds. Concurrent writers simply publish
competing target events and every reader converges on the newest one.
"""

from __future__ import annotations

import asyncio
import logging
import random
import string
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .adapters import AdapterRegistry, KindAdapter
from .codec import POINTER_KIND, AddressPointer, decode_address, encode_address
from .errors import Forbidden, ResolveError, Unauthenticated
from .events import newest_event, sort_newest_first, tag_value, upsert_single_tag
from .pointer import (
    DEFAULT_TARGET_KIND,
    PointerRecord,
    build_pointer_event,
    parse_pointer_event,
    publish_pointer,
    resolve_pointer,
)
from .resolver import IdentifierResolver
from .transport import EventFilter, Publisher, RelayPool, Signer, with_timeout

logger = logging.getLogger(__name__)

_DOC_ID_ALPHABET = string.ascii_lowercase + string.digits

Address = Union[str, AddressPointer]


def generate_doc_id(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.SystemRandom()
    segments = ["".join(rng.choice(_DOC_ID_ALPHABET) for _ in range(4)) for _ in range(2)]
    return "doc-" + "-".join(segments)


def stamp_back_reference(event: dict, pointer: PointerRecord) -> None:
    upsert_single_tag(event, "a", pointer.coordinate)


@dataclass
class DocumentVersion:
    event_id: str
    author: str
    title: str
    content: str
    created_at: int

    @classmethod
    def from_event(cls, event: dict, adapter: KindAdapter) -> "DocumentVersion":
        created_at = event.get("created_at")
        return cls(
            event_id=str(event.get("id") or ""),
            author=str(event.get("pubkey") or ""),
            title=adapter.get_title(event),
            content=adapter.get_content(event),
            created_at=created_at if isinstance(created_at, int) else 0,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.event_id,
            "author": self.author,
            "title": self.title,
            "content": self.content,
            "created_at": self.created_at,
        }


@dataclass
class ResolvedDocument:
    pointer: PointerRecord
    adapter: KindAdapter
    event: Optional[dict] = None
    version_count: int = 0

    @property
    def title(self) -> Optional[str]:
        return self.adapter.get_title(self.event) if self.event is not None else None

    @property
    def content(self) -> Optional[str]:
        return self.adapter.get_content(self.event) if self.event is not None else None

    @property
    def author(self) -> Optional[str]:
        return self.event.get("pubkey") if self.event is not None else None

    def to_dict(self) -> dict:
        event = None
        if self.event is not None:
            event = {
                "id": self.event.get("id"),
                "pubkey": self.event.get("pubkey"),
                "kind": self.event.get("kind"),
                "title": self.title,
                "content": self.event.get("content", ""),
                "tags": self.event.get("tags", []),
                "created_at": self.event.get("created_at"),
            }
        return {"pointer": self.pointer.to_dict(), "event": event}


@dataclass
class CreateResult:
    address: str
    pointer: PointerRecord
    event: dict
    skipped: List[Tuple[str, ResolveError]] = field(default_factory=list)

    @property
    def skipped_inputs(self) -> List[str]:
        return [value for value, _ in self.skipped]


@dataclass
class DocumentSummary:
    """One row of a document listing."""

    address: str
    pointer: PointerRecord
    title: str
    updated_at: int

    @property
    def author_count(self) -> int:
        return len(self.pointer.authorized_pubkeys) or 1

    def to_dict(self) -> dict:
        return {
            "id": f"{self.pointer.author_pubkey}:{self.pointer.identifier}",
            "title": self.title,
            "authorCount": self.author_count,
            "updatedAt": self.updated_at,
            "naddr": self.address,
            "targetKind": self.pointer.target_kind,
        }


class DocumentProtocol:
    def __init__(
        self,
        relay: RelayPool,
        signer: Optional[Signer] = None,
        *,
        registry: Optional[AdapterRegistry] = None,
        resolver: Optional[IdentifierResolver] = None,
        relay_hints: Sequence[str] = (),
        default_target_kind: int = DEFAULT_TARGET_KIND,
        signer_timeout: Optional[float] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.relay = relay
        self.signer = signer
        self.registry = registry or AdapterRegistry.with_builtins()
        self.resolver = resolver or IdentifierResolver()
        self.relay_hints = list(relay_hints)
        self.default_target_kind = default_target_kind
        self.signer_timeout = signer_timeout
        self.clock = clock

    def _require_signer(self) -> Signer:
        if self.signer is None:
            raise Unauthenticated()
        return self.signer

    async def _current_pubkey(self) -> str:
        signer = self._require_signer()
        pubkey = await with_timeout(signer.get_public_key(), self.signer_timeout, "the signer public key")
        return pubkey.lower()

    def _publisher(self) -> Publisher:
        publisher = Publisher(self.relay, self._require_signer(), timeout=self.signer_timeout)
        if self.clock is not None:
            publisher.clock = self.clock
        return publisher

    @staticmethod
    def _decode(address: Address) -> AddressPointer:
        if isinstance(address, AddressPointer):
            return address
        return decode_address(address)

    async def create(
        self,
        fields: Mapping[str, Any],
        *,
        target_kind: Optional[int] = None,
        collaborators: Sequence[str] = (),
        identifier: Optional[str] = None,
    ) -> CreateResult:
        """Publish a new pointer and the first version of its target event."""
        pubkey = await self._current_pubkey()
        signer = self._require_signer()
        kind = int(target_kind if target_kind is not None else self.default_target_kind)
        identifier = identifier or generate_doc_id()
        # A bad relay hint must fail before anything is published.
        address = encode_address(AddressPointer(POINTER_KIND, pubkey, identifier, tuple(self.relay_hints)))

        resolved, skipped = await self.resolver.resolve_many(
            [value for value in collaborators if value and value.strip()]
        )
        authorized = [pubkey] + [key for key in resolved if key != pubkey]

        pointer_event = build_pointer_event(identifier, kind, authorized)
        signed_pointer = await with_timeout(signer.sign(pointer_event), self.signer_timeout, "the signer")
        logger.info("Publishing collaborative pointer d=%s target kind=%d", identifier, kind)
        await publish_pointer(self.relay, signed_pointer)
        pointer = parse_pointer_event(signed_pointer, kind, identifier)

        adapter = self.registry.lookup(kind)
        event = adapter.build(identifier, fields)
        stamp_back_reference(event, pointer)
        logger.info("Publishing target event kind=%d", kind)
        published = await adapter.publish(event, self._publisher())

        if skipped:
            logger.warning(
                "Skipped %d collaborator(s): %s", len(skipped), ", ".join(value for value, _ in skipped)
            )
        return CreateResult(
            address=address,
            pointer=pointer,
            event=published,
            skipped=skipped,
        )

    async def _target_events(self, pointer: PointerRecord) -> List[dict]:
        event_filter = EventFilter(
            kinds=[pointer.target_kind],
            authors=list(pointer.authorized_pubkeys),
            identifier=pointer.identifier,
        )
        events = await self.relay.query(event_filter, live=True)
        return [event for event in events if event_filter.matches(event)]

    async def fetch(self, address: Address) -> ResolvedDocument:
        """Resolve the pointer at ``address`` and its latest authorized version."""
        decoded = self._decode(address)
        pointer = await resolve_pointer(self.relay, decoded, self.default_target_kind)
        adapter = self.registry.lookup(pointer.target_kind)
        events = await self._target_events(pointer)
        if not events:
            logger.warning("No target events found for %s; nothing published yet", pointer.identifier)
            return ResolvedDocument(pointer=pointer, adapter=adapter)
        logger.debug("Found %d version(s), returning latest", len(events))
        return ResolvedDocument(
            pointer=pointer,
            adapter=adapter,
            event=newest_event(events),
            version_count=len(events),
        )

    async def history(self, address: Address) -> List[DocumentVersion]:
        """Every authorized version of the document, newest first."""
        decoded = self._decode(address)
        pointer = await resolve_pointer(self.relay, decoded, self.default_target_kind)
        adapter = self.registry.lookup(pointer.target_kind)
        events = sort_newest_first(await self._target_events(pointer))
        return [DocumentVersion.from_event(event, adapter) for event in events]

    async def update(self, address: Address, fields: Mapping[str, Any]) -> dict:
        """Publish a new version built from ``fields``.

        The event is built fresh from the full field set; callers that want
        additive behaviour merge with the fetched version first.
        """
        pubkey = await self._current_pubkey()
        decoded = self._decode(address)
        pointer = await resolve_pointer(self.relay, decoded, self.default_target_kind)
        if not pointer.is_authorized(pubkey):
            raise Forbidden(pubkey, pointer.authorized_pubkeys)

        adapter = self.registry.lookup(pointer.target_kind)
        event = adapter.build(pointer.identifier, fields)
        stamp_back_reference(event, pointer)
        logger.info("Publishing updated event kind=%d d=%s", pointer.target_kind, pointer.identifier)
        return await adapter.publish(event, self._publisher())

    async def _summarize(self, pointer: PointerRecord) -> DocumentSummary:
        adapter = self.registry.lookup(pointer.target_kind)
        latest = newest_event(await self._target_events(pointer))
        title = pointer.identifier
        updated_at = pointer.created_at
        if latest is not None:
            if tag_value(latest, "title"):
                title = adapter.get_title(latest)
            if isinstance(latest.get("created_at"), int):
                updated_at = latest["created_at"]
        return DocumentSummary(pointer.address(self.relay_hints), pointer, title, updated_at)

    async def list_documents(self, pubkey: Optional[str] = None) -> List[DocumentSummary]:
        """Documents ``pubkey`` created or collaborates on, most recently updated first.

        Defaults to the signer's public key. Each pointer is reduced to its
        newest record; documents whose newest pointer no longer names
        ``pubkey`` are left out.
        """
        pubkey = pubkey.lower() if pubkey else await self._current_pubkey()
        created, tagged = await asyncio.gather(
            self.relay.query(EventFilter(kinds=[POINTER_KIND], authors=[pubkey]), live=True),
            self.relay.query(EventFilter(kinds=[POINTER_KIND], pubkeys=[pubkey]), live=True),
        )
        by_slot: Dict[Tuple[str, str], List[dict]] = {}
        for event in created + tagged:
            if event.get("kind") != POINTER_KIND or not tag_value(event, "d"):
                continue
            slot = (str(event.get("pubkey") or "").lower(), tag_value(event, "d"))
            by_slot.setdefault(slot, []).append(event)

        pointers = []
        for events in by_slot.values():
            pointer = parse_pointer_event(newest_event(events), self.default_target_kind)
            if pointer.is_authorized(pubkey):
                pointers.append(pointer)
        logger.debug("Found %d document pointer(s) for %s", len(pointers), pubkey)

        summaries = await asyncio.gather(*(self._summarize(pointer) for pointer in pointers))
        return sorted(summaries, key=lambda summary: (-summary.updated_at, summary.pointer.identifier))

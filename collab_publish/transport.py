"""Relay and signer collaborators.

The protocol only needs three capabilities from the outside world: a relay
pool that can answer filters and accept events, a signer, and a publisher that
knows the difference between replaceable and append-only publishing. The
``nostr_sdk`` backed implementations live here; tests swap in fakes.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, TypeVar

from nostr_sdk import Client, Event, EventBuilder, Filter, Keys, Kind, PublicKey, RelayUrl, Tag, Timestamp

from .errors import ConfigError, SignerTimeout
from .events import tag_values

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _now() -> int:
    return int(time.time())


@dataclass
class EventFilter:
    kinds: List[int]
    authors: Optional[List[str]] = None
    identifier: Optional[str] = None
    pubkeys: Optional[List[str]] = None

    def matches(self, event: dict) -> bool:
        if event.get("kind") not in self.kinds:
            return False
        if self.authors is not None and event.get("pubkey") not in self.authors:
            return False
        if self.identifier is not None and self.identifier not in tag_values(event, "d"):
            return False
        if self.pubkeys is not None and not set(self.pubkeys) & set(tag_values(event, "p")):
            return False
        return True

    def to_sdk(self) -> Filter:
        sdk_filter = Filter().kinds([Kind(kind) for kind in self.kinds])
        if self.authors:
            sdk_filter = sdk_filter.authors([PublicKey.parse(author) for author in self.authors])
        if self.identifier is not None:
            sdk_filter = sdk_filter.identifier(self.identifier)
        if self.pubkeys:
            sdk_filter = sdk_filter.pubkeys([PublicKey.parse(pubkey) for pubkey in self.pubkeys])
        return sdk_filter


class RelayPool(Protocol):
    async def query(self, event_filter: EventFilter, live: bool = True) -> List[dict]:
        ...

    async def send(self, event: dict) -> None:
        ...


class Signer(Protocol):
    async def get_public_key(self) -> str:
        ...

    async def sign(self, event: dict) -> dict:
        ...


async def with_timeout(awaitable: Awaitable[T], seconds: Optional[float], what: str) -> T:
    if seconds is None or seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        raise SignerTimeout(f"Timed out after {seconds:g}s waiting for {what}.") from None


def _set_builder_created_at(builder: EventBuilder, created_at: Optional[int]) -> EventBuilder:
    if created_at is None:
        return builder
    return builder.custom_created_at(Timestamp.from_secs(int(created_at)))


def build_event_from_json(payload: dict) -> EventBuilder:
    kind_value = payload.get("kind")
    if kind_value is None:
        raise ValueError("Event is missing required field: kind")
    content = payload.get("content") or ""
    tags_value = payload.get("tags", [])
    if not isinstance(tags_value, list):
        raise ValueError("Event field tags must be a list")

    tags: List[Tag] = []
    for tag in tags_value:
        if not isinstance(tag, list):
            raise ValueError("Each tag must be a list")
        tags.append(Tag.parse([str(item) for item in tag]))

    builder = EventBuilder(Kind(int(kind_value)), content).tags(tags)
    return _set_builder_created_at(builder, payload.get("created_at"))


class KeysSigner:
    """Local signer backed by a secret key (nsec or hex)."""

    def __init__(self, keys: Keys) -> None:
        self._keys = keys

    @classmethod
    def parse(cls, secret: str) -> "KeysSigner":
        if not secret or not secret.strip():
            raise ConfigError("A private key (nsec or hex) is required.")
        try:
            return cls(Keys.parse(secret.strip()))
        except Exception as exc:
            raise ConfigError("privkey must be nsec or hex.") from exc

    async def get_public_key(self) -> str:
        return self._keys.public_key().to_hex()

    async def sign(self, event: dict) -> dict:
        payload = dict(event)
        if payload.get("created_at") is None:
            payload["created_at"] = _now()
        signed = build_event_from_json(payload).sign_with_keys(self._keys)
        return json.loads(signed.as_json())


class NostrRelayPool:
    """Relay pool on top of ``nostr_sdk.Client``.

    Keeps a process-scoped cache of every event seen, keyed by id. Reads with
    ``live=False`` are served from it when it has matches; the document
    protocol always reads live.
    """

    def __init__(self, relays: List[str], *, timeout: float = 10.0) -> None:
        if not relays:
            raise ConfigError("At least one --relay is required.")
        self.relays = list(relays)
        self.timeout = timeout
        self._client: Optional[Client] = None
        self._cache: Dict[str, dict] = {}

    async def connect(self) -> None:
        client = Client()
        for relay in self.relays:
            await client.add_relay(RelayUrl.parse(relay))
        await client.connect()
        self._client = client
        logger.debug("Connected to %d relay(s)", len(self.relays))

    async def disconnect(self) -> None:
        if self._client is None:
            return
        await self._client.disconnect()
        self._client = None

    async def __aenter__(self) -> "NostrRelayPool":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()

    def _require_client(self) -> Client:
        if self._client is None:
            raise RuntimeError("Relay pool is not connected.")
        return self._client

    async def query(self, event_filter: EventFilter, live: bool = True) -> List[dict]:
        if not live:
            cached = [event for event in self._cache.values() if event_filter.matches(event)]
            if cached:
                return cached
        client = self._require_client()
        events = await client.fetch_events(event_filter.to_sdk(), timedelta(seconds=self.timeout))
        results = [json.loads(event.as_json()) for event in events.to_vec()]
        for event in results:
            self._cache[event["id"]] = event
        logger.debug("Query kinds=%s returned %d event(s)", event_filter.kinds, len(results))
        return results

    async def send(self, event: dict) -> None:
        client = self._require_client()
        await client.send_event(Event.from_json(json.dumps(event)))
        if event.get("id"):
            self._cache[event["id"]] = event
        logger.info("Published event kind=%s id=%s", event.get("kind"), event.get("id"))


@dataclass
class Publisher:
    """Signs and sends target events with the right replacement semantics."""

    relay: RelayPool
    signer: Signer
    timeout: Optional[float] = None
    clock: Callable[[], int] = field(default=_now)

    async def _sign(self, event: dict) -> dict:
        return await with_timeout(self.signer.sign(event), self.timeout, "the signer")

    async def publish_replaceable(self, event: dict) -> dict:
        event["created_at"] = self.clock()
        for key in ("id", "sig", "pubkey"):
            event.pop(key, None)
        signed = await self._sign(event)
        await self.relay.send(signed)
        return signed

    async def publish_append(self, event: dict) -> dict:
        if event.get("created_at") is None:
            event["created_at"] = self.clock()
        signed = event if event.get("sig") else await self._sign(event)
        await self.relay.send(signed)
        return signed

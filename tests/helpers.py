"""Test doubles: an in-memory relay, a deterministic signer and a NIP-05 stub."""

import hashlib
import json
from typing import List, Optional

# Real public keys (valid curve points) so bech32 encoding works on them.
ALICE = "79be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
BOB = "3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"
CAROL = "32e1827635450ebb3c5a7d12c1f8e7b2b514439ac10a67eef3d9fd9c5c68e245"
MALLORY = "82341f882b6eabcd2ba7f1ef90aad961cf074af15b9ef44a09f9d2a8fbfbe6a2"

RELAYS = ["wss://relay.damus.io", "wss://nos.lol"]


def event_id(event: dict) -> str:
    serialized = json.dumps(
        [0, event["pubkey"], event["created_at"], event["kind"], event["tags"], event["content"]],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


class FakeSigner:
    def __init__(self, pubkey: str, clock: int = 1_700_000_000) -> None:
        self.pubkey = pubkey
        self.clock = clock
        self.signed: List[dict] = []

    async def get_public_key(self) -> str:
        return self.pubkey

    async def sign(self, event: dict) -> dict:
        signed = dict(event)
        signed["tags"] = [list(tag) for tag in event.get("tags", [])]
        signed["pubkey"] = self.pubkey
        if signed.get("created_at") is None:
            signed["created_at"] = self.clock
        signed["id"] = event_id(signed)
        signed["sig"] = "f" * 128
        self.signed.append(signed)
        return signed


def _slot(event: dict):
    d_tag = next((tag[1] for tag in event.get("tags", []) if len(tag) >= 2 and tag[0] == "d"), "")
    return event["kind"], event.get("pubkey"), d_tag


class FakeRelay:
    """Relay pool double that stores events and answers filters.

    Addressable kinds keep one slot per author, kind and ``d`` tag. ``noise``
    events are returned for every query regardless of the filter, the way a
    misbehaving relay might.
    """

    def __init__(self, events: Optional[List[dict]] = None) -> None:
        self.events: List[dict] = list(events or [])
        self.noise: List[dict] = []
        self.queries = []
        self.sent: List[dict] = []

    async def query(self, event_filter, live=True):
        self.queries.append((event_filter, live))
        return [event for event in self.events if event_filter.matches(event)] + list(self.noise)

    async def send(self, event: dict) -> None:
        self.sent.append(event)
        if 30000 <= event["kind"] < 40000:
            slot = _slot(event)
            current = [stored for stored in self.events if _slot(stored) == slot]
            if any(stored["created_at"] > event["created_at"] for stored in current):
                return
            self.events = [stored for stored in self.events if _slot(stored) != slot]
        self.events.append(event)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None


def make_event(kind: int, pubkey: str, created_at: int, tags, content: str = "") -> dict:
    event = {"kind": kind, "pubkey": pubkey, "created_at": created_at, "tags": tags, "content": content}
    event["id"] = event_id(event)
    event["sig"] = "f" * 128
    return event


class FakeLookup:
    def __init__(self, mapping=None, error: Optional[Exception] = None) -> None:
        self.mapping = mapping or {}
        self.error = error
        self.calls: List[str] = []

    async def __call__(self, identifier: str) -> Optional[str]:
        self.calls.append(identifier)
        if self.error is not None:
            raise self.error
        return self.mapping.get(identifier)

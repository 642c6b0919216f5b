"""NIP-19 address codec.

Encodes and decodes the ``naddr`` permalink that identifies a collaborative
pointer, plus the single-key ``npub`` family used for collaborator input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

from nostr_sdk import Coordinate, Kind, Nip19Coordinate, PublicKey, RelayUrl

from .errors import MalformedAddress, WrongAddressType

POINTER_KIND = 39382

_NIP19_PREFIXES = ("npub", "nsec", "note", "nevent", "nprofile", "naddr", "nrelay")
_BECH32_CHARSET = set("qpzry9x8gf2tvdw0s3jn54khce6mua7l")


def _normalize_relays(relays: Iterable[str]) -> Tuple[str, ...]:
    normalized = []
    for relay in relays:
        value = str(relay).strip().rstrip("/")
        if value:
            normalized.append(value)
    return tuple(normalized)


@dataclass(frozen=True)
class AddressPointer:
    kind: int
    pubkey: str
    identifier: str
    relays: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "pubkey", self.pubkey.lower())
        object.__setattr__(self, "relays", _normalize_relays(self.relays))

    @property
    def coordinate(self) -> str:
        return format_coordinate(self.kind, self.pubkey, self.identifier)


def format_coordinate(kind: int, pubkey: str, identifier: str) -> str:
    return f"{int(kind)}:{pubkey}:{identifier}"


def parse_coordinate(value: str) -> Tuple[int, str, str]:
    parts = value.split(":", 2)
    if len(parts) != 3:
        raise MalformedAddress(f"Not a kind:pubkey:identifier coordinate: {value!r}")
    kind_raw, pubkey, identifier = parts
    try:
        kind = int(kind_raw)
    except ValueError:
        raise MalformedAddress(f"Coordinate kind is not a number: {kind_raw!r}") from None
    return kind, pubkey, identifier


def _strip_uri(value: str) -> str:
    value = value.strip()
    if value.lower().startswith("nostr:"):
        return value[len("nostr:"):]
    return value


def _bech32_prefix(value: str) -> Optional[str]:
    lowered = value.lower()
    separator = lowered.rfind("1")
    if separator < 1:
        return None
    data = lowered[separator + 1:]
    if len(data) < 6 or not set(data) <= _BECH32_CHARSET:
        return None
    return lowered[:separator]


def _expect_family(value: str, expected: str) -> str:
    value = _strip_uri(value)
    prefix = _bech32_prefix(value)
    if prefix is None:
        raise MalformedAddress(f"Not a bech32 string: {value!r}")
    if prefix != expected:
        if prefix in _NIP19_PREFIXES:
            raise WrongAddressType(expected, prefix)
        raise MalformedAddress(f"Unknown bech32 prefix {prefix!r}")
    return value


def encode_address(pointer: AddressPointer) -> str:
    try:
        coordinate = Coordinate(Kind(pointer.kind), PublicKey.parse(pointer.pubkey), pointer.identifier)
        relays = [RelayUrl.parse(relay) for relay in pointer.relays]
        return Nip19Coordinate(coordinate, relays).to_bech32()
    except Exception as exc:
        raise MalformedAddress(f"Cannot encode address: {exc}") from exc


def decode_address(value: str) -> AddressPointer:
    value = _expect_family(value, "naddr")
    try:
        decoded = Nip19Coordinate.from_bech32(value)
    except Exception as exc:
        raise MalformedAddress(f"Invalid naddr: {exc}") from exc
    coordinate = decoded.coordinate()
    return AddressPointer(
        kind=coordinate.kind().as_u16(),
        pubkey=coordinate.public_key().to_hex(),
        identifier=coordinate.identifier(),
        relays=tuple(str(relay) for relay in decoded.relays()),
    )


def encode_npub(pubkey: str) -> str:
    try:
        return PublicKey.parse(pubkey).to_bech32()
    except Exception as exc:
        raise MalformedAddress(f"Invalid public key: {pubkey!r}") from exc


def decode_npub(value: str) -> str:
    value = _expect_family(value, "npub")
    try:
        return PublicKey.parse(value).to_hex()
    except Exception as exc:
        raise MalformedAddress(f"Invalid npub: {exc}") from exc

"""Map user-supplied identifiers (hex, npub, NIP-05) to hex public keys."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple

import httpx

from .codec import decode_npub
from .errors import AddressError, InvalidEncoding, NetworkError, NotFound, ResolveError, UnrecognizedFormat

logger = logging.getLogger(__name__)

_HEX_PUBKEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")

Nip05Resolver = Callable[[str], Awaitable[Optional[str]]]


def is_hex_pubkey(value: str) -> bool:
    return bool(_HEX_PUBKEY_RE.match(value))


class Nip05Lookup:
    """Resolve ``name@domain`` through the domain's ``/.well-known/nostr.json``."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, *, timeout: float = 10.0) -> None:
        self._client = client
        self._timeout = timeout

    async def _get(self, url: str, params: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, params=params)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(url, params=params)

    async def __call__(self, identifier: str) -> Optional[str]:
        name, _, domain = identifier.rpartition("@")
        name = (name or "_").lower()
        domain = domain.strip().lower()
        if not domain:
            return None
        response = await self._get(f"https://{domain}/.well-known/nostr.json", {"name": name})
        if response.status_code == 404:
            return None
        response.raise_for_status()
        data = response.json()
        names = data.get("names") if isinstance(data, dict) else None
        if not isinstance(names, dict):
            return None
        pubkey = names.get(name)
        if not isinstance(pubkey, str) or not is_hex_pubkey(pubkey):
            return None
        return pubkey.lower()


class IdentifierResolver:
    def __init__(self, lookup: Optional[Nip05Resolver] = None) -> None:
        self._lookup = lookup or Nip05Lookup()

    async def resolve(self, value: str) -> str:
        """Resolve ``value`` to a lower-case hex public key.

        Checked in order: 64-char hex, ``npub1`` encoding, ``@`` identifiers
        (NIP-05). Anything else raises ``UnrecognizedFormat``.
        """
        trimmed = (value or "").strip()
        if is_hex_pubkey(trimmed):
            return trimmed.lower()

        if trimmed.lower().startswith("npub1"):
            try:
                return decode_npub(trimmed)
            except AddressError as exc:
                raise InvalidEncoding(trimmed, f"Invalid npub: {trimmed}") from exc

        if "@" in trimmed:
            try:
                pubkey = await self._lookup(trimmed)
            except Exception as exc:
                raise NetworkError(trimmed, f"Failed to resolve {trimmed}: {exc}") from exc
            if not pubkey:
                raise NotFound(trimmed, f"No user found for {trimmed}")
            return pubkey.lower()

        raise UnrecognizedFormat(trimmed)

    async def _resolve_isolated(self, value: str) -> Tuple[str, Optional[str], Optional[ResolveError]]:
        try:
            return value, await self.resolve(value), None
        except ResolveError as exc:
            return value, None, exc

    async def resolve_many(self, values: Iterable[str]) -> Tuple[List[str], List[Tuple[str, ResolveError]]]:
        """Resolve every input concurrently; a bad input never aborts the batch.

        Returns the resolved keys (input order, duplicates removed) and the
        ``(input, error)`` pairs that failed.
        """
        results = await asyncio.gather(*(self._resolve_isolated(value) for value in values))
        resolved: List[str] = []
        skipped: List[Tuple[str, ResolveError]] = []
        for value, pubkey, error in results:
            if error is not None:
                logger.warning("Skipped collaborator %r: %s", value, error)
                skipped.append((value, error))
            elif pubkey not in resolved:
                resolved.append(pubkey)
        return resolved, skipped

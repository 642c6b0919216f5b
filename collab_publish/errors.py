"""Exceptions raised by the collaborative document protocol."""

from __future__ import annotations

from typing import Iterable, Optional


class CollabError(Exception):
    """Base class for every protocol-level failure."""


class ConfigError(CollabError):
    pass


class Unauthenticated(CollabError):
    def __init__(self, message: str = "A signer is required for this operation.") -> None:
        super().__init__(message)


class Forbidden(CollabError):
    def __init__(self, pubkey: str, authorized: Iterable[str]) -> None:
        self.pubkey = pubkey
        self.authorized = list(authorized)
        super().__init__(
            f"{pubkey} is not an authorized author of this document. "
            f"Authorized: {', '.join(self.authorized) or '(none)'}"
        )


class PointerNotFound(CollabError):
    def __init__(self, address: object) -> None:
        self.address = address
        super().__init__("Collaborative pointer not found.")


class AddressError(CollabError):
    pass


class MalformedAddress(AddressError):
    pass


class WrongAddressType(AddressError):
    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected {expected}, got {actual}.")


class ResolveError(CollabError):
    """A collaborator or user identifier could not be mapped to a public key."""

    def __init__(self, value: str, message: Optional[str] = None) -> None:
        self.input = value
        super().__init__(message or f"Could not resolve {value!r}.")


class InvalidEncoding(ResolveError):
    pass


class NotFound(ResolveError):
    pass


class NetworkError(ResolveError):
    pass


class UnrecognizedFormat(ResolveError):
    def __init__(self, value: str) -> None:
        super().__init__(
            value,
            f"Unrecognized identifier format: {value!r}. "
            "Expected a hex pubkey, npub1..., or NIP-05 (user@domain.com).",
        )


class SignerTimeout(CollabError, TimeoutError):
    pass


__all__ = [
    "AddressError",
    "CollabError",
    "ConfigError",
    "Forbidden",
    "InvalidEncoding",
    "MalformedAddress",
    "NetworkError",
    "NotFound",
    "PointerNotFound",
    "ResolveError",
    "SignerTimeout",
    "Unauthenticated",
    "UnrecognizedFormat",
    "WrongAddressType",
]

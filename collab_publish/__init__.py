"""Collaborative (NIP-C1) documents on Nostr relays."""

from .adapters import (
    AdapterRegistry,
    ArticleAdapter,
    GenericAdapter,
    KindAdapter,
    VersionedArticleAdapter,
    WikiAdapter,
    kind_label,
)
from .codec import POINTER_KIND, AddressPointer, decode_address, decode_npub, encode_address, encode_npub
from .documents import CreateResult, DocumentProtocol, DocumentSummary, DocumentVersion, ResolvedDocument
from .pointer import PointerRecord, resolve_pointer
from .resolver import IdentifierResolver, Nip05Lookup

__version__ = "0.1.0"

__all__ = [
    "POINTER_KIND",
    "AdapterRegistry",
    "AddressPointer",
    "ArticleAdapter",
    "CreateResult",
    "DocumentProtocol",
    "DocumentSummary",
    "DocumentVersion",
    "GenericAdapter",
    "IdentifierResolver",
    "KindAdapter",
    "Nip05Lookup",
    "PointerRecord",
    "ResolvedDocument",
    "VersionedArticleAdapter",
    "WikiAdapter",
    "decode_address",
    "decode_npub",
    "encode_address",
    "encode_npub",
    "kind_label",
    "resolve_pointer",
]

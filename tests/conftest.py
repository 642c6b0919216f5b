"""Shared fixtures."""

from typing import Optional

import pytest

from collab_publish.adapters import AdapterRegistry
from collab_publish.documents import DocumentProtocol
from collab_publish.resolver import IdentifierResolver
from helpers import ALICE, CAROL, RELAYS, FakeLookup, FakeRelay, FakeSigner


@pytest.fixture
def relay():
    return FakeRelay()


@pytest.fixture
def lookup():
    return FakeLookup({"carol@example.com": CAROL})


@pytest.fixture
def make_protocol(relay, lookup):
    def factory(signer_pubkey: Optional[str] = ALICE, **kwargs) -> DocumentProtocol:
        signer = FakeSigner(signer_pubkey) if signer_pubkey else None
        kwargs.setdefault("registry", AdapterRegistry.with_builtins())
        kwargs.setdefault("resolver", IdentifierResolver(lookup))
        kwargs.setdefault("relay_hints", RELAYS)
        return DocumentProtocol(relay, signer, **kwargs)

    return factory

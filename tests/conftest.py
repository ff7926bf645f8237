"""
Shared test fixtures for the storekit-jws test suite.

Provides a synthetic certificate chain whose root is pinned in place of
Apple Root CA - G3, and a decoder wired to trust it.
"""

from __future__ import annotations

import pytest

from storekit_jws.adapters.trust_store import PinnedTrustStore
from storekit_jws.pipeline import SignedDataDecoder
from tests.pki import SCENARIO_PAYLOAD, TestChain, build_chain


@pytest.fixture(scope="session")
def chain() -> TestChain:
    """A valid leaf → intermediate → root chain, shared by the session."""
    return build_chain()


@pytest.fixture()
def trust_store(chain: TestChain) -> PinnedTrustStore:
    """A trust store pinning the test root."""
    return PinnedTrustStore(chain.root_pem)


@pytest.fixture()
def decoder(trust_store: PinnedTrustStore) -> SignedDataDecoder:
    """A decoder that trusts the test root and verifies the leaf issuer."""
    return SignedDataDecoder(trust_store=trust_store)


@pytest.fixture()
def scenario_token(chain: TestChain) -> str:
    """The three-field transaction from the reference scenario, signed with ES256."""
    return chain.sign(SCENARIO_PAYLOAD)

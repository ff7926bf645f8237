"""
Ports — Protocol-based contracts between the pipeline and its adapters.

  Pipeline ← Ports (protocols) ← Adapters (cryptography / PyJWT implementations)

Adapters satisfy a port structurally; tests swap in MagicMocks.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec

from storekit_jws.domain.models import TransactionClaims
from storekit_jws.result import Result


@runtime_checkable
class TrustAnchorStore(Protocol):
    """
    Port: the pinned root certificates.

    Returns Result.failure(TRUST_ANCHOR_CORRUPT) if the pinned material
    cannot be parsed. Implementations must be safe to share across threads.
    """

    def anchors(self) -> Result[tuple[x509.Certificate, ...]]: ...


@runtime_checkable
class ChainVerifier(Protocol):
    """
    Port: prove that the intermediate (and optionally the leaf) chains to a pinned root.

    `root` is the certificate presented in the token; it must be one of the
    pinned anchors. Returns Result.success(intermediate) on success.
    """

    def verify(
        self,
        root: x509.Certificate,
        intermediate: x509.Certificate,
        leaf: x509.Certificate | None = None,
        at: datetime | None = None,
    ) -> Result[x509.Certificate]: ...


@runtime_checkable
class KeyResolver(Protocol):
    """
    Port: select the verification key for a declared JWS algorithm.

    Returns the public key together with the algorithm it was validated for.
    """

    def resolve(
        self, algorithm: str, leaf: x509.Certificate
    ) -> Result[tuple[ec.EllipticCurvePublicKey, str]]: ...


@runtime_checkable
class TransactionDecoder(Protocol):
    """Port: verify and decode one signed transaction."""

    def decode_transaction(self, token: str) -> Result[TransactionClaims]: ...

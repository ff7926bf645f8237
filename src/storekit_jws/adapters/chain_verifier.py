"""
Chain verifier — intermediate (and leaf) → pinned root, using cryptography.

Checks performed, in order:
  1. the root presented in x5c is byte-identical to a pinned anchor
  2. the anchor is inside its validity window
  3. the intermediate was issued by that anchor (name chaining + signature)
  4. the intermediate is inside its validity window, is a CA and,
     if it carries KeyUsage, may sign certificates
  5. with verify_leaf_issuer: the leaf was issued by the intermediate and
     is inside its validity window

Step 5 is stricter than verifying the intermediate alone: a token whose leaf
was not issued by the verified intermediate is rejected.
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes

from storekit_jws.domain.ports import TrustAnchorStore
from storekit_jws.failure import ErrorCode
from storekit_jws.result import Result

log = structlog.get_logger()


class ChainError(Exception):
    """A certificate fails one of the path validation checks."""


def _describe(cert: x509.Certificate) -> str:
    return cert.subject.rfc4514_string() or hex(cert.serial_number)


def _check_validity(cert: x509.Certificate, at: datetime, role: str) -> None:
    if at < cert.not_valid_before_utc:
        raise ChainError(f"{role} certificate {_describe(cert)} is not valid before {cert.not_valid_before_utc}")
    if at > cert.not_valid_after_utc:
        raise ChainError(f"{role} certificate {_describe(cert)} expired at {cert.not_valid_after_utc}")


def _check_issued_by(child: x509.Certificate, issuer: x509.Certificate, role: str) -> None:
    try:
        child.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature) as e:
        raise ChainError(f"{role} certificate {_describe(child)} was not issued by {_describe(issuer)}") from e


def _check_ca(cert: x509.Certificate, role: str) -> None:
    try:
        constraints = cert.extensions.get_extension_for_class(x509.BasicConstraints).value
    except x509.ExtensionNotFound as e:
        raise ChainError(f"{role} certificate {_describe(cert)} has no BasicConstraints") from e
    if not constraints.ca:
        raise ChainError(f"{role} certificate {_describe(cert)} is not a CA")
    try:
        key_usage = cert.extensions.get_extension_for_class(x509.KeyUsage).value
    except x509.ExtensionNotFound:
        return
    if not key_usage.key_cert_sign:
        raise ChainError(f"{role} certificate {_describe(cert)} may not sign certificates")


def _match_anchor(
    root: x509.Certificate, anchors: tuple[x509.Certificate, ...]
) -> x509.Certificate:
    fingerprint = root.fingerprint(hashes.SHA256())
    for anchor in anchors:
        if anchor.fingerprint(hashes.SHA256()) == fingerprint:
            return anchor
    raise ChainError(f"Root certificate {_describe(root)} is not a pinned trust anchor")


class X509ChainVerifier:
    """
    Implements the ChainVerifier port.

    Stateless apart from the shared, read-only trust store; safe to call
    from several threads at once.
    """

    def __init__(self, trust_store: TrustAnchorStore, verify_leaf_issuer: bool = True) -> None:
        self._trust_store = trust_store
        self._verify_leaf_issuer = verify_leaf_issuer

    def verify(
        self,
        root: x509.Certificate,
        intermediate: x509.Certificate,
        leaf: x509.Certificate | None = None,
        at: datetime | None = None,
    ) -> Result[x509.Certificate]:
        """
        Verify the chain at instant `at` (defaults to now, UTC).

        Returns Result.success(intermediate), Result.failure(TRUST_ANCHOR_CORRUPT)
        if the pinned roots cannot be loaded, or
        Result.failure(CHAIN_VERIFICATION_FAILED) with the failing check as exception.
        """
        instant = at or datetime.now(UTC)
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        return (
            self._trust_store.anchors()
            .flat_map(
                lambda anchors: Result.from_computation(
                    lambda: self._verify_path(anchors, root, intermediate, leaf, instant),
                    ErrorCode.CHAIN_VERIFICATION_FAILED,
                    "Certificate chain verification failed",
                )
            )
            .peek(lambda cert: log.debug("chain.verified", intermediate=_describe(cert)))
        )

    def _verify_path(
        self,
        anchors: tuple[x509.Certificate, ...],
        root: x509.Certificate,
        intermediate: x509.Certificate,
        leaf: x509.Certificate | None,
        at: datetime,
    ) -> x509.Certificate:
        anchor = _match_anchor(root, anchors)
        _check_validity(anchor, at, "Root")
        _check_issued_by(intermediate, anchor, "Intermediate")
        _check_validity(intermediate, at, "Intermediate")
        _check_ca(intermediate, "Intermediate")
        if self._verify_leaf_issuer and leaf is not None:
            _check_issued_by(leaf, intermediate, "Leaf")
            _check_validity(leaf, at, "Leaf")
        return intermediate

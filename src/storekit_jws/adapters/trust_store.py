"""
Trust anchor store — the pinned root certificate(s).

The default store pins Apple Root CA - G3 (ECDSA P-384, valid until 2039).
Its SHA-256 fingerprint is
63:34:3A:BF:B8:9A:6A:03:EB:B5:7E:9B:3F:5F:A7:BE:7C:4F:5C:75:6F:30:17:B3:A8:C4:88:C3:65:3E:91:79.

Anchors are parsed on first use and cached for the lifetime of the store.
A deployment may pin other roots by building the store from PEM/DER files.
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import cached_property
from pathlib import Path

import structlog
from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding

from storekit_jws.failure import ErrorCode
from storekit_jws.result import Result

log = structlog.get_logger()

APPLE_ROOT_CA_G3_PEM = b"""
-----BEGIN CERTIFICATE-----
MIICQzCCAcmgAwIBAgIILcX8iNLFS5UwCgYIKoZIzj0EAwMwZzEbMBkGA1UEAwwS
QXBwbGUgUm9vdCBDQSAtIEczMSYwJAYDVQQLDB1BcHBsZSBDZXJ0aWZpY2F0aW9u
IEF1dGhvcml0eTETMBEGA1UECgwKQXBwbGUgSW5jLjELMAkGA1UEBhMCVVMwHhcN
MTQwNDMwMTgxOTA2WhcNMzkwNDMwMTgxOTA2WjBnMRswGQYDVQQDDBJBcHBsZSBS
b290IENBIC0gRzMxJjAkBgNVBAsMHUFwcGxlIENlcnRpZmljYXRpb24gQXV0aG9y
aXR5MRMwEQYDVQQKDApBcHBsZSBJbmMuMQswCQYDVQQGEwJVUzB2MBAGByqGSM49
AgEGBSuBBAAiA2IABJjpLz1AcqTtkyJygRMc3RCV8cWjTnHcFBbZDuWmBSp3ZHtf
TjjTuxxEtX/1H7YyYl3J6YRbTzBPEVoA/VhYDKX1DyxNB0cTddqXl5dvMVztK517
IDvYuVTZXpmkOlEKMaNCMEAwHQYDVR0OBBYEFLuw3qFYM4iapIqZ3r6966/ayySr
MA8GA1UdEwEB/wQFMAMBAf8wDgYDVR0PAQH/BAQDAgEGMAoGCCqGSM49BAMDA2gA
MGUCMQCD6cHEFl4aXTQY2e3v9GwOAEZLuN+yRhHFD/3meoyhpmvOwgPUnPWTxnS4
at+qIxUCMG1mihDK1A3UT82NQz60imOlM27jbdoXt2QfyFMm+YhidDkLF1vLUagM
6BgD56KyKA==
-----END CERTIFICATE-----
"""

_PEM_MARKER = b"-----BEGIN CERTIFICATE-----"


def _load_anchor_bundle(pem_bundle: bytes) -> tuple[x509.Certificate, ...]:
    anchors = tuple(x509.load_pem_x509_certificates(pem_bundle))
    if not anchors:
        raise ValueError("no certificates in trust anchor bundle")
    return anchors


class PinnedTrustStore:
    """
    Holds one or more pinned roots as a PEM bundle.

    Implements the TrustAnchorStore port. The parsed anchors are immutable
    and shared by every verification call using this store.
    """

    def __init__(self, pem_bundle: bytes = APPLE_ROOT_CA_G3_PEM) -> None:
        self._pem_bundle = pem_bundle

    @cached_property
    def _parsed(self) -> Result[tuple[x509.Certificate, ...]]:
        result = Result.from_computation(
            lambda: _load_anchor_bundle(self._pem_bundle),
            ErrorCode.TRUST_ANCHOR_CORRUPT,
            "Pinned trust anchor could not be parsed",
        )
        return result.peek(
            lambda anchors: log.debug(
                "trust_store.loaded",
                anchors=[a.subject.rfc4514_string() for a in anchors],
            )
        ).peek_failure(lambda err: log.error("trust_store.corrupt", error=err.message))

    def anchors(self) -> Result[tuple[x509.Certificate, ...]]:
        return self._parsed

    @staticmethod
    def from_files(paths: Iterable[Path]) -> Result[PinnedTrustStore]:
        """
        Build a store from PEM or DER certificate files.

        DER files are re-encoded to PEM so the store always holds a single
        PEM bundle. Unreadable or unparsable files fail with CONFIGURATION_ERROR.
        """
        return Result.all_of(_read_as_pem(path) for path in paths).ensure(
            lambda blocks: len(blocks) > 0,
            ErrorCode.CONFIGURATION_ERROR,
            "No trust root files configured",
        ).map(lambda blocks: PinnedTrustStore(b"\n".join(blocks)))


def _read_as_pem(path: Path) -> Result[bytes]:
    def _read() -> bytes:
        data = path.read_bytes()
        if _PEM_MARKER in data:
            _load_anchor_bundle(data)
            return data
        return x509.load_der_x509_certificate(data).public_bytes(Encoding.PEM)

    return Result.from_computation(
        _read,
        ErrorCode.CONFIGURATION_ERROR,
        f"Trust root file {path} could not be loaded",
    )

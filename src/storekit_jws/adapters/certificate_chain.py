"""
Certificate chain extractor — x5c entries → cryptography X.509 objects.

  token → header (compact_token.decode_header)
        → x5c[index] (standard, padded base64)
        → x509.load_der_x509_certificate()

Positions: 0 = leaf (signing certificate), 1 = intermediate, 2 = root.
"""

from __future__ import annotations

import base64

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec

from storekit_jws.adapters.compact_token import decode_header
from storekit_jws.domain.models import LEAF_INDEX, ROOT_INDEX, JwsHeader
from storekit_jws.failure import ErrorCode
from storekit_jws.result import Result


def _select_entry(header: JwsHeader, index: int) -> Result[str]:
    chain = header.certificate_chain
    if index >= len(chain):
        return Result.failure(
            ErrorCode.INVALID_INDEX,
            f"Certificate chain has {len(chain)} entr{'y' if len(chain) == 1 else 'ies'}, "
            f"no certificate at index {index}",
        )
    return Result.success(chain[index])


def _load_certificate(entry: str, index: int) -> Result[x509.Certificate]:
    return Result.from_computation(
        lambda: base64.b64decode(entry, validate=True),
        ErrorCode.DECODE_ERROR,
        f"x5c[{index}] is not valid base64",
    ).flat_map(
        lambda der: Result.from_computation(
            lambda: x509.load_der_x509_certificate(der),
            ErrorCode.CERT_PARSE_ERROR,
            f"x5c[{index}] is not a DER-encoded X.509 certificate",
        )
    )


def _check_index(index: int) -> Result[int]:
    return Result.success(index).ensure(
        lambda i: 0 <= i <= ROOT_INDEX,
        ErrorCode.INVALID_INDEX,
        f"Certificate index must be between 0 and {ROOT_INDEX}, got {index}",
    )


def certificate_from_header(header: JwsHeader, index: int) -> Result[x509.Certificate]:
    """Parse the certificate at `index` of an already-decoded header."""
    return (
        _check_index(index)
        .flat_map(lambda i: _select_entry(header, i))
        .flat_map(lambda entry: _load_certificate(entry, index))
    )


def extract_certificate(token: str, index: int) -> Result[x509.Certificate]:
    """
    Decode the certificate at position `index` of the token's x5c chain.

    The range check runs before the token is touched, so an index above 2
    fails with INVALID_INDEX whatever the token contains. A chain with
    fewer than index + 1 entries also fails with INVALID_INDEX.
    """
    return _check_index(index).flat_map(
        lambda i: decode_header(token).flat_map(lambda header: certificate_from_header(header, i))
    )


def public_key_of(certificate: x509.Certificate) -> Result[ec.EllipticCurvePublicKey]:
    """Return the certificate's public key if it is an elliptic-curve key."""
    key = certificate.public_key()
    if not isinstance(key, ec.EllipticCurvePublicKey):
        return Result.failure(
            ErrorCode.UNSUPPORTED_KEY_TYPE,
            f"Signing certificate key must be an elliptic-curve key, got {type(key).__name__}",
        )
    return Result.success(key)


def decode_public_key(token: str) -> Result[ec.EllipticCurvePublicKey]:
    """Extract the leaf certificate and return its elliptic-curve public key."""
    return extract_certificate(token, LEAF_INDEX).flat_map(public_key_of)

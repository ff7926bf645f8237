"""
Key resolver — explicit JWS algorithm → key family table.

Only ECDSA algorithms are accepted, and each must match the curve of the
leaf certificate's key:

  ES256 → P-256    ES384 → P-384    ES512 → P-521

A non-EC leaf key is UNSUPPORTED_KEY_TYPE. Any other declared algorithm
("none", HS256, RS256, ...) or a curve mismatch is SIGNATURE_INVALID, since
the token cannot carry a valid signature under this key.
"""

from __future__ import annotations

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec

from storekit_jws.adapters.certificate_chain import public_key_of
from storekit_jws.failure import ErrorCode
from storekit_jws.result import Result

SUPPORTED_ALGORITHMS: dict[str, type[ec.EllipticCurve]] = {
    "ES256": ec.SECP256R1,
    "ES384": ec.SECP384R1,
    "ES512": ec.SECP521R1,
}


class EllipticCurveKeyResolver:
    """Implements the KeyResolver port."""

    def __init__(self, algorithms: dict[str, type[ec.EllipticCurve]] | None = None) -> None:
        self._algorithms = SUPPORTED_ALGORITHMS if algorithms is None else algorithms

    def resolve(
        self, algorithm: str, leaf: x509.Certificate
    ) -> Result[tuple[ec.EllipticCurvePublicKey, str]]:
        return public_key_of(leaf).flat_map(lambda key: self._match(algorithm, key))

    def _match(
        self, algorithm: str, key: ec.EllipticCurvePublicKey
    ) -> Result[tuple[ec.EllipticCurvePublicKey, str]]:
        curve = self._algorithms.get(algorithm)
        if curve is None:
            return Result.failure(
                ErrorCode.SIGNATURE_INVALID,
                f"Algorithm {algorithm!r} is not accepted, expected one of {sorted(self._algorithms)}",
            )
        if not isinstance(key.curve, curve):
            return Result.failure(
                ErrorCode.SIGNATURE_INVALID,
                f"Algorithm {algorithm} requires curve {curve.name}, signing key uses {key.curve.name}",
            )
        return Result.success((key, algorithm))

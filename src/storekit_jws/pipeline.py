"""
Pipeline — verify-then-decode for App Store signed data.

The stages are connected with flat_map, forming a railway:

  split token (3 segments)
    → decode header
      → extract root (x5c[2]) and intermediate (x5c[1]), then leaf (x5c[0])
        → verify chain against the pinned anchors
          → resolve the leaf key for the declared alg
            → strictly decode payload and signature segments
              → verify the signature (PyJWT)
                → validate the payload into the claims model (pydantic)

Each stage returns Result[T]. The first failure short-circuits the rest and
reaches the caller unchanged, so a caller either gets fully verified claims
or a FailureDescription, never claims from an unverified payload.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, TypeVar

import jwt
import structlog
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import BaseModel

from storekit_jws.adapters import certificate_chain
from storekit_jws.adapters.chain_verifier import X509ChainVerifier
from storekit_jws.adapters.compact_token import (
    COMPACT_SEGMENTS,
    decode_header,
    decode_segment,
    split_token,
)
from storekit_jws.adapters.key_resolver import EllipticCurveKeyResolver
from storekit_jws.adapters.trust_store import PinnedTrustStore
from storekit_jws.domain.models import (
    INTERMEDIATE_INDEX,
    LEAF_INDEX,
    ROOT_INDEX,
    JwsHeader,
    TransactionClaims,
)
from storekit_jws.domain.ports import ChainVerifier, KeyResolver, TrustAnchorStore
from storekit_jws.failure import ErrorCode
from storekit_jws.result import Result

log = structlog.get_logger()

C = TypeVar("C", bound=BaseModel)


def _verify_signature(
    token: str, key: ec.EllipticCurvePublicKey, algorithm: str
) -> Result[dict[str, Any]]:
    """
    Check the signature over header.payload and return the payload as a dict.

    PyJWT is restricted to the single algorithm the key resolver accepted.
    Registered time claims (exp, nbf, iat) are checked when present;
    the audience is not. A correctly signed payload that is not a JSON
    object is a DECODE_ERROR.
    """
    try:
        payload = jwt.decode(
            token,
            key=key,
            algorithms=[algorithm],
            options={"verify_aud": False},
        )
    except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as e:
        return Result.failure(ErrorCode.SIGNATURE_INVALID, f"Token signature is invalid: {e}", e)
    except jwt.DecodeError as e:
        return Result.failure(ErrorCode.DECODE_ERROR, f"Token could not be decoded: {e}", e)
    except jwt.InvalidTokenError as e:
        return Result.failure(ErrorCode.CLAIMS_REJECTED, f"Token claims rejected: {e}", e)
    except jwt.PyJWTError as e:
        return Result.failure(
            ErrorCode.SIGNATURE_INVALID, f"Token signature could not be checked: {e}", e
        )
    return Result.success(payload)


def _check_signed_segments(token: str) -> Result[str]:
    """
    Strictly decode the payload and signature segments.

    Any segment that is not canonical base64url fails with SIGNATURE_INVALID.
    """
    _, payload, signature = token.split(".")
    return Result.from_computation(
        lambda: (decode_segment(payload), decode_segment(signature)),
        ErrorCode.SIGNATURE_INVALID,
        "Token payload or signature is not canonical base64url",
    ).map(lambda _: token)


def _validate_claims(payload: dict[str, Any], claims_type: type[C]) -> Result[C]:
    return Result.from_computation(
        lambda: claims_type.model_validate(payload),
        ErrorCode.DECODE_ERROR,
        f"Payload does not match {claims_type.__name__}",
    )


def _verified_leaf(
    header: JwsHeader,
    chain_verifier: ChainVerifier,
    at: datetime | None,
) -> Result[x509.Certificate]:
    """Extract root, intermediate and leaf; verify the chain; return the leaf."""
    return Result.combine(
        certificate_chain.certificate_from_header(header, ROOT_INDEX),
        certificate_chain.certificate_from_header(header, INTERMEDIATE_INDEX),
        lambda root, intermediate: (root, intermediate),
    ).flat_map(
        lambda pair: certificate_chain.certificate_from_header(header, LEAF_INDEX).flat_map(
            lambda leaf: chain_verifier.verify(pair[0], pair[1], leaf, at).map(lambda _: leaf)
        )
    )


def decode_claims(
    token: str,
    claims_type: type[C],
    chain_verifier: ChainVerifier,
    key_resolver: KeyResolver,
    at: datetime | None = None,
) -> Result[C]:
    """
    Verify a signed token and decode its payload into `claims_type`.

    `claims_type` is any pydantic model; TransactionClaims is the usual one.
    `at` pins the instant used for certificate validity windows.

    Returns Result[C] on success, or the failure of the first stage that
    rejected the token.
    """
    return (
        split_token(token)
        .ensure(
            lambda segments: len(segments) == COMPACT_SEGMENTS,
            ErrorCode.MALFORMED_TOKEN,
            lambda segments: f"Token has {len(segments)} segments, expected {COMPACT_SEGMENTS}",
        )
        .flat_map(lambda _: decode_header(token))
        .flat_map(
            lambda header: _verified_leaf(header, chain_verifier, at)
            .flat_map(lambda leaf: key_resolver.resolve(header.algorithm, leaf))
        )
        .flat_map(
            lambda resolved: _check_signed_segments(token).flat_map(
                lambda _: _verify_signature(token, resolved[0], resolved[1])
            )
        )
        .flat_map(lambda payload: _validate_claims(payload, claims_type))
        .peek(lambda claims: log.debug("claims.decoded", claims_type=type(claims).__name__))
        .peek_failure(
            lambda err: log.warning("claims.rejected", code=err.code.value, reason=err.message)
        )
    )


class SignedDataDecoder:
    """
    Facade bundling a trust store, chain verifier and key resolver.

    With no arguments it pins Apple Root CA - G3 and verifies the leaf
    against the intermediate. Instances hold no mutable state and may be
    shared between threads.
    """

    def __init__(
        self,
        trust_store: TrustAnchorStore | None = None,
        chain_verifier: ChainVerifier | None = None,
        key_resolver: KeyResolver | None = None,
        verify_leaf_issuer: bool = True,
    ) -> None:
        self.trust_store = trust_store or PinnedTrustStore()
        self.chain_verifier = chain_verifier or X509ChainVerifier(
            self.trust_store, verify_leaf_issuer=verify_leaf_issuer
        )
        self.key_resolver = key_resolver or EllipticCurveKeyResolver()

    def extract_certificate(self, token: str, index: int) -> Result[x509.Certificate]:
        return certificate_chain.extract_certificate(token, index)

    def decode_public_key(self, token: str) -> Result[ec.EllipticCurvePublicKey]:
        return certificate_chain.decode_public_key(token)

    def verify_chain(
        self,
        root: x509.Certificate,
        intermediate: x509.Certificate,
        leaf: x509.Certificate | None = None,
        at: datetime | None = None,
    ) -> Result[x509.Certificate]:
        return self.chain_verifier.verify(root, intermediate, leaf, at)

    def decode_claims(
        self, token: str, claims_type: type[C], at: datetime | None = None
    ) -> Result[C]:
        return decode_claims(token, claims_type, self.chain_verifier, self.key_resolver, at)

    def decode_transaction(self, token: str) -> Result[TransactionClaims]:
        return self.decode_claims(token, TransactionClaims)

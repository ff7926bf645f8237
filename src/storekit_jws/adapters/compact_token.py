"""
Compact token parser — segment splitting and header decoding.

A compact JWS is `header.payload.signature`, each segment unpadded base64.
Only the header is decoded here; the payload and signature are left to the
signature-verifying decoder so that nothing from the payload is read before
the signature has been checked.
"""

from __future__ import annotations

import base64
import binascii
import json

import structlog

from storekit_jws.domain.models import JwsHeader
from storekit_jws.failure import ErrorCode
from storekit_jws.result import Result

log = structlog.get_logger()

COMPACT_SEGMENTS = 3

_URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")


def split_token(token: str, required: int = COMPACT_SEGMENTS) -> Result[list[str]]:
    """
    Split a compact token on '.' and require at least `required` segments.

    Header extraction only needs the first segment (required=1); full
    verification needs all three.
    """
    if not isinstance(token, str) or not token:
        return Result.failure(ErrorCode.MALFORMED_TOKEN, "Token must be a non-empty string")
    segments = token.split(".")
    if len(segments) < required or not all(segments[:required]):
        return Result.failure(
            ErrorCode.MALFORMED_TOKEN,
            f"Token has {len(segments)} segment(s), expected at least {required}",
        )
    return Result.success(segments)


def decode_segment(segment: str) -> bytes:
    """
    Decode one unpadded base64 segment.

    Accepts the URL-safe and the standard alphabet; rejects '=' padding,
    any character outside the alphabet and non-zero trailing bits, so each
    byte string has exactly one accepted encoding. Raises ValueError.
    """
    if "=" in segment:
        raise ValueError("segment must not carry base64 padding")
    if len(segment) % 4 == 1:
        raise ValueError("segment length is not a valid base64 length")
    standard = segment.translate(_URLSAFE_TO_STANDARD)
    try:
        decoded = base64.b64decode(standard + "=" * (-len(standard) % 4), validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 segment: {e}") from e
    if base64.b64encode(decoded).rstrip(b"=").decode("ascii") != standard:
        raise ValueError("segment is not canonically encoded")
    return decoded


def _parse_header(segment: str) -> JwsHeader:
    return JwsHeader.from_json(json.loads(decode_segment(segment)))


def decode_header(token: str) -> Result[JwsHeader]:
    """
    Decode the JOSE header (first segment) of a compact token.

    Returns Result.failure(MALFORMED_TOKEN) when there is no header segment,
    Result.failure(DECODE_ERROR) when the segment is not base64-encoded JSON
    of the expected shape.
    """
    return (
        split_token(token, required=1)
        .flat_map(
            lambda segments: Result.from_computation(
                lambda: _parse_header(segments[0]),
                ErrorCode.DECODE_ERROR,
                "Failed to decode token header",
            )
        )
        .peek(
            lambda header: log.debug(
                "token.header_decoded",
                alg=header.algorithm,
                chain_length=len(header.certificate_chain),
            )
        )
    )

"""
Failure description — structured error information for the failure track.

Every stage of the verify-then-decode pipeline reports problems as a
FailureDescription carrying one ErrorCode from the taxonomy below. Callers
branch on the code; the message and the preserved exception are for logs.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique


@unique
class ErrorCode(Enum):
    """
    Error taxonomy for signed-token verification.

    Input errors (the token itself is unusable):
      MALFORMED_TOKEN, DECODE_ERROR, INVALID_INDEX, CERT_PARSE_ERROR
    Trust errors (the token is well-formed but must not be trusted):
      CHAIN_VERIFICATION_FAILED, UNSUPPORTED_KEY_TYPE, SIGNATURE_INVALID, CLAIMS_REJECTED
    Deployment errors (nothing the caller sent can fix these):
      TRUST_ANCHOR_CORRUPT, CONFIGURATION_ERROR
    """

    MALFORMED_TOKEN = "MALFORMED_TOKEN"
    """Token does not have the expected dot-separated segment structure."""

    DECODE_ERROR = "DECODE_ERROR"
    """A base64 or JSON/schema deserialization step failed."""

    INVALID_INDEX = "INVALID_INDEX"
    """Requested x5c position is outside {0, 1, 2} or not present in the chain."""

    CERT_PARSE_ERROR = "CERT_PARSE_ERROR"
    """An x5c entry is not a valid DER-encoded X.509 certificate."""

    TRUST_ANCHOR_CORRUPT = "TRUST_ANCHOR_CORRUPT"
    """The pinned root certificate(s) cannot be parsed."""

    CHAIN_VERIFICATION_FAILED = "CHAIN_VERIFICATION_FAILED"
    """The embedded chain does not validate against the pinned root."""

    UNSUPPORTED_KEY_TYPE = "UNSUPPORTED_KEY_TYPE"
    """The leaf certificate's public key is not an elliptic-curve key."""

    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    """Signature mismatch, or the declared algorithm does not fit the leaf key."""

    CLAIMS_REJECTED = "CLAIMS_REJECTED"
    """Signature is valid but a registered time claim (exp, nbf, iat) fails."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Trust roots configured for this deployment could not be loaded."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor: error code, message, optional exception, timestamp.

    >>> desc = FailureDescription(ErrorCode.INVALID_INDEX, "index 3 is out of range")
    >>> desc.code
    <ErrorCode.INVALID_INDEX: 'INVALID_INDEX'>
    """

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def full_stack_trace(self) -> str:
        """Message followed by the formatted exception chain, if any."""
        if self.exception is None:
            return self.message
        tb = "".join(
            traceback.format_exception(type(self.exception), self.exception, self.exception.__traceback__)
        )
        return f"{self.message}\n{tb}"

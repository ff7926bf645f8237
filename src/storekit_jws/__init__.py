"""
storekit_jws — verify and decode App Store signed transactions.

Checks the x5c certificate chain embedded in a compact JWS against a pinned
root (Apple Root CA - G3), verifies the ES256 signature with the leaf key and
only then decodes the payload into typed claims.

Built on a Railway-Oriented Result type: every operation returns
Success(value) or Failure(FailureDescription) instead of raising.

    from storekit_jws import SignedDataDecoder

    result = SignedDataDecoder().decode_transaction(signed_transaction)
    if result:
        claims = result.value()
"""

__version__ = "0.1.0"

from storekit_jws.domain.models import (  # noqa: E402
    Environment,
    InAppOwnershipType,
    JwsHeader,
    OfferType,
    RegisteredClaims,
    RevocationReason,
    TransactionClaims,
    TransactionHistoryResponse,
    TransactionType,
)
from storekit_jws.failure import ErrorCode, FailureDescription  # noqa: E402
from storekit_jws.pipeline import SignedDataDecoder, decode_claims  # noqa: E402
from storekit_jws.result import Failure, Result, Success  # noqa: E402

__all__ = [
    "Environment",
    "ErrorCode",
    "Failure",
    "FailureDescription",
    "InAppOwnershipType",
    "JwsHeader",
    "OfferType",
    "RegisteredClaims",
    "Result",
    "RevocationReason",
    "SignedDataDecoder",
    "Success",
    "TransactionClaims",
    "TransactionHistoryResponse",
    "TransactionType",
    "decode_claims",
]

"""
Domain models — the token header, decoded claims and the history envelope.

JwsHeader is a frozen dataclass derived from the first token segment.
Claims are pydantic models so any caller-defined claims shape can be
validated straight from the decoded payload: the decoder only requires
`model_validate`. Field names are snake_case; the wire names are the
camelCase keys the App Store uses.

Timestamps are epoch milliseconds, kept as plain integers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from storekit_jws.result import Result

if TYPE_CHECKING:
    from storekit_jws.domain.ports import TransactionDecoder

# x5c positions, leaf first
LEAF_INDEX = 0
INTERMEDIATE_INDEX = 1
ROOT_INDEX = 2


@dataclass(frozen=True, slots=True)
class JwsHeader:
    """
    The minimal JOSE header the verifier needs.

    `certificate_chain` holds standard-base64 DER certificates ordered
    leaf → intermediate → root, exactly as they appear in `x5c`.
    """

    algorithm: str
    certificate_chain: tuple[str, ...] = ()

    @staticmethod
    def from_json(obj: Any) -> JwsHeader:
        """Build a header from decoded JSON. Raises ValueError on a wrong shape."""
        if not isinstance(obj, dict):
            raise ValueError(f"header must be a JSON object, got {type(obj).__name__}")
        alg = obj.get("alg")
        if not isinstance(alg, str):
            raise ValueError("header 'alg' must be a string")
        x5c = obj.get("x5c", [])
        if not isinstance(x5c, list) or not all(isinstance(entry, str) for entry in x5c):
            raise ValueError("header 'x5c' must be a list of strings")
        return JwsHeader(algorithm=alg, certificate_chain=tuple(x5c))


# ─────────────────────── Enumerations ───────────────────────


class Environment(StrEnum):
    SANDBOX = "Sandbox"
    PRODUCTION = "Production"


class TransactionType(StrEnum):
    AUTO_RENEWABLE_SUBSCRIPTION = "Auto-Renewable Subscription"
    NON_CONSUMABLE = "Non-Consumable"
    CONSUMABLE = "Consumable"
    NON_RENEWING_SUBSCRIPTION = "Non-Renewing Subscription"


class InAppOwnershipType(StrEnum):
    FAMILY_SHARED = "FAMILY_SHARED"
    PURCHASED = "PURCHASED"


class OfferType(IntEnum):
    INTRODUCTORY_OFFER = 1
    PROMOTIONAL_OFFER = 2
    SUBSCRIPTION_OFFER_CODE = 3


class RevocationReason(IntEnum):
    OTHER = 0
    APP_ISSUE = 1


# ─────────────────────── Claims ───────────────────────


class RegisteredClaims(BaseModel):
    """
    Registered JWT claims (RFC 7519 §4.1).

    Base class for claims shapes. Instances are immutable and ignore
    payload keys they do not declare.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    iss: str | None = None
    sub: str | None = None
    aud: str | list[str] | None = None
    exp: int | None = None
    nbf: int | None = None
    iat: int | None = None
    jti: str | None = None


class TransactionClaims(RegisteredClaims):
    """
    Decoded payload of a signed transaction (JWSTransactionDecodedPayload).

    String-valued enumerations (type, ownership, environment) are kept as the
    raw strings Apple sends so that new values never break decoding; compare
    them against the StrEnum members above.
    """

    transaction_id: str | None = None
    original_transaction_id: str | None = None
    web_order_line_item_id: str | None = None
    bundle_id: str | None = None
    product_id: str | None = None
    subscription_group_identifier: str | None = None
    purchase_date: int | None = None
    original_purchase_date: int | None = None
    expires_date: int | None = None
    quantity: int | None = None
    type: str | None = None
    in_app_ownership_type: str | None = None
    signed_date: int | None = None
    offer_type: int | None = None
    environment: str | None = None
    revocation_reason: int | None = None
    revocation_date: int | None = None

    @property
    def is_revoked(self) -> bool:
        return self.revocation_date is not None


# ─────────────────────── Response envelope ───────────────────────


class TransactionHistoryResponse(BaseModel):
    """
    Response body of the Get Transaction History endpoint.

    Each entry in `signed_transactions` is an independent signed token.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    app_apple_id: int | None = None
    bundle_id: str | None = None
    environment: str | None = None
    has_more: bool = False
    revision: str | None = None
    signed_transactions: list[str] = []

    def decode_transactions(self, decoder: TransactionDecoder) -> Result[list[TransactionClaims]]:
        """
        Verify and decode every non-empty signed transaction.

        Stops at the first token that fails; the failure is returned as-is.
        """
        return Result.all_of(
            decoder.decode_transaction(token) for token in self.signed_transactions if token
        )

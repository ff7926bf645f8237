"""
Synthetic PKI for tests — a self-signed root, an intermediate and a leaf.

The test root stands in for Apple Root CA - G3: tests pin it through
PinnedTrustStore(chain.root_pem). Tokens are signed with PyJWT using the
leaf key and carry the chain in the x5c header, exactly like App Store data.
"""

from __future__ import annotations

import base64
import json
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID

NOW = datetime.now(UTC)
VALID_FROM = NOW - timedelta(days=1)
VALID_UNTIL = NOW + timedelta(days=365)

SCENARIO_PAYLOAD = {
    "transactionId": "1000000123456789",
    "productId": "com.example.sub",
    "quantity": 1,
}

PrivateKey = ec.EllipticCurvePrivateKey | rsa.RSAPrivateKey


def _name(common_name: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "StoreKit Test PKI"),
        ]
    )


def issue_certificate(
    common_name: str,
    subject_key: PrivateKey,
    issuer_key: PrivateKey,
    issuer_name: x509.Name | None = None,
    *,
    ca: bool,
    not_before: datetime = VALID_FROM,
    not_after: datetime = VALID_UNTIL,
    key_cert_sign: bool = True,
) -> x509.Certificate:
    """Issue a certificate; with issuer_name=None it is self-signed."""
    subject = _name(common_name)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_name or subject)
        .public_key(subject_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    if ca:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=False,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=key_cert_sign,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    return builder.sign(issuer_key, hashes.SHA256())


def to_x5c(cert: x509.Certificate) -> str:
    return base64.b64encode(cert.public_bytes(Encoding.DER)).decode("ascii")


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


@dataclass
class TestChain:
    """Keys and certificates for one leaf → intermediate → root chain."""

    __test__ = False

    root_key: PrivateKey
    root: x509.Certificate
    intermediate_key: PrivateKey
    intermediate: x509.Certificate
    leaf_key: PrivateKey
    leaf: x509.Certificate

    @property
    def root_pem(self) -> bytes:
        return self.root.public_bytes(Encoding.PEM)

    def x5c(self) -> list[str]:
        return [to_x5c(self.leaf), to_x5c(self.intermediate), to_x5c(self.root)]

    def sign(
        self,
        payload: dict[str, Any],
        algorithm: str = "ES256",
        x5c: list[str] | None = None,
    ) -> str:
        """Sign `payload` with the leaf key, embedding the chain in x5c."""
        headers = {"x5c": self.x5c() if x5c is None else x5c}
        return jwt.encode(payload, self.leaf_key, algorithm=algorithm, headers=headers)


def build_chain(
    *,
    leaf_key: PrivateKey | None = None,
    intermediate_not_after: datetime = VALID_UNTIL,
    intermediate_not_before: datetime = VALID_FROM,
    intermediate_is_ca: bool = True,
    intermediate_key_cert_sign: bool = True,
    leaf_not_after: datetime = VALID_UNTIL,
) -> TestChain:
    """Build a fresh chain; keyword arguments break individual properties."""
    root_key = ec.generate_private_key(ec.SECP384R1())
    root = issue_certificate("Test Root CA", root_key, root_key, ca=True)
    intermediate_key = ec.generate_private_key(ec.SECP256R1())
    intermediate = issue_certificate(
        "Test Intermediate CA",
        intermediate_key,
        root_key,
        root.subject,
        ca=intermediate_is_ca,
        not_before=intermediate_not_before,
        not_after=intermediate_not_after,
        key_cert_sign=intermediate_key_cert_sign,
    )
    leaf_key = leaf_key or ec.generate_private_key(ec.SECP256R1())
    leaf = issue_certificate(
        "Test Signing Leaf",
        leaf_key,
        intermediate_key,
        intermediate.subject,
        ca=False,
        not_after=leaf_not_after,
    )
    return TestChain(root_key, root, intermediate_key, intermediate, leaf_key, leaf)


def encode_header(header: dict[str, Any]) -> str:
    return b64url(json.dumps(header).encode())


def replace_payload(token: str, payload: dict[str, Any]) -> str:
    """Swap the payload segment, keeping the original header and signature."""
    header, _, signature = token.split(".")
    return ".".join([header, b64url(json.dumps(payload).encode()), signature])


def replace_signature(token: str, signature: bytes) -> str:
    header, payload, _ = token.split(".")
    return ".".join([header, payload, b64url(signature)])


def single_bit_flips(token: str, segment: int) -> Iterator[tuple[int, int, str]]:
    """
    Yield (position, bit, token) for every single-bit flip of one segment.

    Only the seven low bits are flipped, so every variant stays ASCII.
    """
    segments = token.split(".")
    original = segments[segment]
    for position, char in enumerate(original):
        for bit in range(7):
            flipped = chr(ord(char) ^ (1 << bit))
            segments[segment] = original[:position] + flipped + original[position + 1 :]
            yield position, bit, ".".join(segments)

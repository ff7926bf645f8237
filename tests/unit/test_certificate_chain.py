"""
Unit tests for the certificate chain extractor and public-key extraction.

Test categories:
  - Extraction at each x5c position
  - Index range and chain-length boundaries → INVALID_INDEX
  - Bad entries → DECODE_ERROR / CERT_PARSE_ERROR
  - Public key type → UNSUPPORTED_KEY_TYPE for non-EC leaves
"""

from __future__ import annotations

import base64

import pytest
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from storekit_jws.adapters.certificate_chain import decode_public_key, extract_certificate
from storekit_jws.failure import ErrorCode
from tests.assertions import ResultAssertions
from tests.pki import TestChain, build_chain, encode_header, to_x5c


def _token_with_chain(x5c: list[str]) -> str:
    return f"{encode_header({'alg': 'ES256', 'x5c': x5c})}.e30.c2ln"


class TestExtractCertificate:
    @pytest.mark.parametrize(
        ("index", "attribute"),
        [(0, "leaf"), (1, "intermediate"), (2, "root")],
    )
    def test_extracts_each_position(
        self, chain: TestChain, scenario_token: str, index: int, attribute: str
    ) -> None:
        """
        GIVEN a token whose x5c is [leaf, intermediate, root]
        WHEN extracting index 0, 1 and 2
        THEN the matching certificate is returned.
        """
        cert = ResultAssertions.assert_success(extract_certificate(scenario_token, index))
        assert cert == getattr(chain, attribute)

    @pytest.mark.parametrize("index", [3, 4, 100, -1])
    def test_index_out_of_range(self, scenario_token: str, index: int) -> None:
        ResultAssertions.assert_failure(extract_certificate(scenario_token, index), ErrorCode.INVALID_INDEX)

    @pytest.mark.parametrize("token", ["", "garbage", "!!!.@@@.###"])
    def test_index_three_fails_regardless_of_payload(self, token: str) -> None:
        """
        GIVEN any token, even a malformed one
        WHEN extracting index 3
        THEN the result is INVALID_INDEX, checked before the token is decoded.
        """
        ResultAssertions.assert_failure(extract_certificate(token, 3), ErrorCode.INVALID_INDEX)

    def test_index_equal_to_chain_length_is_invalid(self, chain: TestChain) -> None:
        """
        GIVEN a two-entry chain [leaf, intermediate]
        WHEN extracting index 2 (== len(chain))
        THEN the result is INVALID_INDEX rather than an out-of-range crash.
        """
        token = _token_with_chain([to_x5c(chain.leaf), to_x5c(chain.intermediate)])
        ResultAssertions.assert_failure(extract_certificate(token, 2), ErrorCode.INVALID_INDEX)

    def test_last_valid_index_of_short_chain(self, chain: TestChain) -> None:
        token = _token_with_chain([to_x5c(chain.leaf), to_x5c(chain.intermediate)])
        cert = ResultAssertions.assert_success(extract_certificate(token, 1))
        assert cert == chain.intermediate

    def test_missing_chain_is_invalid_index(self) -> None:
        token = f"{encode_header({'alg': 'ES256'})}.e30.c2ln"
        ResultAssertions.assert_failure(extract_certificate(token, 0), ErrorCode.INVALID_INDEX)

    def test_entry_not_base64_is_decode_error(self) -> None:
        token = _token_with_chain(["not base64!"])
        ResultAssertions.assert_failure(extract_certificate(token, 0), ErrorCode.DECODE_ERROR)

    def test_entry_not_der_is_cert_parse_error(self) -> None:
        token = _token_with_chain([base64.b64encode(b"\x30\x03\x02\x01\x01").decode()])
        ResultAssertions.assert_failure(extract_certificate(token, 0), ErrorCode.CERT_PARSE_ERROR)

    def test_malformed_header_propagates(self) -> None:
        ResultAssertions.assert_failure(extract_certificate("!!!!.e30.c2ln", 0), ErrorCode.DECODE_ERROR)

    def test_extraction_is_pure(self, scenario_token: str) -> None:
        """
        GIVEN the same token and index
        WHEN extracting twice
        THEN the certificates are equal and DER-identical.
        """
        first = ResultAssertions.assert_success(extract_certificate(scenario_token, 1))
        second = ResultAssertions.assert_success(extract_certificate(scenario_token, 1))
        assert first == second
        assert first.tbs_certificate_bytes == second.tbs_certificate_bytes


class TestDecodePublicKey:
    def test_returns_leaf_ec_key(self, chain: TestChain, scenario_token: str) -> None:
        key = ResultAssertions.assert_success(decode_public_key(scenario_token))
        assert isinstance(key, ec.EllipticCurvePublicKey)
        assert key.public_numbers() == chain.leaf_key.public_key().public_numbers()

    def test_rsa_leaf_is_unsupported(self) -> None:
        """
        GIVEN a chain whose leaf carries an RSA key
        WHEN the public key is decoded
        THEN the result is UNSUPPORTED_KEY_TYPE.
        """
        rsa_chain = build_chain(leaf_key=rsa.generate_private_key(public_exponent=65537, key_size=2048))
        token = rsa_chain.sign({"quantity": 1}, algorithm="RS256")
        error = ResultAssertions.assert_failure(decode_public_key(token), ErrorCode.UNSUPPORTED_KEY_TYPE)
        assert "elliptic-curve" in error.message

"""Unit tests for webhook signature verification."""

from __future__ import annotations

import secrets
import urllib.parse

import pytest

from hookrelay.signature import (
    PayloadError,
    SignatureError,
    compute_signature,
    validate_payload,
    verify_signature,
)
from tests.helpers.webhooks import PUSH_PAYLOAD, sign

_SECRET = secrets.token_hex(8)


class TestVerifySignature:
    """Tests for verify_signature."""

    @pytest.mark.parametrize("algorithm", ["sha1", "sha256", "sha512"])
    def test_accepts_valid_signature(self, algorithm: str) -> None:
        """A correct signature returns the payload unchanged."""
        signature = sign(PUSH_PAYLOAD, _SECRET, algorithm=algorithm)

        assert verify_signature(PUSH_PAYLOAD, _SECRET, signature) == PUSH_PAYLOAD

    def test_verification_is_repeatable(self) -> None:
        """Verifying the same input twice gives the same result."""
        signature = sign(PUSH_PAYLOAD, _SECRET)

        first = verify_signature(PUSH_PAYLOAD, _SECRET, signature)
        second = verify_signature(PUSH_PAYLOAD, _SECRET, signature)

        assert first == second == PUSH_PAYLOAD

    def test_rejects_wrong_secret(self) -> None:
        """A signature made with another secret is a mismatch."""
        signature = sign(PUSH_PAYLOAD, "some-other-secret")

        with pytest.raises(SignatureError, match="signature check failed"):
            verify_signature(PUSH_PAYLOAD, _SECRET, signature)

    def test_rejects_tampered_payload(self) -> None:
        """Changing one byte of the body invalidates the signature."""
        signature = sign(PUSH_PAYLOAD, _SECRET)

        with pytest.raises(SignatureError):
            verify_signature(PUSH_PAYLOAD + b" ", _SECRET, signature)

    @pytest.mark.parametrize("header", [None, ""])
    def test_rejects_missing_signature(self, header: str | None) -> None:
        """Requests without a signature are rejected."""
        with pytest.raises(SignatureError, match="missing signature"):
            verify_signature(PUSH_PAYLOAD, _SECRET, header)

    @pytest.mark.parametrize("header", ["sha256", "sha256=", "sha256=zzzz", "abc"])
    def test_rejects_malformed_signature(self, header: str) -> None:
        """Headers not in <algo>=<hex> form are rejected."""
        with pytest.raises(SignatureError, match="error parsing signature"):
            verify_signature(PUSH_PAYLOAD, _SECRET, header)

    def test_rejects_unknown_algorithm(self) -> None:
        """Only the algorithms GitHub uses are accepted."""
        with pytest.raises(SignatureError, match="unsupported signature algorithm"):
            verify_signature(PUSH_PAYLOAD, _SECRET, "md5=00ff")


def test_compute_signature_matches_github_format() -> None:
    """compute_signature produces the header value GitHub sends."""
    assert compute_signature(PUSH_PAYLOAD, _SECRET) == sign(PUSH_PAYLOAD, _SECRET)


class TestValidatePayload:
    """Tests for validate_payload."""

    def test_json_body_is_the_payload(self) -> None:
        """JSON deliveries return the raw body."""
        payload = validate_payload(
            PUSH_PAYLOAD,
            _SECRET,
            content_type="application/json; charset=utf-8",
            signature_256=sign(PUSH_PAYLOAD, _SECRET),
        )

        assert payload == PUSH_PAYLOAD

    def test_prefers_sha256_header(self) -> None:
        """A valid SHA-256 header wins over a bad SHA-1 header."""
        payload = validate_payload(
            PUSH_PAYLOAD,
            _SECRET,
            content_type="application/json",
            signature_256=sign(PUSH_PAYLOAD, _SECRET),
            signature_1="sha1=00",
        )

        assert payload == PUSH_PAYLOAD

    def test_falls_back_to_sha1_header(self) -> None:
        """Legacy deliveries signed only with SHA-1 are accepted."""
        payload = validate_payload(
            PUSH_PAYLOAD,
            _SECRET,
            content_type="application/json",
            signature_1=sign(PUSH_PAYLOAD, _SECRET, algorithm="sha1"),
        )

        assert payload == PUSH_PAYLOAD

    def test_form_body_yields_payload_field(self) -> None:
        """Form deliveries are signed over the raw body, payload is extracted."""
        body = urllib.parse.urlencode({"payload": PUSH_PAYLOAD.decode()}).encode()

        payload = validate_payload(
            body,
            _SECRET,
            content_type="application/x-www-form-urlencoded",
            signature_256=sign(body, _SECRET),
        )

        assert payload == PUSH_PAYLOAD

    def test_form_body_without_payload_field(self) -> None:
        """A signed form without a payload field is a payload error."""
        body = b"other=1"

        with pytest.raises(PayloadError, match="no payload field"):
            validate_payload(
                body,
                _SECRET,
                content_type="application/x-www-form-urlencoded",
                signature_256=sign(body, _SECRET),
            )

    @pytest.mark.parametrize("body", [b"payload=%FF%FE", b"payload=\xff"])
    def test_form_body_with_invalid_utf8_is_rejected(self, body: bytes) -> None:
        """Form bodies that do not decode as UTF-8 are refused, not repaired."""
        with pytest.raises(PayloadError, match="not valid UTF-8"):
            validate_payload(
                body,
                _SECRET,
                content_type="application/x-www-form-urlencoded",
                signature_256=sign(body, _SECRET),
            )

    @pytest.mark.parametrize("content_type", [None, "text/plain"])
    def test_rejects_unsupported_content_type(self, content_type: str | None) -> None:
        """Only JSON and form deliveries are accepted."""
        with pytest.raises(PayloadError, match="unsupported Content-Type"):
            validate_payload(
                PUSH_PAYLOAD,
                _SECRET,
                content_type=content_type,
                signature_256=sign(PUSH_PAYLOAD, _SECRET),
            )

    def test_bad_signature_is_not_a_payload_error(self) -> None:
        """Authentication failures stay distinct from payload failures."""
        with pytest.raises(SignatureError):
            validate_payload(
                PUSH_PAYLOAD,
                _SECRET,
                content_type="application/json",
                signature_256=sign(PUSH_PAYLOAD, "wrong"),
            )

"""Webhook payload authentication.

GitHub signs each delivery with an HMAC of the raw request body keyed by
the webhook secret, sent as ``X-Hub-Signature-256: sha256=<hex>`` and, for
older integrations, ``X-Hub-Signature: sha1=<hex>``. The payload is only
handed on after the signature has been checked in constant time.
"""

from __future__ import annotations

import hashlib
import hmac
import urllib.parse

SHA256_SIGNATURE_HEADER = "X-Hub-Signature-256"
SHA1_SIGNATURE_HEADER = "X-Hub-Signature"
EVENT_TYPE_HEADER = "X-GitHub-Event"
DELIVERY_ID_HEADER = "X-GitHub-Delivery"

_ALGORITHMS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
}

_JSON_CONTENT_TYPE = "application/json"
_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class SignatureError(ValueError):
    """Raised when a payload signature is missing, malformed, or wrong."""

    @classmethod
    def missing(cls) -> SignatureError:
        """Return an error for a request without a signature header."""
        return cls("missing signature")

    @classmethod
    def malformed(cls, header: str) -> SignatureError:
        """Return an error for a header not in ``<algo>=<hex>`` form."""
        return cls(f"error parsing signature {header!r}")

    @classmethod
    def unsupported(cls, algorithm: str) -> SignatureError:
        """Return an error for an unknown hash algorithm."""
        return cls(f"unsupported signature algorithm {algorithm!r}")

    @classmethod
    def mismatch(cls) -> SignatureError:
        """Return an error for a signature that does not match the payload."""
        return cls("payload signature check failed")


class PayloadError(ValueError):
    """Raised when a signed body does not contain a usable payload."""

    @classmethod
    def unsupported_content_type(cls, content_type: str) -> PayloadError:
        """Return an error for a content type GitHub does not send."""
        return cls(f"webhook request has unsupported Content-Type {content_type!r}")

    @classmethod
    def missing_form_payload(cls) -> PayloadError:
        """Return an error for a form body without a ``payload`` field."""
        return cls("form-encoded webhook request has no payload field")

    @classmethod
    def undecodable_form(cls, detail: object) -> PayloadError:
        """Return an error for a form body that is not valid UTF-8."""
        return cls(f"form-encoded webhook request is not valid UTF-8: {detail}")


def compute_signature(payload: bytes, secret: str, *, algorithm: str = "sha256") -> str:
    """Return the ``<algo>=<hex>`` signature GitHub would send for ``payload``."""
    digestmod = _ALGORITHMS[algorithm]
    mac = hmac.new(secret.encode("utf-8"), payload, digestmod)
    return f"{algorithm}={mac.hexdigest()}"


def _split_signature(header: str) -> tuple[str, bytes]:
    algorithm, sep, hex_digest = header.partition("=")
    if not sep or not hex_digest:
        raise SignatureError.malformed(header)
    if algorithm not in _ALGORITHMS:
        raise SignatureError.unsupported(algorithm)
    try:
        return algorithm, bytes.fromhex(hex_digest)
    except ValueError as exc:
        raise SignatureError.malformed(header) from exc


def verify_signature(payload: bytes, secret: str, signature: str | None) -> bytes:
    """Check ``signature`` against ``payload`` and return the payload.

    The check has no side effects: verifying the same input twice gives
    the same outcome.

    Raises
    ------
    SignatureError
        If the signature is absent, malformed, or does not match.

    """
    if not signature:
        raise SignatureError.missing()
    algorithm, claimed = _split_signature(signature.strip())
    expected = hmac.new(secret.encode("utf-8"), payload, _ALGORITHMS[algorithm])
    if not hmac.compare_digest(expected.digest(), claimed):
        raise SignatureError.mismatch()
    return payload


def _media_type(content_type: str | None) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def validate_payload(
    body: bytes,
    secret: str,
    *,
    content_type: str | None,
    signature_256: str | None = None,
    signature_1: str | None = None,
) -> bytes:
    """Authenticate a webhook body and extract its JSON payload.

    ``X-Hub-Signature-256`` is preferred when both headers are present.
    The signature always covers the raw body; for form-encoded deliveries
    the JSON document is then read from the ``payload`` field.

    Raises
    ------
    SignatureError
        If authentication fails. No payload is returned in that case.
    PayloadError
        If the body's content type is not one GitHub delivers, or a form
        body is not valid UTF-8.

    """
    media_type = _media_type(content_type)
    if media_type not in (_JSON_CONTENT_TYPE, _FORM_CONTENT_TYPE):
        raise PayloadError.unsupported_content_type(content_type or "")

    verify_signature(body, secret, signature_256 or signature_1)

    if media_type == _JSON_CONTENT_TYPE:
        return body

    try:
        form = urllib.parse.parse_qs(
            body.decode("utf-8"), keep_blank_values=True, errors="strict"
        )
    except UnicodeDecodeError as exc:
        raise PayloadError.undecodable_form(exc) from exc
    values = form.get("payload")
    if not values:
        raise PayloadError.missing_form_payload()
    return values[0].encode("utf-8")


__all__ = [
    "DELIVERY_ID_HEADER",
    "EVENT_TYPE_HEADER",
    "SHA1_SIGNATURE_HEADER",
    "SHA256_SIGNATURE_HEADER",
    "PayloadError",
    "SignatureError",
    "compute_signature",
    "validate_payload",
    "verify_signature",
]

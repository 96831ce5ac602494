"""hookrelay: a short-lived GitHub webhook responder.

hookrelay registers a temporary webhook with an unguessable callback path
and a fresh secret, verifies every delivery's signature, answers GitHub's
ping handshake, fans other events out to handlers without delaying the
HTTP response, and deletes the webhook again on shutdown.
"""

from __future__ import annotations

from hookrelay.dispatch import DeliveryContext, Dispatcher, HookHandler
from hookrelay.identity import CallbackIdentity, build_callback_identity
from hookrelay.responder import (
    ActiveRegistration,
    HookLease,
    Registration,
    Responder,
    ShutdownReason,
)
from hookrelay.signature import SignatureError, validate_payload, verify_signature

__all__ = [
    "ActiveRegistration",
    "CallbackIdentity",
    "DeliveryContext",
    "Dispatcher",
    "HookHandler",
    "HookLease",
    "Registration",
    "Responder",
    "ShutdownReason",
    "SignatureError",
    "build_callback_identity",
    "validate_payload",
    "verify_signature",
]

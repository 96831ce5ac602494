"""Behavioural coverage for the webhook callback endpoint."""

from __future__ import annotations

import asyncio
import typing as typ

import falcon.testing
import pytest
from pytest_bdd import given, parsers, scenario, then, when

from hookrelay.api.app import AppDependencies, create_app
from hookrelay.dispatch import Dispatcher
from tests.helpers.webhooks import PING_PAYLOAD, PUSH_PAYLOAD, signed_headers

if typ.TYPE_CHECKING:
    from falcon.testing.client import Result

    from hookrelay.dispatch import DeliveryContext

_SECRET = "c0ffee"
_PATH = "/gh-callback/6ba7b810-9dad-11d1-80b4-00c04fd430c8"


class CallbackContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    app: object
    dispatcher: Dispatcher
    calls: list[tuple[str, str, bytes]]
    response: Result


@scenario("../webhook_callback.feature", "Ping is answered with its zen greeting")
def test_ping_answered() -> None:
    """Wrap the pytest-bdd scenario for ping handshakes."""


@scenario("../webhook_callback.feature", "Push is acknowledged and fanned out")
def test_push_fanned_out() -> None:
    """Wrap the pytest-bdd scenario for push fan-out."""


@scenario(
    "../webhook_callback.feature",
    "Delivery signed with the wrong secret is rejected",
)
def test_wrong_secret_rejected() -> None:
    """Wrap the pytest-bdd scenario for signature rejection."""


@scenario("../webhook_callback.feature", "Unknown paths are not found")
def test_unknown_path_not_found() -> None:
    """Wrap the pytest-bdd scenario for the catch-all 404."""


@pytest.fixture
def callback_context() -> CallbackContext:
    """Provide empty scenario state."""
    return {}


@given("a callback app with a recording handler")
def given_callback_app(callback_context: CallbackContext) -> None:
    """Build the app around a handler that records deliveries."""
    calls: list[tuple[str, str, bytes]] = []

    async def record(
        context: DeliveryContext, event_type: str, delivery_id: str, payload: bytes
    ) -> None:
        calls.append((event_type, delivery_id, payload))

    dispatcher = Dispatcher([record])
    callback_context["calls"] = calls
    callback_context["dispatcher"] = dispatcher
    callback_context["app"] = create_app(
        AppDependencies(dispatcher=dispatcher, callback_path=_PATH, secret=_SECRET)
    )


def _deliver(
    callback_context: CallbackContext, payload: bytes, headers: dict[str, str]
) -> None:
    dispatcher = callback_context["dispatcher"]

    async def _run() -> Result:
        async with falcon.testing.ASGIConductor(callback_context["app"]) as conductor:
            result = await conductor.simulate_post(_PATH, body=payload, headers=headers)
            await dispatcher.drain(1.0)
            return result

    callback_context["response"] = asyncio.run(_run())


@when("GitHub delivers a signed ping")
def when_signed_ping(callback_context: CallbackContext) -> None:
    """Post a correctly signed ping."""
    _deliver(
        callback_context,
        PING_PAYLOAD,
        signed_headers(PING_PAYLOAD, _SECRET, event_type="ping"),
    )


@when("GitHub delivers a signed push")
def when_signed_push(callback_context: CallbackContext) -> None:
    """Post a correctly signed push."""
    _deliver(
        callback_context,
        PUSH_PAYLOAD,
        signed_headers(PUSH_PAYLOAD, _SECRET, event_type="push", delivery_id="bdd-1"),
    )


@when("a push signed with the wrong secret is delivered")
def when_wrong_secret(callback_context: CallbackContext) -> None:
    """Post a push signed with another secret."""
    _deliver(
        callback_context,
        PUSH_PAYLOAD,
        signed_headers(PUSH_PAYLOAD, "not-the-secret", event_type="push"),
    )


@when(parsers.parse("I request GET {path}"))
def when_request_get(callback_context: CallbackContext, path: str) -> None:
    """Issue a GET request to the given path."""
    client = falcon.testing.TestClient(callback_context["app"])
    callback_context["response"] = client.simulate_get(path)


@then(parsers.parse("the response status is {status:d}"))
def then_status(callback_context: CallbackContext, status: int) -> None:
    """Assert the response status code."""
    assert callback_context["response"].status_code == status


@then(parsers.parse('the response body is "{body}"'))
def then_body(callback_context: CallbackContext, body: str) -> None:
    """Assert the response body, with ``\\n`` standing for a newline."""
    assert callback_context["response"].text == body.replace("\\n", "\n")


@then("the response body is empty")
def then_body_empty(callback_context: CallbackContext) -> None:
    """Assert the response carried no body."""
    assert callback_context["response"].content == b""


@then("no handler was called")
def then_no_handler(callback_context: CallbackContext) -> None:
    """Assert the recording handler saw nothing."""
    assert callback_context["calls"] == []


@then("the handler received the push delivery")
def then_handler_received(callback_context: CallbackContext) -> None:
    """Assert the handler saw the push exactly once."""
    assert callback_context["calls"] == [("push", "bdd-1", PUSH_PAYLOAD)]

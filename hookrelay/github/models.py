"""Typed GitHub payloads used by the registrar and the dispatcher."""

from __future__ import annotations

import typing as typ

import msgspec


class HookRecord(msgspec.Struct, kw_only=True, frozen=True):
    """Subset of the repository webhook returned by ``POST .../hooks``."""

    id: int
    url: str = ""
    active: bool = True


class PingHook(msgspec.Struct, kw_only=True, frozen=True):
    """The ``hook`` object embedded in a ping event."""

    id: int | None = None
    type: str | None = None
    events: list[str] = msgspec.field(default_factory=list)


class PingEvent(msgspec.Struct, kw_only=True, frozen=True):
    """The handshake GitHub sends right after a webhook is created.

    ``zen`` is the greeting echoed back to GitHub verbatim.
    """

    zen: str
    hook_id: int | None = None
    hook: PingHook | None = None


class HookConfigBody(msgspec.Struct, kw_only=True, frozen=True):
    """``config`` object of a hook creation request."""

    url: str
    secret: str
    content_type: typ.Literal["json"] = "json"
    insecure_ssl: str = "0"


class CreateHookBody(msgspec.Struct, kw_only=True, frozen=True):
    """Request body for ``POST /repos/{owner}/{repo}/hooks``."""

    events: list[str]
    config: HookConfigBody
    name: str = "web"
    active: bool = True

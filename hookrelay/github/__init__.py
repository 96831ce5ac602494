"""GitHub repository webhook client and payload models."""

from __future__ import annotations

from .client import GitHubHooksClient, GitHubHooksConfig, HookRegistrar
from .errors import GitHubAPIError, GitHubConfigError, GitHubResponseShapeError
from .models import HookRecord, PingEvent

__all__ = [
    "GitHubAPIError",
    "GitHubConfigError",
    "GitHubHooksClient",
    "GitHubHooksConfig",
    "GitHubResponseShapeError",
    "HookRecord",
    "HookRegistrar",
    "PingEvent",
]

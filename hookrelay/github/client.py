"""GitHub REST client for creating and deleting repository webhooks."""

from __future__ import annotations

import dataclasses
import os
import typing as typ

import httpx
import msgspec

from .errors import GitHubAPIError, GitHubConfigError, GitHubResponseShapeError
from .models import CreateHookBody, HookConfigBody, HookRecord

if typ.TYPE_CHECKING:
    import collections.abc as cabc


class HookRegistrar(typ.Protocol):
    """Interface the responder uses to manage its remote webhook."""

    async def create_hook(
        self,
        owner: str,
        name: str,
        *,
        events: cabc.Sequence[str],
        callback_url: str,
        secret: str,
    ) -> HookRecord:
        """Create a webhook and return the record GitHub assigned."""
        ...

    async def delete_hook(self, owner: str, name: str, hook_id: int) -> None:
        """Delete the webhook identified by ``hook_id``."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubHooksConfig:
    """Configuration for the GitHub REST API client."""

    token: str
    api_url: str = "https://api.github.com"
    timeout_s: float = 20.0
    user_agent: str = "hookrelay/0.1"

    @classmethod
    def from_env(cls) -> GitHubHooksConfig:
        """Build configuration from ``HOOKRELAY_GITHUB_TOKEN``.

        ``GITHUB_TOKEN`` is accepted as a fallback so the responder runs
        unchanged inside GitHub Actions. ``HOOKRELAY_API_URL`` overrides the
        API root for GitHub Enterprise.
        """
        token = (
            os.environ.get("HOOKRELAY_GITHUB_TOKEN", "").strip()
            or os.environ.get("GITHUB_TOKEN", "").strip()
        )
        if not token:
            raise GitHubConfigError.missing_token()
        api_url = os.environ.get("HOOKRELAY_API_URL", "").strip()
        if api_url:
            return cls(token=token, api_url=api_url.rstrip("/"))
        return cls(token=token)


_HTTP_SUCCESS_MIN = 200
_HTTP_SUCCESS_MAX = 299


def _is_success(status_code: int) -> bool:
    return _HTTP_SUCCESS_MIN <= status_code <= _HTTP_SUCCESS_MAX


class GitHubHooksClient:
    """GitHub REST implementation of :class:`HookRegistrar`."""

    def __init__(
        self,
        config: GitHubHooksConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with the provided API configuration."""
        if not config.token.strip():
            raise GitHubConfigError.empty_token()

        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "Authorization": f"Bearer {config.token}",
                "User-Agent": config.user_agent,
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def _hooks_url(self, owner: str, name: str) -> str:
        return f"{self._config.api_url}/repos/{owner}/{name}/hooks"

    async def _request(
        self,
        action: str,
        method: str,
        url: str,
        *,
        content: bytes | None = None,
    ) -> httpx.Response:
        headers = {"Content-Type": "application/json"} if content is not None else None
        try:
            response = await self._client.request(
                method, url, content=content, headers=headers
            )
        except httpx.HTTPError as exc:
            raise GitHubAPIError.transport(action, exc) from exc
        if not _is_success(response.status_code):
            raise GitHubAPIError.http_error(
                action, response.status_code, response.reason_phrase
            )
        return response

    async def create_hook(
        self,
        owner: str,
        name: str,
        *,
        events: cabc.Sequence[str],
        callback_url: str,
        secret: str,
    ) -> HookRecord:
        """Create a JSON webhook delivering ``events`` to ``callback_url``.

        Any status outside 2xx is treated as a failure even though the HTTP
        exchange itself completed.
        """
        body = CreateHookBody(
            events=list(events),
            config=HookConfigBody(url=callback_url, secret=secret),
        )
        response = await self._request(
            "create hook",
            "POST",
            self._hooks_url(owner, name),
            content=msgspec.json.encode(body),
        )
        try:
            return msgspec.json.decode(response.content, type=HookRecord)
        except msgspec.DecodeError as exc:
            raise GitHubResponseShapeError.undecodable("create hook", exc) from exc

    async def delete_hook(self, owner: str, name: str, hook_id: int) -> None:
        """Delete the webhook ``hook_id`` from ``owner/name``."""
        await self._request(
            "delete webhook",
            "DELETE",
            f"{self._hooks_url(owner, name)}/{hook_id}",
        )


__all__ = ["GitHubHooksClient", "GitHubHooksConfig", "HookRegistrar"]

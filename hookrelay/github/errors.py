"""Errors raised while talking to the GitHub hooks API."""

from __future__ import annotations


class GitHubAPIError(RuntimeError):
    """Raised when a GitHub API call fails or returns a non-success status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, action: str, status_code: int, reason: str) -> GitHubAPIError:
        """Return an error for a non-2xx response to ``action``."""
        return cls(
            f"failed to {action}: request failed with {status_code} {reason}".rstrip(),
            status_code=status_code,
        )

    @classmethod
    def transport(cls, action: str, exc: BaseException) -> GitHubAPIError:
        """Return an error wrapping a transport-level failure."""
        return cls(f"failed to {action}: {exc}")


class GitHubResponseShapeError(RuntimeError):
    """Raised when a GitHub response body is missing expected fields."""

    @classmethod
    def undecodable(cls, what: str, detail: object) -> GitHubResponseShapeError:
        """Return an error for a response body that does not decode."""
        return cls(f"GitHub {what} response could not be decoded: {detail}")


class GitHubConfigError(RuntimeError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def missing_token(cls) -> GitHubConfigError:
        """Return an error when no GitHub token is configured."""
        return cls(
            "GitHub API token missing - must set HOOKRELAY_GITHUB_TOKEN "
            "or GITHUB_TOKEN"
        )

    @classmethod
    def empty_token(cls) -> GitHubConfigError:
        """Return an error when the provided token is empty."""
        return cls("GitHub token must be non-empty")

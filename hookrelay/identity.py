"""Per-run callback identity: an unguessable URL path and a shared secret.

The path token and the secret come from separate random sources so that
knowing one reveals nothing about the other. Both sources are injectable,
which keeps tests deterministic:

>>> import random
>>> identity = build_callback_identity(
...     "hooks.example.com",
...     tls_enabled=False,
...     secret_rng=random.Random(1),
...     token_factory=lambda: "fixed-token",
... )
>>> identity.callback_url
'http://hooks.example.com/gh-callback/fixed-token'
>>> identity.path
'/gh-callback/fixed-token'

"""

from __future__ import annotations

import dataclasses
import random
import typing as typ
import uuid

if typ.TYPE_CHECKING:
    import collections.abc as cabc

CALLBACK_PREFIX = "/gh-callback/"

# 63 bits, rendered as lowercase hex.
_SECRET_BITS = 63


@dataclasses.dataclass(frozen=True, slots=True)
class CallbackIdentity:
    """The callback URL and webhook secret for a single process run."""

    callback_url: str
    path: str
    secret: str


def _default_token() -> str:
    return str(uuid.uuid4())


def build_callback_identity(
    domain: str,
    *,
    tls_enabled: bool,
    secret_rng: random.Random | None = None,
    token_factory: cabc.Callable[[], str] | None = None,
) -> CallbackIdentity:
    """Build the callback URL and secret for ``domain``.

    Parameters
    ----------
    domain
        Public host name GitHub will deliver to. It is not validated; a
        malformed domain yields a malformed URL.
    tls_enabled
        Selects ``https`` when true, ``http`` otherwise.
    secret_rng
        Random source for the shared secret. Defaults to the operating
        system's generator.
    token_factory
        Produces the random path token. Defaults to a UUID4 string.

    """
    rng = secret_rng or random.SystemRandom()
    token = (token_factory or _default_token)()
    scheme = "https" if tls_enabled else "http"
    path = f"{CALLBACK_PREFIX}{token}"
    return CallbackIdentity(
        callback_url=f"{scheme}://{domain}{path}",
        path=path,
        secret=f"{rng.getrandbits(_SECRET_BITS):x}",
    )


__all__ = ["CALLBACK_PREFIX", "CallbackIdentity", "build_callback_identity"]

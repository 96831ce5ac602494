"""Repository slug parsing.

Slugs identify the repository a webhook is registered on, in GitHub's
``owner/name`` notation. They use ``/`` as a separator but are not paths,
so parse them here rather than with ``pathlib``.
"""

from __future__ import annotations


def repo_slug(owner: str, name: str) -> str:
    """Build an ``owner/name`` slug.

    >>> repo_slug("hairyhenderson", "gomplate")
    'hairyhenderson/gomplate'

    """
    return f"{owner}/{name}"


def parse_repo_slug(slug: str) -> tuple[str, str]:
    """Split an ``owner/name`` slug into its parts.

    Parameters
    ----------
    slug:
        Repository slug. Surrounding whitespace is ignored.

    Returns
    -------
    tuple[str, str]
        ``(owner, name)``.

    Raises
    ------
    ValueError
        If the slug is empty, lacks a ``/``, has more than one ``/``, or
        either side is blank.

    Examples
    --------
    >>> parse_repo_slug("octo/reef")
    ('octo', 'reef')

    """
    text = slug.strip()
    if text.count("/") != 1:
        msg = f"invalid repo {slug!r} - need 'owner/repo' form"
        raise ValueError(msg)

    owner, name = (part.strip() for part in text.split("/"))
    if not owner or not name:
        msg = f"invalid repo {slug!r} - need 'owner/repo' form"
        raise ValueError(msg)

    return owner, name

"""Resource slug utilities.

Tracked resources are GitHub repositories addressed as ``owner/name``. The slug
is an identifier, not a filesystem path, so it is parsed with these helpers
rather than ``pathlib``.
"""

from __future__ import annotations


def resource_slug(owner: str, name: str) -> str:
    """Build a resource slug from owner and name.

    Parameters
    ----------
    owner:
        GitHub repository owner (organisation or user).
    name:
        GitHub repository name.

    Returns
    -------
    str
        Slug in ``owner/name`` format.

    Examples
    --------
    >>> resource_slug("acme", "widget")
    'acme/widget'

    """
    return f"{owner}/{name}"


def parse_resource_slug(slug: str) -> tuple[str, str]:
    """Parse a resource slug into owner and name.

    Raises
    ------
    ValueError
        If the slug is not in ``owner/name`` format.

    Examples
    --------
    >>> parse_resource_slug("acme/widget")
    ('acme', 'widget')

    """
    if slug.count("/") != 1:
        msg = f"Invalid resource slug: expected 'owner/name', got {slug!r}"
        raise ValueError(msg)

    owner, name = (part.strip() for part in slug.split("/"))
    if not owner or not name:
        msg = f"Invalid resource slug: expected 'owner/name', got {slug!r}"
        raise ValueError(msg)

    return owner, name

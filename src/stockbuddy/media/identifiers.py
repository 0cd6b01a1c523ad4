"""Derive provider asset identifiers from delivery URLs.

A Cloudinary delivery URL looks like::

    https://res.cloudinary.com/<cloud>/image/upload/<transforms>/v1712345678/profile-pictures/abc123.jpg?_a=x

Everything after ``/upload/`` is the asset path. The optional version segment
and the file extension are not part of the identifier, so the example above
resolves to ``profile-pictures/abc123``.
"""

from __future__ import annotations

import re

from .media_errors import InvalidReferenceError

PROVIDER_HOST_MARKER = "cloudinary.com"
UPLOAD_PATH_MARKER = "/upload/"

_VERSION_PREFIX = re.compile(r"^v\d+/")


def resolve_public_id(
    url: object,
    *,
    host_marker: str = PROVIDER_HOST_MARKER,
    path_marker: str = UPLOAD_PATH_MARKER,
) -> str | None:
    """Return the identifier embedded in ``url`` or ``None`` if it cannot be derived.

    Pure and total: never raises, never performs I/O.
    """
    if not isinstance(url, str) or not url:
        return None
    if host_marker not in url:
        return None

    marker_at = url.find(path_marker)
    if marker_at == -1:
        return None

    path = url[marker_at + len(path_marker):]
    path = path.split("?", 1)[0].split("#", 1)[0]
    if not path:
        return None

    version = _VERSION_PREFIX.match(path)
    if version is not None:
        path = path[version.end():]

    # Only the last segment can carry an extension; a dot in a folder name is kept.
    slash_at = path.rfind("/")
    dot_at = path.rfind(".")
    if dot_at > slash_at:
        path = path[:dot_at]

    if not path or path.endswith("/"):
        return None
    return path


def require_public_id(url: object, **markers: str) -> str:
    """Strict variant of :func:`resolve_public_id` for operator tooling."""
    public_id = resolve_public_id(url, **markers)
    if public_id is None:
        raise InvalidReferenceError(url)
    return public_id

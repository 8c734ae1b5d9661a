"""Utility functions for the Ceph REST client."""

from typing import Optional
from urllib.parse import quote


def path_join(*segments: Optional[str]) -> str:
    """Join image spec segments with ``/``.

    ``None`` and empty segments are dropped, so an unset namespace and an
    empty one give the same result.

    Examples:
        path_join("pool", None, "img") -> "pool/img"
        path_join("pool", "", "img") -> "pool/img"
        path_join("pool", "ns", "img") -> "pool/ns/img"
    """
    parts = []
    for segment in segments:
        if not segment:
            continue
        parts.extend(p for p in segment.split("/") if p)
    return "/".join(parts)


def quote_image_spec(image_spec: str) -> str:
    """Percent-encode an image spec for use as a single URL path segment."""
    # "/" must be encoded too: the API expects pool%2Fimage
    return quote(image_spec, safe="")


def normalize_namespace(namespace: Optional[str]) -> Optional[str]:
    """Map an empty namespace to ``None``."""
    return namespace or None


def describe_error(body) -> str:
    """Build a readable message from a Ceph error body.

    Ceph returns ``{"detail": "...", "code": "...", "component": "..."}``
    on failures; non-JSON bodies are used verbatim.
    """
    if isinstance(body, dict):
        detail = body.get("detail")
        # Fall back to the {"error": {"message": "..."}} format
        if not detail and isinstance(body.get("error"), dict):
            detail = body["error"].get("message")
        if not detail:
            detail = str(body)
        code = body.get("code")
        if code:
            return f"{detail} (code {code})"
        return str(detail)
    if body is None:
        return "no response body"
    return str(body)

"""Content change detection.

Pure helpers deciding whether a downloaded body differs from what was last
processed, and which HTTP validators to keep for the next conditional GET.
"""

import hashlib

import httpx

from feedrefresh.models.feed import ConditionalGetInfo

# Leading byte signatures of payloads that are never feeds.
_IMAGE_SIGNATURES: tuple[bytes, ...] = (
    b"\x89PNG\r\n\x1a\n",
    b"\xff\xd8\xff",  # JPEG
    b"GIF87a",
    b"GIF89a",
    b"BM",
    b"\x00\x00\x01\x00",  # ICO
)


def content_hash(data: bytes) -> str:
    """Return the MD5 hex digest of a raw feed body.

    Reason: MD5 is fast and stable across runs; it is used for change
    detection only, never for security.
    """
    return hashlib.md5(data).hexdigest()


def has_changed(data: bytes, stored_hash: str | None) -> bool:
    """Return True when ``data`` differs from the body behind ``stored_hash``."""
    if stored_hash is None:
        return True
    return content_hash(data) != stored_hash


def derive_next_metadata(response: httpx.Response) -> ConditionalGetInfo | None:
    """Extract cache validators from a successful response.

    Non-ASCII values are dropped because they cannot be sent back in a
    request header.

    Returns:
        ConditionalGetInfo, or None when the response carries no usable
        ``ETag`` or ``Last-Modified``.
    """
    etag = _sendable(response.headers.get("ETag"))
    last_modified = _sendable(response.headers.get("Last-Modified"))
    if etag is None and last_modified is None:
        return None
    return ConditionalGetInfo(etag=etag, last_modified=last_modified)


def _sendable(value: str | None) -> str | None:
    if value is None or not value.isascii():
        return None
    return value


def is_definitely_not_feed(data: bytes) -> bool:
    """Return True if ``data`` starts with a known image signature."""
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return True
    return data.startswith(_IMAGE_SIGNATURES)

"""Stable record identities used for deduplication."""

from __future__ import annotations

import hashlib

FINGERPRINT_VERSION = 1
_SEPARATOR = "\x1f"
_DIGEST_CHARS = 16


def fingerprint(source_id: str, title: str, url: str) -> str:
    """Return a 64-bit hex digest identifying ``(source_id, title, url)``.

    SHA-256 over a versioned, unit-separator-joined encoding, truncated to
    16 hex characters. The same triple always yields the same value across
    processes; collisions are possible and are not corrected.
    """

    material = _SEPARATOR.join((f"v{FINGERPRINT_VERSION}", source_id, title, url))
    return hashlib.sha256(material.encode("utf-8")).hexdigest()[:_DIGEST_CHARS]


__all__ = ["FINGERPRINT_VERSION", "fingerprint"]

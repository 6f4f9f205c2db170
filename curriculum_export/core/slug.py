"""Canonical slug sanitization for every derived path segment.

Rules, applied in order:
1. Unicode is NFKD-normalized and reduced to ASCII (accents are dropped).
2. Apostrophes and quotes are removed so ``What's`` becomes ``whats``.
3. Every run of characters outside ``[a-z0-9]`` becomes one hyphen.
4. Leading and trailing hyphens are stripped.
5. An empty result falls back to ``untitled``.

With ``lower=False`` the case is kept and ``[A-Za-z0-9]`` is the allowed class.
"""

from __future__ import annotations

import re
import unicodedata

_QUOTES_RE = re.compile(r"[\"'`‘’“”]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_NON_ALNUM_CASED_RE = re.compile(r"[^A-Za-z0-9]+")


def slugify(text: str, lower: bool = True, fallback: str = "untitled") -> str:
    """Convert text to a URL- and filesystem-safe slug.

    Args:
        text: The text to slugify
        lower: Whether to lowercase the result
        fallback: Value returned when nothing survives sanitization

    Returns:
        A hyphenated slug containing only ASCII letters, digits and hyphens
    """
    normalized = unicodedata.normalize("NFKD", text or "")
    slug = normalized.encode("ascii", "ignore").decode("ascii")
    slug = _QUOTES_RE.sub("", slug)
    if lower:
        slug = _NON_ALNUM_RE.sub("-", slug.lower())
    else:
        slug = _NON_ALNUM_CASED_RE.sub("-", slug)
    slug = slug.strip("-")
    return slug or fallback


def slugify_path(*segments: str) -> str:
    """Slugify each segment and join them with ``/``.

    Example:
        >>> slugify_path("01: Intro", "Getting started", "Hello, World!")
        '01-intro/getting-started/hello-world'
    """
    return "/".join(slugify(segment) for segment in segments)

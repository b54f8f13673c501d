"""Utilities to normalize imported event attributes."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit


def extract_url_domain(url: Optional[str]) -> Optional[str]:
    """Return the lowercased host of ``url`` without credentials or port."""
    if not url:
        return None
    candidate = url.strip()
    if "://" not in candidate:
        candidate = f"//{candidate}"
    try:
        host = urlsplit(candidate).hostname
    except ValueError:
        return None
    return host or None


_WHITESPACE_PATTERN = re.compile(r"\s{2,}")


def normalize_text(value: Optional[str]) -> Optional[str]:
    """Collapse runs of whitespace; empty strings become ``None``."""
    if value is None:
        return None
    normalized = _WHITESPACE_PATTERN.sub(" ", value).strip()
    return normalized or None

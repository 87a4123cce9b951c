"""
Utilities for turning user-supplied host strings into canonical URLs and cache keys.
"""

import re
from urllib.parse import urlsplit

from synology_ds.exceptions import ConfigurationError

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def canonical_host(raw: str) -> str:
    """
    Normalizes a host into a base URL such as ``https://nas.local:5001``.

    A missing scheme defaults to https. Trailing slashes are stripped.

    Raises:
        ConfigurationError: If the host is empty or uses a scheme other than
        http or https.
    """
    trimmed = (raw or "").strip().rstrip("/")
    if not trimmed:
        raise ConfigurationError("Host URL cannot be empty.")
    if not _SCHEME_RE.match(trimmed):
        trimmed = f"https://{trimmed}"

    parts = urlsplit(trimmed)
    if parts.scheme.lower() not in ("http", "https"):
        raise ConfigurationError("Host URL must start with http:// or https://.")
    if not parts.hostname:
        raise ConfigurationError(f"Host URL '{raw}' has no host name.")
    return f"{parts.scheme.lower()}://{parts.netloc}{parts.path.rstrip('/')}"


def normalize_host_key(host: str) -> str:
    """
    Builds the cache key for a host: case, scheme and trailing slashes are ignored.
    """
    key = (host or "").strip().lower()
    key = re.sub(r"^https?://", "", key)
    return key.rstrip("/")

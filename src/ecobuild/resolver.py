# resolver.py
from __future__ import annotations

import logging
import re
import urllib.error
import urllib.request
from typing import Callable, Optional

from .config import Settings

logger = logging.getLogger(__name__)

_RELEASE_TAG = re.compile(r"<release>([^<]+)</release>")


def fetch_latest_version(url: str, *, timeout: float = 10.0) -> str:
    """
    Read the <release> element from a maven-metadata.xml.

    Raises:
        ValueError: if the document has no release element
        urllib.error.URLError: on network failures
    """
    with urllib.request.urlopen(url, timeout=timeout) as response:
        body = response.read().decode("utf-8")
    m = _RELEASE_TAG.search(body)
    if not m:
        raise ValueError(f"no <release> element in {url}")
    return m.group(1).strip()


def resolve_version(
    settings: Settings,
    requested: str | None = None,
    warn: Optional[Callable[[str], None]] = None,
) -> str:
    """
    The explicitly requested version, else the latest release, else the fallback.

    `warn` is told when the fallback is used.
    """
    if requested and requested.strip():
        return requested.strip()
    try:
        return fetch_latest_version(settings.metadata_url)
    except (OSError, ValueError) as e:
        # urllib.error.URLError is an OSError
        logger.warning("could not fetch latest version: %s; using %s", e, settings.fallback_version)
        if warn is not None:
            warn(f"Could not fetch the latest release ({e}); using {settings.fallback_version}")
        return settings.fallback_version

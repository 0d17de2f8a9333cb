"""
Minimal JSON-over-HTTP helper shared by the external book services.

Failures never raise: they are logged and reported as ``None`` so that
callers can fall through to the next data source.
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, Optional

from ..config import get_settings


logger = logging.getLogger(__name__)

USER_AGENT = "StoryForest/1.0 (+https://openlibrary.org/developers/api)"


def build_url(base: str, params: Optional[Dict[str, Any]] = None) -> str:
    if not params:
        return base
    clean = {k: v for k, v in params.items() if v is not None}
    return f"{base}?{urllib.parse.urlencode(clean)}"


def http_get_json(url: str, timeout: Optional[float] = None) -> Optional[dict]:
    """Perform an HTTP GET and return parsed JSON or ``None`` on failure.

    A User-Agent and Accept header are always sent; Open Library answers
    anonymous requests without one with a 403.
    """
    if timeout is None:
        timeout = get_settings().http_timeout
    request = urllib.request.Request(
        url,
        headers={
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        },
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            data = response.read().decode("utf-8", errors="ignore")
    except urllib.error.HTTPError as exc:
        if exc.code == 404:
            logger.info("Not found: %s", url)
        else:
            logger.warning("Request to %s returned status %s", url, exc.code)
        return None
    except (urllib.error.URLError, http.client.HTTPException, OSError) as exc:
        logger.error("Error fetching %s: %s", url, exc)
        return None
    try:
        parsed = json.loads(data)
    except ValueError:
        logger.error("Invalid JSON from %s", url)
        return None
    return parsed if isinstance(parsed, dict) else None

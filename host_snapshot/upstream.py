"""Pass-through health check against the configured upstream service."""
from __future__ import annotations

import logging
from typing import Optional

import requests


def fetch_upstream_status(url: str, timeout: Optional[float] = None) -> Optional[int]:
    """Return the upstream status code, or ``None`` when it cannot be reached."""
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        logging.error("Error connecting to upstream %s: %s", url, exc)
        return None
    logging.debug("Upstream %s answered %s", url, response.status_code)
    return response.status_code

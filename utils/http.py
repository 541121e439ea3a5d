"""Simple HTTP helpers for fetching JSON from APIs."""

from typing import Any

import requests

from utils.config import Config
from utils.logging import get_logger

logger = get_logger("utils.http")


class HttpError(Exception):
    """Raised when a JSON request fails or returns a non-200 status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def request_json(
    url: str,
    method: str = "get",
    timeout: int | None = None,
    **kwargs: Any,
) -> Any:
    """Fetch JSON from a URL, raising HttpError on transport, status or parse failures."""
    if timeout is None:
        timeout = Config.get_request_timeout()
    headers = {"Accept": "application/json"}
    headers.update(kwargs.pop("headers", None) or {})
    try:
        resp = requests.request(method, url, timeout=timeout, headers=headers, **kwargs)
    except requests.RequestException as e:
        raise HttpError(f"Request failed for {url}: {e}") from e
    if resp.status_code != 200:
        logger.debug("HTTP %s from %s", resp.status_code, url)
        raise HttpError(f"HTTP {resp.status_code} for {url}: {resp.text[:200]}", resp.status_code)
    try:
        return resp.json()
    except ValueError as e:
        raise HttpError(f"Invalid JSON from {url}: {e}", resp.status_code) from e
"""Helper utilities.

This module centralises the HTTP plumbing: a session that looks like a
desktop browser to stocktrack.ca, and the retry policy applied to the
availability request.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import requests
from requests import Response
from tenacity import (after_log, retry, retry_if_exception,
                      stop_after_attempt, wait_exponential)

from .config import FETCH_ATTEMPTS

logger = logging.getLogger(__name__)

REFERER = "https://stocktrack.ca/"

_BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


def browser_headers() -> dict:
    """Return realistic browser headers; stocktrack.ca answers 403 without them."""
    return {
        "User-Agent": _BROWSER_UA,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
        "Cache-Control": "max-age=0",
        "Referer": REFERER,
    }


def get_http_session() -> requests.Session:
    """Return a new HTTP session carrying the browser headers.

    Caller is responsible for closing the session.
    """
    session = requests.Session()
    session.headers.update(browser_headers())
    return session


class HTTPError(Exception):
    """Raised when the server answers with a non-success status."""

    def __init__(self, status_code: int, message: Optional[str] = None) -> None:
        super().__init__(message or f"Server returned status {status_code}")
        self.status_code = status_code


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, HTTPError):
        return exc.status_code >= 500
    return isinstance(exc, requests.RequestException)


def retryable_request(method: Callable[..., Response]) -> Callable[..., Response]:
    """Decorator applying the retry policy to HTTP calls.

    The decorated function must accept a `requests.Session` as its first
    argument, followed by URL and optional kwargs, and return a
    `requests.Response`.  Any non-2xx status raises HTTPError.  Network
    errors and 5xx answers are retried up to FETCH_ATTEMPTS attempts in
    total with exponential back-off; the default of one attempt disables
    retrying.
    """

    @retry(
        reraise=True,
        stop=stop_after_attempt(FETCH_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_transient),
        after=after_log(logger, logging.WARNING),
    )
    def wrapper(session: requests.Session, url: str, **kwargs: Any) -> Response:
        response = method(session, url, **kwargs)
        if not 200 <= response.status_code < 300:
            raise HTTPError(response.status_code)
        return response

    return wrapper


__all__ = ["browser_headers", "get_http_session", "retryable_request", "HTTPError"]

"""Thin HTTP helpers shared by the platform adapters.

No retries here: a failed fetch is picked up again by the next scheduled run.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)
DEFAULT_TIMEOUT_SECONDS = 12
DEFAULT_USER_AGENT = "contest-reminder/1.0 (+https://example.local)"
MAX_BODY_SNIPPET = 300


class UpstreamFetchError(RuntimeError):
    def __init__(self, message: str, *, url: str, status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


def _headers() -> dict[str, str]:
    return {
        "User-Agent": DEFAULT_USER_AGENT,
        "Accept": "application/json",
        "Content-Type": "application/json",
    }


def _decode(response: requests.Response, url: str) -> Any:
    if response.status_code != 200:
        raise UpstreamFetchError(
            f"non-200 response status={response.status_code} "
            f"body={response.text[:MAX_BODY_SNIPPET]}",
            url=url,
            status=response.status_code,
        )
    try:
        return response.json()
    except ValueError as exc:
        raise UpstreamFetchError(
            "non-JSON response body=" + response.text[:MAX_BODY_SNIPPET],
            url=url,
            status=response.status_code,
        ) from exc


def get_json(
    url: str,
    params: dict[str, str] | None = None,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Any:
    try:
        response = requests.get(url, params=params, headers=_headers(), timeout=timeout)
    except requests.RequestException as exc:
        raise UpstreamFetchError(f"request failed: {exc}", url=url) from exc
    return _decode(response, url)


def post_json(
    url: str,
    body: dict[str, Any],
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Any:
    try:
        response = requests.post(url, json=body, headers=_headers(), timeout=timeout)
    except requests.RequestException as exc:
        raise UpstreamFetchError(f"request failed: {exc}", url=url) from exc
    return _decode(response, url)

# acpkg/http/client.py
from __future__ import annotations
import logging
import random
import time
from typing import Any
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx

from acpkg.app.globals import configInt
from acpkg.core.errors import NetworkError

logger = logging.getLogger(__name__)

__all__ = ["HTTPError", "request"]



class HTTPError(NetworkError):
    def __init__(self, status: int, body: str):
        super().__init__(f"HTTP {status}: {body[:200]}")
        self.status = status
        self.body = body



def _parseRetryAfter(value: str | None) -> float | None:
    """Return seconds suggested by Retry-After header, if parsable."""
    if not value:
        return None
    # Retry-After: seconds
    try:
        secondsF = float(value)
        if secondsF >= 0:
            return secondsF
        return None
    except ValueError:
        pass
    # Retry-After: HTTP-date
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    now = datetime.now(timezone.utc).timestamp()
    return max(0.0, dt.timestamp() - now)



def _shouldRetry(status: int) -> bool:
    # Typical transient HTTP errors upon which retry makes sense
    return status in (408, 429, 500, 502, 503, 504)



def _backoffSeconds(attempt: int, baseMs: int, maxMs: int) -> float:
    # Exponential backoff with jitter
    base = min(maxMs, baseMs * (2 ** attempt))
    jitter = base * 0.25
    return max(0.0, base + random.uniform(-jitter, jitter)) / 1000.0



def request(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    timeoutMs: int | None = None,
    retries: int | None = None,
    backoffBaseMs: int | None = None,
    backoffMaxMs: int | None = None,
    followRedirects: bool = True,
) -> dict[str, Any]:
    """
    Simple outbound HTTP client with timeout and retries (408/429/5xx).

    Unset knobs come from the "http.*" configuration.

    Returns:
    {
        "status": int,
        "headers": dict[str,str],
        "text": str,
        "content": bytes,
        "json": Any? # Present when response looks like JSON and parses
    }

    - Raises HTTPError for 408/429/5xx after exhausting retries.
    - Raises NetworkError for transport errors after exhausting retries.
    - Other 4xx responses are returned, not raised.
    """
    timeoutMs = configInt("http.timeoutMs", 15_000) if timeoutMs is None else timeoutMs
    retries = configInt("http.retries", 2) if retries is None else retries
    backoffBaseMs = configInt("http.backoffBaseMs", 250) if backoffBaseMs is None else backoffBaseMs
    backoffMaxMs = configInt("http.backoffMaxMs", 2_000) if backoffMaxMs is None else backoffMaxMs

    timeout = httpx.Timeout(max(1, timeoutMs) / 1_000)
    method = str(method).upper()
    retries = max(0, retries)
    attempt = 0

    with httpx.Client(timeout=timeout) as cli:
        while True:
            try:
                resp = cli.request(method, url, headers=headers, params=params, follow_redirects=followRedirects)
            except httpx.HTTPError as err:
                if attempt >= retries:
                    raise NetworkError(f"{method} {url} failed: {err}") from err
                delay = _backoffSeconds(attempt, backoffBaseMs, backoffMaxMs)
                attempt += 1
                logger.debug("Transport error on %s (attempt %d), retrying in %.2fs: %s", url, attempt, delay, err)
                time.sleep(delay)
                continue

            status = resp.status_code
            if _shouldRetry(status):
                if attempt >= retries:
                    raise HTTPError(status, resp.text)
                retryAfter = _parseRetryAfter(resp.headers.get("Retry-After"))
                delay = retryAfter if retryAfter is not None else _backoffSeconds(attempt, backoffBaseMs, backoffMaxMs)
                attempt += 1
                logger.debug("HTTP %d from %s (attempt %d), retrying in %.2fs", status, url, attempt, delay)
                time.sleep(delay)
                continue

            out: dict[str, Any] = {
                "status": status,
                "headers": dict(resp.headers), # note: Duplicate header keys are collapsed
                "text": resp.text,
                "content": resp.content,
            }
            ctype = resp.headers.get("Content-Type", "")
            if "json" in ctype.lower():
                try:
                    out["json"] = resp.json()
                except ValueError:
                    # Caller still has "text"
                    logger.debug("Response from %s claims JSON but does not parse", url)
            return out

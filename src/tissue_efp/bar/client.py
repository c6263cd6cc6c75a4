from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from tissue_efp.config import HTTPConfig
from tissue_efp.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class JsonResult:
    payload: Any
    elapsed_ms: float
    url: str
    status: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def raise_for_error(self) -> Any:
        """Return the payload, or raise TransportError for a failed request."""

        if not self.ok:
            raise TransportError(self.error or "request failed", url=self.url)
        return self.payload


def configure_session(http: Optional[HTTPConfig] = None) -> requests.Session:
    http = http or HTTPConfig()
    session = requests.Session()
    retries = Retry(
        total=http.retries,
        backoff_factor=http.backoff_factor,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=("GET",),
    )
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"User-Agent": http.user_agent})
    session.request = _wrap_with_timeout(session.request, timeout=http.timeout_s)
    return session


def _wrap_with_timeout(request_method, timeout: float):
    def request_with_timeout(method, url, **kwargs):
        kwargs.setdefault("timeout", timeout)
        return request_method(method, url, **kwargs)

    return request_with_timeout


def get_json(
    session: requests.Session,
    url: str,
    params: Optional[Dict[str, Any]] = None,
) -> JsonResult:
    """
    GET a JSON document and return a JsonResult.

    Failures never raise here: connection errors, non-2xx responses and
    undecodable bodies are reported through `status="error"` so callers can
    decide whether to surface them.
    """

    start = time.perf_counter()
    status = "ok"
    error: Optional[str] = None
    payload: Any = None

    try:
        resp = session.get(url, params=params, headers={"Accept": "application/json"})
    except requests.RequestException as exc:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.warning("Request to %s failed: %s", url, exc)
        return JsonResult(
            payload=None,
            elapsed_ms=elapsed_ms,
            url=url,
            status="error",
            error=str(exc),
        )

    if not resp.ok:
        status = "error"
        error = f"HTTP {resp.status_code}: {resp.text[:500]}"
    else:
        try:
            payload = resp.json()
        except ValueError as exc:
            status = "error"
            error = f"Failed to decode JSON from {url}: {exc}"

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    if status == "ok":
        logger.debug("GET %s completed in %.1f ms", url, elapsed_ms)
    else:
        logger.warning("GET %s failed: %s", url, error)

    return JsonResult(
        payload=payload,
        elapsed_ms=elapsed_ms,
        url=url,
        status=status,
        error=error,
    )


__all__ = [
    "JsonResult",
    "configure_session",
    "get_json",
]

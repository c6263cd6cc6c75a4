"""Shared test fixtures for the tissue eFP pipeline."""

import time
from typing import Any, Dict, List, Optional

import pytest
import requests
import yaml

from tissue_efp.config import AppConfig, _default_config_path, parse_config

CATALOG_URL = "https://example.test/SampleData.json"
EXPRESSION_URL = "https://example.test/plantefp.cgi"
REFERENCE_URL = "https://example.test/topExpressionValues.json"


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class FakeSession:
    """Routes GET requests by URL prefix and records every call."""

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.calls: List[str] = []
        self.delay_s = 0.0
        self.delays: Dict[str, float] = {}

    def get(self, url: str, params=None, headers=None, **kwargs) -> FakeResponse:
        self.calls.append(url)
        if self.delay_s:
            time.sleep(self.delay_s)
        for prefix, seconds in self.delays.items():
            if url.startswith(prefix):
                time.sleep(seconds)
                break
        for prefix, response in self.routes.items():
            if url.startswith(prefix):
                if isinstance(response, Exception):
                    raise response
                if isinstance(response, FakeResponse):
                    return response
                return FakeResponse(payload=response)
        return FakeResponse(status_code=404, text="not found")

    def calls_to(self, prefix: str) -> List[str]:
        return [url for url in self.calls if url.startswith(prefix)]


@pytest.fixture
def app_config() -> AppConfig:
    with _default_config_path().open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    raw["sources"] = {
        "catalog_url": CATALOG_URL,
        "expression_url": EXPRESSION_URL,
        "reference_url": REFERENCE_URL,
        "diagram_url_template": "https://example.test/compendiums/{name}.min.svg",
    }
    raw["render"] = {"poll_interval_s": 0.01, "max_polls": 100, "settle_delay_s": 0}
    return parse_config(raw)


@pytest.fixture
def leaf_catalog() -> Dict[str, Any]:
    return {
        "leaf_diagram": {"db": "abiotic", "sample": {"Leaf": ["S1", "S2"]}},
        "no_db_diagram": {"sample": {"Leaf": ["S9"]}},
    }


@pytest.fixture
def reference_document() -> Dict[str, Any]:
    return {"locus": {"AT1G00000": {"max": 20, "min": 10}}}


@pytest.fixture
def leaf_svg() -> str:
    return (
        '<svg xmlns="http://www.w3.org/2000/svg">'
        '<g id="Leaf"><path d="M0 0" stroke-width="2" stroke="#333333"/></g>'
        '<path id="Root" d="M1 1"/>'
        "</svg>"
    )

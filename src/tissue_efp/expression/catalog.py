from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests

from tissue_efp.bar.client import get_json
from tissue_efp.bar.endpoints import strip_diagram_extension
from tissue_efp.errors import TransportError
from tissue_efp.models import SampleCatalogEntry

logger = logging.getLogger(__name__)


def _coerce_entry(diagram: str, info: Any) -> SampleCatalogEntry:
    if not isinstance(info, dict):
        logger.warning("Catalog entry for %r is not an object; treating as empty.", diagram)
        return SampleCatalogEntry(diagram=diagram)

    db = info.get("db")
    samples = info.get("sample") or {}
    regions: Dict[str, List[str]] = {}
    if isinstance(samples, dict):
        for region, ids in samples.items():
            if isinstance(ids, str):
                ids = [ids]
            regions[str(region)] = [str(i) for i in ids or []]

    return SampleCatalogEntry(
        diagram=diagram,
        database_source=str(db) if db is not None else None,
        region_to_sample_ids=regions,
    )


class SampleCatalog:
    """
    Resolves diagram names against the shared sample catalog document.

    The document is downloaded on the first `resolve` and kept for the
    lifetime of the catalog; concurrent first calls share one download.
    """

    def __init__(self, session: requests.Session, catalog_url: str) -> None:
        self._session = session
        self._url = catalog_url
        self._document: Optional[Dict[str, Any]] = None
        self._lock = asyncio.Lock()
        self.fetch_count = 0

    @property
    def loaded(self) -> bool:
        return self._document is not None

    async def _load(self) -> Dict[str, Any]:
        async with self._lock:
            if self._document is None:
                self.fetch_count += 1
                result = await asyncio.to_thread(get_json, self._session, self._url)
                payload = result.raise_for_error()
                if not isinstance(payload, dict):
                    raise TransportError(
                        "Sample catalog document must be a JSON object.", url=self._url
                    )
                logger.info("Loaded sample catalog with %d diagrams.", len(payload))
                self._document = payload
            return self._document

    async def resolve(self, diagram_name: str) -> SampleCatalogEntry:
        document = await self._load()
        diagram = strip_diagram_extension(diagram_name)
        if diagram not in document:
            logger.info("Diagram %r is not in the sample catalog.", diagram)
            return SampleCatalogEntry(diagram=diagram)
        return _coerce_entry(diagram, document[diagram])


__all__ = ["SampleCatalog"]

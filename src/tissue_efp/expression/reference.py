from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import requests

from tissue_efp.bar.client import get_json
from tissue_efp.errors import TransportError

logger = logging.getLogger(__name__)


def no_data_marker(locus: str) -> Dict[str, str]:
    return {"error": f"No data for {locus}"}


class ReferenceValues:
    """Top expression values per locus, downloaded once and reused."""

    def __init__(self, session: requests.Session, reference_url: str) -> None:
        self._session = session
        self._url = reference_url
        self._loci: Optional[Dict[str, Any]] = None
        self._lock = asyncio.Lock()

    async def _load(self) -> Dict[str, Any]:
        async with self._lock:
            if self._loci is None:
                result = await asyncio.to_thread(get_json, self._session, self._url)
                payload = result.raise_for_error()
                loci = payload.get("locus") if isinstance(payload, dict) else None
                if not isinstance(loci, dict):
                    raise TransportError(
                        "Reference document must contain a 'locus' object.", url=self._url
                    )
                self._loci = loci
            return self._loci

    async def lookup(self, locus: str) -> Dict[str, Any]:
        loci = await self._load()
        if locus not in loci:
            logger.debug("No reference values for %s.", locus)
            return no_data_marker(locus)
        return loci[locus]


__all__ = ["ReferenceValues", "no_data_marker"]

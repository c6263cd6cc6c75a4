from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional, Sequence

import requests

from tissue_efp.bar.client import get_json
from tissue_efp.bar.endpoints import build_expression_url, escape_sample_name
from tissue_efp.config import SourcesConfig
from tissue_efp.errors import TransportError
from tissue_efp.models import FetchResult, SampleCatalogEntry, SampleValue

logger = logging.getLogger(__name__)


def _decode_samples(payload: Any, locus: str, url: str) -> List[SampleValue]:
    if not isinstance(payload, list):
        raise TransportError("Expression response must be a JSON array.", url=url)

    samples: List[SampleValue] = []
    for item in payload:
        if not isinstance(item, dict) or "name" not in item:
            logger.debug("Skipping malformed expression record: %r", item)
            continue
        samples.append(SampleValue(name=str(item["name"]), value=item.get("value"), locus=locus))
    return samples


class ExpressionFetcher:
    """Issues one batched expression query per call against the BAR webservice."""

    def __init__(self, session: requests.Session, sources: SourcesConfig) -> None:
        self._session = session
        self._sources = sources
        self.call_count = 0

    async def fetch(
        self,
        database_source: Optional[str],
        locus: str,
        sample_ids: Sequence[str],
    ) -> List[SampleValue]:
        if database_source is None:
            logger.debug("No database source for locus %s; skipping fetch.", locus)
            return []

        url = build_expression_url(self._sources, database_source, locus, sample_ids)
        self.call_count += 1
        result = await asyncio.to_thread(get_json, self._session, url)
        samples = _decode_samples(result.raise_for_error(), locus, url)
        logger.info(
            "Fetched %d values for %s from %s in %.1f ms.",
            len(samples),
            locus,
            database_source,
            result.elapsed_ms,
        )
        return samples


def attribute_samples(
    fetch_result: FetchResult,
    entry: SampleCatalogEntry,
    samples: Sequence[SampleValue],
) -> int:
    """
    Merge fetched values into `fetch_result`, region by region.

    Each returned name is trimmed and escaped the same way the catalog stores
    it, then assigned to the first region (in catalog order) whose sample list
    contains it. Existing per-sample tables are extended with the new locus
    rather than replaced. Returns the number of attributed values.
    """

    attributed = 0
    for sample in samples:
        name = escape_sample_name(sample.name.strip()).strip()
        for region, sample_ids in entry.region_to_sample_ids.items():
            if name in sample_ids:
                table = fetch_result.region_values.setdefault(region, {})
                table.setdefault(name, {})[sample.locus] = sample.value
                attributed += 1
                break
        else:
            logger.debug("Sample %r matched no region of %s.", name, entry.diagram)

    fetch_result.database_source = entry.database_source
    return attributed


__all__ = ["ExpressionFetcher", "attribute_samples"]

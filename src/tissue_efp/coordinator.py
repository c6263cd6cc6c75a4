from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from functools import partial
from typing import Dict, List, Optional

import requests

from tissue_efp.bar.client import configure_session
from tissue_efp.bar.endpoints import strip_diagram_extension
from tissue_efp.config import AppConfig, load_config
from tissue_efp.errors import StallError, TransportError
from tissue_efp.expression.aggregator import aggregate
from tissue_efp.expression.catalog import SampleCatalog
from tissue_efp.expression.fetcher import ExpressionFetcher, attribute_samples
from tissue_efp.expression.reference import ReferenceValues
from tissue_efp.models import (
    AggregationSummary,
    FetchResult,
    RegionStatistics,
    RenderOutcome,
    RenderState,
    SampleCatalogEntry,
    tooltip_text,
)
from tissue_efp.surface import RenderingSurface, StrokeEmphasis, StrokeStyles

logger = logging.getLogger(__name__)


class RenderCoordinator:
    """
    Drives one (diagram, locus) render at a time through the pipeline.

    The coordinator owns every cache the pipeline shares between requests:
    the sample catalog, the accumulated fetch results per diagram and the
    stroke styles captured for hover emphasis. Requests against the same
    diagram should be serialized by the caller.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config or load_config()
        self.session = session or configure_session(self.config.http)
        sources = self.config.sources
        self.catalog = SampleCatalog(self.session, sources.catalog_url)
        self.fetcher = ExpressionFetcher(self.session, sources)
        self.reference = ReferenceValues(self.session, sources.reference_url)

        self.fetch_results: Dict[str, FetchResult] = {}
        self.request_history: List[str] = []
        self.stroke_styles: StrokeStyles = {}

        self.state = RenderState.INIT
        self.regions: Dict[str, RegionStatistics] = {}
        self.summary = AggregationSummary()

    def _reset(self, diagram: str) -> None:
        self.state = RenderState.INIT
        self.regions = {}
        self.summary = AggregationSummary()
        self.stroke_styles.clear()
        if diagram not in self.request_history:
            self.request_history.append(diagram)

    async def _fetch_and_attribute(self, entry: SampleCatalogEntry, locus: str) -> FetchResult:
        samples = await self.fetcher.fetch(entry.database_source, locus, entry.sample_ids)
        fetch_result = self.fetch_results.setdefault(
            entry.diagram, FetchResult(diagram=entry.diagram)
        )
        attributed = attribute_samples(fetch_result, entry, samples)
        logger.debug("Attributed %d of %d values for %s.", attributed, len(samples), entry.diagram)
        return fetch_result

    async def _poll(self, task: "asyncio.Task[FetchResult]") -> FetchResult:
        render_cfg = self.config.render
        for _ in range(render_cfg.max_polls):
            done, _pending = await asyncio.wait({task}, timeout=render_cfg.poll_interval_s)
            if done:
                return task.result()

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        raise StallError(
            f"Expression fetch did not complete within {render_cfg.poll_budget_s:.1f}s "
            f"({render_cfg.max_polls} polls)."
        )

    def _targets(self, region: str) -> List[str]:
        group = self.config.alias_group_for(region)
        return [region] + [alias for alias in group if alias != region]

    def _apply(
        self,
        surface: RenderingSurface,
        diagram: str,
        regions: Dict[str, RegionStatistics],
    ) -> List[str]:
        present = set(surface.list_region_ids(diagram))
        emphasis = StrokeEmphasis(surface, self.stroke_styles)
        applied: List[str] = []

        for region, stats in regions.items():
            for target in self._targets(region):
                if target not in present:
                    logger.warning("Region %r is missing from diagram %s.", target, diagram)
                    continue
                surface.set_region_fill(diagram, target, stats.color_hex)
                surface.set_region_metadata(
                    diagram,
                    target,
                    {"expression_level": stats.expression_level, "sample_size": stats.sample_size},
                )
                surface.set_region_tooltip(
                    diagram, target, tooltip_text(target, stats.expression_level, stats.sample_size)
                )
                surface.on_region_hover(
                    diagram,
                    target,
                    partial(emphasis.emphasize_region, target),
                    partial(emphasis.restore_region, target),
                )
                applied.append(target)
        return applied

    async def _reference_for(self, locus: str) -> Dict[str, object]:
        try:
            return await self.reference.lookup(locus)
        except TransportError as exc:
            logger.warning("Reference values unavailable: %s", exc)
            return {"error": str(exc)}

    async def render(self, diagram_name: str, locus: str, surface: RenderingSurface) -> RenderOutcome:
        start = time.perf_counter()
        diagram = strip_diagram_extension(diagram_name)
        self._reset(diagram)

        def outcome(state: RenderState, status: str, **kwargs) -> RenderOutcome:
            self.state = state
            return RenderOutcome(
                diagram=diagram,
                locus=locus,
                status=status,
                state=state,
                elapsed_ms=(time.perf_counter() - start) * 1000.0,
                **kwargs,
            )

        try:
            self.state = RenderState.AWAITING_CATALOG
            entry = await self.catalog.resolve(diagram)
            if not entry.is_queryable:
                logger.info("No queryable samples for %s; leaving diagram uncoloured.", diagram)
                return outcome(RenderState.NO_DATA, "no_data")

            self.state = RenderState.FETCHING
            task = asyncio.create_task(self._fetch_and_attribute(entry, locus))
            self.state = RenderState.POLLING
            fetch_result = await self._poll(task)
        except TransportError as exc:
            logger.error("Render of %s/%s failed: %s", diagram, locus, exc)
            return outcome(RenderState.FAILED, "error", error=str(exc))
        except StallError as exc:
            logger.error("Render of %s/%s stalled: %s", diagram, locus, exc)
            return outcome(RenderState.STALLED, "stalled", error=str(exc))

        if not fetch_result.has_locus(locus):
            logger.info("No expression values for %s in %s.", locus, diagram)
            return outcome(RenderState.NO_DATA, "no_data")

        self.state = RenderState.APPLYING
        await asyncio.sleep(self.config.render.settle_delay_s)
        regions, summary = aggregate(fetch_result, list(fetch_result.region_values), locus)
        self.regions, self.summary = regions, summary
        applied = self._apply(surface, diagram, regions)
        reference = await self._reference_for(locus)

        logger.info("Coloured %d regions of %s for %s.", len(applied), diagram, locus)
        return outcome(
            RenderState.DONE,
            "ok",
            regions=regions,
            summary=summary,
            reference=reference,
            applied=applied,
        )


__all__ = ["RenderCoordinator"]

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# sample display name -> locus -> raw value as returned by the webservice
SampleTable = Dict[str, Dict[str, Any]]


@dataclass(frozen=True)
class SampleCatalogEntry:
    """Sample definitions for one diagram, as listed in the catalog document."""

    diagram: str
    database_source: Optional[str] = None
    region_to_sample_ids: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def is_queryable(self) -> bool:
        return self.database_source is not None

    @property
    def sample_ids(self) -> List[str]:
        """All region sample IDs in catalog order, duplicates preserved."""

        if not self.is_queryable:
            return []
        flattened: List[str] = []
        for ids in self.region_to_sample_ids.values():
            flattened.extend(ids)
        return flattened


@dataclass(frozen=True)
class SampleValue:
    """A single `{name, value}` pair returned by the expression webservice."""

    name: str
    value: Any
    locus: str


@dataclass
class FetchResult:
    """Accumulated expression values for one diagram, across every fetched locus."""

    diagram: str
    database_source: Optional[str] = None
    region_values: Dict[str, SampleTable] = field(default_factory=dict)

    def has_locus(self, locus: str) -> bool:
        return any(
            locus in loci
            for table in self.region_values.values()
            for loci in table.values()
        )


@dataclass
class RegionStatistics:
    """
    Per-region statistics for one (diagram, locus) request.

    - raw_values: values in sorted (textual) order, non-numeric entries kept.
    - average: mean of the numeric entries, NaN when there are none.
    - expression_level: the clamped average rendered with three decimals.
    - sample_size: number of raw entries, numeric or not.
    """

    region: str
    raw_values: List[Any] = field(default_factory=list)
    average: float = float("nan")
    expression_level: str = ""
    sample_size: int = 0
    percentage: float = 0.0
    color_hex: str = ""

    @property
    def tooltip(self) -> str:
        return tooltip_text(self.region, self.expression_level, self.sample_size)


@dataclass
class AggregationSummary:
    global_max: Optional[float] = None
    global_min: Optional[float] = None
    global_max_average: Optional[float] = None
    global_max_average_region: Optional[str] = None
    global_min_average: Optional[float] = None
    global_min_average_region: Optional[str] = None


class RenderState(str, Enum):
    INIT = "init"
    AWAITING_CATALOG = "awaiting_catalog"
    FETCHING = "fetching"
    POLLING = "polling"
    APPLYING = "applying"
    DONE = "done"
    NO_DATA = "no_data"
    FAILED = "failed"
    STALLED = "stalled"


@dataclass
class RenderOutcome:
    """
    Result of one render request.

    `status` is one of "ok", "no_data", "error" or "stalled"; `error` carries
    the message for the two failure statuses.
    """

    diagram: str
    locus: str
    status: str
    state: RenderState
    regions: Dict[str, RegionStatistics] = field(default_factory=dict)
    summary: Optional[AggregationSummary] = None
    reference: Dict[str, Any] = field(default_factory=dict)
    applied: List[str] = field(default_factory=list)
    elapsed_ms: float = 0.0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def tooltip_text(region: str, expression_level: str, sample_size: int) -> str:
    return f"{region}\nExpression level: {expression_level}\nSample size: {sample_size}"


__all__ = [
    "SampleTable",
    "SampleCatalogEntry",
    "SampleValue",
    "FetchResult",
    "RegionStatistics",
    "AggregationSummary",
    "RenderState",
    "RenderOutcome",
    "tooltip_text",
]

from __future__ import annotations

from typing import Iterable

from tissue_efp.config import SourcesConfig


def escape_sample_name(name: str) -> str:
    """
    Convert a sample name to the escaped form stored in the sample catalog.

    A literal `+` becomes `%2B` before spaces become `+`; the reverse order
    would turn encoded spaces into `%2B`.
    """

    return name.replace("+", "%2B").replace(" ", "+")


def build_samples_param(sample_ids: Iterable[str]) -> str:
    """Render sample IDs as the JSON-array-shaped `samples` parameter."""

    return "[" + ",".join(f'"{sample_id}"' for sample_id in sample_ids) + "]"


def build_expression_url(
    sources: SourcesConfig,
    database_source: str,
    locus: str,
    sample_ids: Iterable[str],
) -> str:
    """
    Build the expression query URL.

    The query string is assembled by hand because catalog sample IDs are
    already escaped; letting requests encode them again would turn `%2B`
    into `%252B`.
    """

    return (
        f"{sources.expression_url}?datasource={database_source}"
        f"&id={locus}"
        f"&samples={build_samples_param(sample_ids)}"
    )


def diagram_url(sources: SourcesConfig, diagram_name: str) -> str:
    return sources.diagram_url_template.format(name=strip_diagram_extension(diagram_name))


def strip_diagram_extension(diagram_name: str) -> str:
    if diagram_name.endswith(".svg"):
        return diagram_name[: -len(".svg")]
    return diagram_name


__all__ = [
    "escape_sample_name",
    "build_samples_param",
    "build_expression_url",
    "diagram_url",
    "strip_diagram_extension",
]

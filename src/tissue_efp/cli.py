from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import click
import requests

from tissue_efp.bar.client import configure_session
from tissue_efp.bar.endpoints import diagram_url
from tissue_efp.config import load_config
from tissue_efp.coordinator import RenderCoordinator
from tissue_efp.errors import ConfigError
from tissue_efp.models import RenderOutcome
from tissue_efp.surface import SvgDocumentSurface


def fetch_diagram(session: requests.Session, url: str) -> str:
    response = session.get(url)
    response.raise_for_status()
    return response.text


def outcome_to_dict(outcome: RenderOutcome) -> dict:
    return {
        "diagram": outcome.diagram,
        "locus": outcome.locus,
        "status": outcome.status,
        "error": outcome.error,
        "regions": {
            name: {
                "expression_level": stats.expression_level,
                "sample_size": stats.sample_size,
                "percentage": stats.percentage,
                "colour": stats.color_hex,
            }
            for name, stats in outcome.regions.items()
        },
        "reference": outcome.reference,
    }


def echo_table(outcome: RenderOutcome) -> None:
    click.echo(f"{'region':<40} {'level':>12} {'n':>4} {'pct':>6}  colour")
    for name, stats in outcome.regions.items():
        click.echo(
            f"{name:<40} {stats.expression_level:>12} {stats.sample_size:>4} "
            f"{stats.percentage:>6.1f}  {stats.color_hex}"
        )


@click.group()
@click.option("--verbose", is_flag=True, help="Enable verbose logging.")
def cli(verbose: bool) -> None:
    """Colour eFP tissue diagrams by expression level."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)


@cli.command("render")
@click.argument("diagram")
@click.argument("locus")
@click.option(
    "--svg",
    "svg_path",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="Local diagram SVG. Downloaded from the compendium when omitted.",
)
@click.option(
    "--output",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Write the coloured SVG to this path.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    show_default=True,
    help="How to print per-region statistics.",
)
def render_command(
    diagram: str,
    locus: str,
    svg_path: Optional[Path],
    output: Optional[Path],
    output_format: str,
) -> None:
    """Fetch expression values for LOCUS and colour the regions of DIAGRAM."""
    try:
        config = load_config()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    session = configure_session(config.http)
    if svg_path is not None:
        svg_text = svg_path.read_text(encoding="utf-8")
    else:
        try:
            svg_text = fetch_diagram(session, diagram_url(config.sources, diagram))
        except requests.RequestException as exc:
            raise click.ClickException(f"Failed to fetch diagram {diagram!r}: {exc}") from exc

    surface = SvgDocumentSurface(svg_text, diagram_id=diagram)
    coordinator = RenderCoordinator(config=config, session=session)
    outcome = asyncio.run(coordinator.render(diagram, locus, surface))

    if outcome.status in ("error", "stalled"):
        click.echo(f"Render failed ({outcome.status}): {outcome.error}", err=True)
        raise SystemExit(1)
    if outcome.status == "no_data":
        click.echo(f"No expression data for {locus!r} in {outcome.diagram!r}.")

    if output_format == "json":
        click.echo(json.dumps(outcome_to_dict(outcome), indent=2))
    elif outcome.regions:
        echo_table(outcome)

    if output is not None:
        output.write_text(surface.to_string(), encoding="utf-8")
        click.echo(f"Coloured diagram saved to {output}.")


def main() -> None:  # pragma: no cover
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()

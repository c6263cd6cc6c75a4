from __future__ import annotations

import logging
import math
import re
import xml.etree.ElementTree as ET
from typing import Callable, Dict, List, Optional, Protocol, Tuple, runtime_checkable

logger = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"
ET.register_namespace("", SVG_NS)

HoverCallback = Callable[[], None]
# region id -> (stroke width, stroke colour) captured before the first emphasis
StrokeStyles = Dict[str, Tuple[str, str]]

EMPHASIS_FACTOR = 4
EMPHASIS_COLOUR = "#000000"
# Half-leaf regions are drawn under a separate outline element.
OUTLINE_SUFFIX_REGIONS = ("Half_Leaf_Pseudomonas_syringae",)
# Leading numeric part of a stroke width such as "2px" or " .5em".
_WIDTH_PREFIX = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


@runtime_checkable
class RenderingSurface(Protocol):
    """Operations the render pipeline needs from whatever displays a diagram."""

    def list_region_ids(self, diagram_id: str) -> List[str]:  # pragma: no cover - protocol
        ...

    def set_region_fill(self, diagram_id: str, region_id: str, colour: str) -> None:  # pragma: no cover - protocol
        ...

    def set_region_metadata(self, diagram_id: str, region_id: str, metadata: Dict[str, object]) -> None:  # pragma: no cover - protocol
        ...

    def set_region_tooltip(self, diagram_id: str, region_id: str, text: str) -> None:  # pragma: no cover - protocol
        ...

    def on_region_hover(
        self,
        diagram_id: str,
        region_id: str,
        on_enter: HoverCallback,
        on_leave: HoverCallback,
    ) -> None:  # pragma: no cover - protocol
        ...

    def get_region_stroke(self, region_id: str) -> Tuple[Optional[str], Optional[str]]:  # pragma: no cover - protocol
        ...

    def set_region_stroke(self, region_id: str, width: str, colour: str) -> None:  # pragma: no cover - protocol
        ...


def _format_width(width: float) -> str:
    return f"{width:g}"


def _parse_width(width: Optional[str]) -> float:
    if width is None:
        return 0.0
    match = _WIDTH_PREFIX.match(width)
    if match is None:
        return float("nan")
    return float(match.group(0))


def outline_target(region_id: str) -> str:
    if any(marker in region_id for marker in OUTLINE_SUFFIX_REGIONS):
        return region_id + "_outline"
    return region_id


class StrokeEmphasis:
    """
    Hover outline emphasis backed by a shared stroke-style cache.

    The prior stroke of a region is captured the first time it is emphasized
    and kept until the cache is cleared, so repeated hovers always restore
    the original styling.
    """

    def __init__(self, surface: RenderingSurface, styles: StrokeStyles) -> None:
        self.surface = surface
        self.styles = styles

    def emphasize_region(self, region_id: str) -> None:
        target = outline_target(region_id)
        if target not in self.styles:
            width, colour = self.surface.get_region_stroke(target)
            self.styles[target] = (width if width is not None else "0", colour or "none")
        prior = _parse_width(self.styles[target][0])

        emphasized = prior * EMPHASIS_FACTOR
        if not (emphasized < 10 and emphasized != 0):
            emphasized = EMPHASIS_FACTOR * 1.5
        self.surface.set_region_stroke(target, _format_width(emphasized), EMPHASIS_COLOUR)

    def restore_region(self, region_id: str) -> None:
        target = outline_target(region_id)
        width, colour = self.styles.get(target, (None, None))
        prior = _parse_width(width) if width is not None else float("nan")
        if not math.isnan(prior) and prior >= 0:
            self.surface.set_region_stroke(target, width, colour)
        else:
            self.surface.set_region_stroke(target, "1.5", EMPHASIS_COLOUR)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


class SvgDocumentSurface:
    """A RenderingSurface that edits an in-memory SVG document."""

    def __init__(self, svg_text: str, diagram_id: str = "") -> None:
        self.diagram_id = diagram_id
        self.root = ET.fromstring(svg_text)
        self.hover_handlers: Dict[str, Tuple[HoverCallback, HoverCallback]] = {}
        self._by_id: Dict[str, ET.Element] = {}
        for element in self.root.iter():
            element_id = element.get("id")
            if element_id and element_id not in self._by_id:
                self._by_id[element_id] = element

    def _element(self, region_id: str) -> ET.Element:
        try:
            return self._by_id[region_id]
        except KeyError:
            raise KeyError(f"Region {region_id!r} is not present in the diagram.") from None

    def _children(self, element: ET.Element, names: Tuple[str, ...]) -> List[ET.Element]:
        return [child for child in element if _local_name(child.tag) in names]

    def list_region_ids(self, diagram_id: str) -> List[str]:
        return list(self._by_id)

    def set_region_fill(self, diagram_id: str, region_id: str, colour: str) -> None:
        element = self._element(region_id)
        shapes = self._children(element, ("path", "g"))
        for target in shapes or [element]:
            target.set("fill", colour)

    def set_region_metadata(self, diagram_id: str, region_id: str, metadata: Dict[str, object]) -> None:
        element = self._element(region_id)
        element.set("data-expressionValue", str(metadata.get("expression_level", "")))
        element.set("data-sampleSize", str(metadata.get("sample_size", "")))

    def set_region_tooltip(self, diagram_id: str, region_id: str, text: str) -> None:
        element = self._element(region_id)
        title = next(iter(self._children(element, ("title",))), None)
        if title is None:
            title = ET.SubElement(element, f"{{{SVG_NS}}}title")
        title.text = text

    def on_region_hover(
        self,
        diagram_id: str,
        region_id: str,
        on_enter: HoverCallback,
        on_leave: HoverCallback,
    ) -> None:
        self._element(region_id).set("class", "hoverDetails")
        self.hover_handlers[region_id] = (on_enter, on_leave)

    def trigger_hover(self, region_id: str, entering: bool = True) -> None:
        on_enter, on_leave = self.hover_handlers[region_id]
        (on_enter if entering else on_leave)()

    def get_region_stroke(self, region_id: str) -> Tuple[Optional[str], Optional[str]]:
        element = self._element(region_id)
        paths = self._children(element, ("path",))
        source = paths[0] if paths else element
        return source.get("stroke-width"), source.get("stroke")

    def set_region_stroke(self, region_id: str, width: str, colour: str) -> None:
        element = self._element(region_id)
        for target in self._children(element, ("path",)) or [element]:
            target.set("stroke-width", width)
            target.set("stroke", colour)

    def to_string(self) -> str:
        return ET.tostring(self.root, encoding="unicode")


__all__ = [
    "RenderingSurface",
    "StrokeEmphasis",
    "StrokeStyles",
    "SvgDocumentSurface",
    "outline_target",
]

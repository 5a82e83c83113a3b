"""
SVG placement guide for the print view.

Draws a flat garment outline (front or back) with its print areas and one
marker per placement. Marker position, size and rotation are derived only
from ``PrintMeasurements`` so the guide can never disagree with the numbers
printed next to it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import svgwrite

from .measurements import PlacementSpecification
from .zones import Zone, calibration

SVG_WIDTH = 300
SVG_HEIGHT = 400

GuideView = Literal["front", "back"]


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2


_BODY = (
    "M75,100 Q75,80 100,70 L120,60 Q150,50 180,60 L200,70 Q225,80 225,100 "
    "L230,350 Q230,370 210,370 L90,370 Q70,370 70,350 Z"
)
_HOOD = "M100,70 Q100,30 150,20 Q200,30 200,70"
_LEFT_SLEEVE = "M75,100 Q50,110 30,150 L40,160 Q55,130 75,120"
_RIGHT_SLEEVE = "M225,100 Q250,110 270,150 L260,160 Q245,130 225,120"
_CENTER_LINE = "M150,70 L150,370"

_MAIN_AREAS: dict[str, Box] = {
    "front": Box(90, 120, 120, 140),
    "back": Box(80, 110, 140, 160),
}
_SHOULDER_AREAS: dict[Zone, Box] = {
    Zone.left_shoulder: Box(55, 95, 40, 35),
    Zone.right_shoulder: Box(205, 95, 40, 35),
}

_MARKER_COLORS = {
    Zone.front: "#2563eb",
    Zone.back: "#2563eb",
    Zone.left_shoulder: "#16a34a",
    Zone.right_shoulder: "#9333ea",
}


@dataclass(frozen=True)
class Marker:
    x: float
    y: float
    size: float
    rotation: int


def design_marker(spec: PlacementSpecification, area: Box) -> Marker:
    """Project a placement's measurements into the guide's area box."""
    cal = calibration(spec.area)
    m = spec.measurements
    center_x, center_y = area.center

    offset_x = (m.position_from_center_cm / cal.print_area.width) * area.width
    # Further from the neckline means lower on the garment
    offset_y = ((m.position_from_neckline_cm - cal.neckline_base_cm) / cal.print_area.height) * area.height

    size_ratio = m.design_size_cm / cal.base_size_cm
    size = min(area.width * 0.6 * size_ratio, area.width * 0.9)

    return Marker(x=center_x + offset_x, y=center_y + offset_y, size=size, rotation=m.rotation_degrees)


def render_placement_guide(
    placements: list[PlacementSpecification],
    view: GuideView = "front",
    width: int = SVG_WIDTH,
    height: int = SVG_HEIGHT,
) -> str:
    main_zone = Zone.front if view == "front" else Zone.back
    main_area = _MAIN_AREAS[view]

    dwg = svgwrite.Drawing(size=(width, height), viewBox=f"0 0 {SVG_WIDTH} {SVG_HEIGHT}")
    dwg.defs.add(dwg.style("""
        .outline { stroke: #333; stroke-width: 2; fill: white; }
        .seam { stroke: #999; stroke-width: 1; stroke-dasharray: 4 4; fill: none; }
        .area { stroke: #60a5fa; stroke-width: 1; stroke-dasharray: 5 3; fill: #eff6ff; fill-opacity: 0.5; }
        .label { font-size: 10px; font-family: Arial, sans-serif; fill: #333; }
    """))

    grid = dwg.pattern(id=f"grid-{view}", size=(20, 20), patternUnits="userSpaceOnUse")
    grid.add(dwg.path(d="M 20 0 L 0 0 0 20", fill="none", stroke="#e0e0e0", stroke_width=0.5))
    dwg.defs.add(grid)
    dwg.add(dwg.rect(insert=(0, 0), size=(SVG_WIDTH, SVG_HEIGHT), fill="#f5f5f5"))
    dwg.add(dwg.rect(insert=(0, 0), size=(SVG_WIDTH, SVG_HEIGHT), fill=f"url(#grid-{view})"))

    outline = dwg.g(class_="outline")
    for d in (_HOOD, _BODY, _LEFT_SLEEVE, _RIGHT_SLEEVE):
        outline.add(dwg.path(d=d))
    dwg.add(outline)
    dwg.add(dwg.path(d=_CENTER_LINE, class_="seam"))

    areas: list[tuple[Zone, Box]] = [(main_zone, main_area)]
    areas += list(_SHOULDER_AREAS.items())
    for zone, box in areas:
        dwg.add(dwg.rect(insert=(box.x, box.y), size=(box.width, box.height), class_="area"))

    by_zone = {spec.area: spec for spec in placements}
    for zone, box in areas:
        spec = by_zone.get(zone)
        if spec is None:
            continue
        marker = design_marker(spec, box)
        half = marker.size / 2
        color = _MARKER_COLORS[zone]
        group = dwg.g(transform=f"rotate({marker.rotation} {marker.x:.2f} {marker.y:.2f})")
        group.add(
            dwg.rect(
                insert=(marker.x - half, marker.y - half),
                size=(marker.size, marker.size),
                fill=color,
                fill_opacity=0.25,
                stroke=color,
                stroke_width=1.5,
            )
        )
        group.add(dwg.line(start=(marker.x - 4, marker.y), end=(marker.x + 4, marker.y), stroke=color))
        group.add(dwg.line(start=(marker.x, marker.y - 4), end=(marker.x, marker.y + 4), stroke=color))
        dwg.add(group)
        dwg.add(
            dwg.text(
                spec.label,
                insert=(box.center[0], box.y + box.height + 12),
                class_="label",
                text_anchor="middle",
            )
        )

    return dwg.tostring()

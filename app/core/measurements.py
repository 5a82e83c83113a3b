"""
Print-measurement converter.

Converts the authoring-space placement of a zone into the manufacturing
contract (cm / inches). It depends only on the calibration tables and never
on rendering state: storefront print view, admin print view and the SVG
placement guide all call into this module so the numbers always agree.

Rounding matches the storefront clients: half-up to one decimal.
"""

from __future__ import annotations

import math

from .customization import CamelModel, CustomizationRecord, Vec2
from .zones import (
    CM_PER_AUTHORING_UNIT,
    TEXT_BASE_HEIGHT_CM,
    PrintArea,
    Zone,
    calibration,
)

CM_PER_INCH = 2.54


def _round1(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def _number(value: float) -> str:
    """Render like the storefront does: ``15`` rather than ``15.0``."""
    return f"{value:g}"


class PrintMeasurements(CamelModel):
    design_size_cm: float
    design_size_inches: float
    position_from_center_cm: float
    position_from_center_inches: float
    position_from_neckline_cm: float
    position_from_neckline_inches: float
    rotation_degrees: int


class TextMeasurements(CamelModel):
    height_cm: float
    height_inches: float


class PlacementSpecification(CamelModel):
    area: Zone
    label: str
    has_image: bool
    image_url: str | None = None
    has_text: bool
    text_value: str | None = None
    text_font: str | None = None
    text_color: str | None = None
    text_measurements: TextMeasurements | None = None
    measurements: PrintMeasurements
    print_area: dict[str, float]


def cm_to_inches(cm: float) -> float:
    return _round1(cm / CM_PER_INCH)


def format_measurement(cm: float) -> str:
    return f"{cm:.1f} cm ({cm_to_inches(cm):.1f} in)"


def design_size_cm(zone: Zone | str, scale: float) -> float:
    return _round1(calibration(zone).base_size_cm * scale)


def text_height_cm(scale: float) -> float:
    return _round1(TEXT_BASE_HEIGHT_CM * scale)


def position_from_center_cm(position_x: float) -> float:
    """Positive is right of centre, negative is left."""
    return _round1(position_x * CM_PER_AUTHORING_UNIT)


def position_from_neckline_cm(zone: Zone | str, position_y: float) -> float:
    # Authoring y grows upwards; shoulders sit closer to the neckline than torso prints
    return _round1(calibration(zone).neckline_base_cm - position_y * CM_PER_AUTHORING_UNIT)


def placement_label(zone: Zone | str) -> str:
    return calibration(zone).label


def convert_to_real_measurements(
    zone: Zone | str,
    scale: float,
    position: Vec2 | dict | None,
    rotation: float,
) -> PrintMeasurements:
    if isinstance(position, dict):
        position = Vec2.model_validate(position)
    position = position or Vec2()

    size_cm = design_size_cm(zone, scale)
    center_cm = position_from_center_cm(position.x)
    neckline_cm = position_from_neckline_cm(zone, position.y)

    return PrintMeasurements(
        design_size_cm=size_cm,
        design_size_inches=cm_to_inches(size_cm),
        position_from_center_cm=center_cm,
        position_from_center_inches=cm_to_inches(abs(center_cm)),
        position_from_neckline_cm=neckline_cm,
        position_from_neckline_inches=cm_to_inches(neckline_cm),
        rotation_degrees=int(math.floor(rotation + 0.5)),
    )


def _print_area_dict(area: PrintArea) -> dict[str, float]:
    return {"width": area.width, "height": area.height}


def extract_placement_specifications(
    record: CustomizationRecord | None,
) -> list[PlacementSpecification]:
    """One specification per zone that carries an image or text, in zone order."""
    if record is None:
        return []

    specs: list[PlacementSpecification] = []
    for zone, entry in record.entries():
        cal = calibration(zone)
        text = entry.text
        text_measurements = None
        if text is not None:
            _, text_scale, _ = entry.text_transform(zone)
            height = text_height_cm(text_scale)
            text_measurements = TextMeasurements(height_cm=height, height_inches=cm_to_inches(height))

        specs.append(
            PlacementSpecification(
                area=zone,
                label=cal.label,
                has_image=entry.image is not None,
                image_url=entry.image.url if entry.image else None,
                has_text=text is not None,
                text_value=text.value if text else None,
                text_font=text.font if text else None,
                text_color=text.color if text else None,
                text_measurements=text_measurements,
                measurements=convert_to_real_measurements(
                    zone,
                    entry.effective_scale(zone),
                    entry.effective_position(),
                    entry.effective_rotation(),
                ),
                print_area=_print_area_dict(cal.print_area),
            )
        )
    return specs


def format_position_description(measurements: PrintMeasurements) -> str:
    """Horizontal placement: ``Center`` or ``<n> cm right/left of center``."""
    offset = measurements.position_from_center_cm
    if offset == 0:
        return "Center"
    side = "right" if offset > 0 else "left"
    return f"{_number(abs(offset))} cm {side} of center"


def format_placement_description(measurements: PrintMeasurements) -> str:
    return (
        f"{format_position_description(measurements)}, "
        f"{_number(measurements.position_from_neckline_cm)} cm from neckline"
    )

"""
Placement zones and their calibration tables.

Every number that answers "where does a design on this zone go" lives here:
the print-space tables used for manufacturing specs and the model-space decal
constants used for live rendering. The decal constants are empirically
calibrated against the hoodie model and must not be changed independently of
the model asset.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


class Zone(str, Enum):
    front = "front"
    back = "back"
    left_shoulder = "leftShoulder"
    right_shoulder = "rightShoulder"

    @property
    def zone_class(self) -> str:
        return "shoulder" if self in (Zone.left_shoulder, Zone.right_shoulder) else "torso"

    @property
    def is_shoulder(self) -> bool:
        return self.zone_class == "shoulder"


ZONE_ORDER: tuple[Zone, ...] = (Zone.front, Zone.back, Zone.left_shoulder, Zone.right_shoulder)


@dataclass(frozen=True)
class PositionRange:
    x_min: float
    x_max: float
    y_min: float
    y_max: float

    def contains(self, x: float, y: float) -> bool:
        return self.x_min <= x <= self.x_max and self.y_min <= y <= self.y_max

    def clamp(self, x: float, y: float) -> tuple[float, float]:
        return (
            min(max(x, self.x_min), self.x_max),
            min(max(y, self.y_min), self.y_max),
        )


@dataclass(frozen=True)
class PrintArea:
    width: float
    height: float


@dataclass(frozen=True)
class ZoneCalibration:
    zone: Zone
    label: str

    # Print space (cm)
    print_area: PrintArea
    base_size_cm: float
    neckline_base_cm: float

    # Authoring space
    position_range: PositionRange
    default_scale: float

    # Model space
    anchor_x: float
    anchor_y: float
    z_from_max: float
    z_mirrored: bool
    yaw: float
    footprint_factor: float
    accepts_z_offset: bool

    # Text layer adjustments
    text_z_offset: float
    text_scale_factor: float


IMAGE_SCALE_RANGE = (0.2, 1.0)
TEXT_SCALE_RANGE = (0.2, 2.5)
ROTATION_RANGE = (-180.0, 180.0)

CM_PER_AUTHORING_UNIT = 0.5
TEXT_BASE_HEIGHT_CM = 5.0

_TORSO_RANGE = PositionRange(x_min=-10, x_max=10, y_min=-100, y_max=40)
_SHOULDER_RANGE = PositionRange(x_min=-30, x_max=30, y_min=-30, y_max=30)

ZONES: dict[Zone, ZoneCalibration] = {
    Zone.front: ZoneCalibration(
        zone=Zone.front,
        label="Front (Chest)",
        print_area=PrintArea(width=30, height=35),
        base_size_cm=20,
        neckline_base_cm=15,
        position_range=_TORSO_RANGE,
        default_scale=0.6,
        # Model is asymmetric: shift left to centre on the chest
        anchor_x=-16,
        anchor_y=70,
        z_from_max=-100,
        z_mirrored=False,
        yaw=0.0,
        footprint_factor=0.3,
        accepts_z_offset=True,
        text_z_offset=11,
        text_scale_factor=1.0,
    ),
    Zone.back: ZoneCalibration(
        zone=Zone.back,
        label="Back",
        print_area=PrintArea(width=35, height=40),
        base_size_cm=22,
        neckline_base_cm=15,
        position_range=_TORSO_RANGE,
        default_scale=0.5,
        anchor_x=-16,
        anchor_y=70,
        z_from_max=-50,
        z_mirrored=True,
        yaw=math.pi,
        footprint_factor=0.3,
        accepts_z_offset=True,
        text_z_offset=50,
        text_scale_factor=1.1,
    ),
    Zone.left_shoulder: ZoneCalibration(
        zone=Zone.left_shoulder,
        label="Left Shoulder",
        print_area=PrintArea(width=12, height=10),
        base_size_cm=8,
        neckline_base_cm=5,
        position_range=_SHOULDER_RANGE,
        default_scale=0.5,
        anchor_x=-180 - 70,
        anchor_y=-10 + 40,
        z_from_max=-280,
        z_mirrored=False,
        yaw=math.pi / 2,
        footprint_factor=0.2,
        accepts_z_offset=False,
        text_z_offset=0,
        text_scale_factor=1.1,
    ),
    Zone.right_shoulder: ZoneCalibration(
        zone=Zone.right_shoulder,
        label="Right Shoulder",
        print_area=PrintArea(width=12, height=10),
        base_size_cm=8,
        neckline_base_cm=5,
        position_range=_SHOULDER_RANGE,
        default_scale=0.5,
        anchor_x=165 + 70,
        anchor_y=55 + 40,
        z_from_max=-220,
        z_mirrored=False,
        yaw=-math.pi / 2,
        footprint_factor=0.2,
        accepts_z_offset=False,
        text_z_offset=0,
        text_scale_factor=1.1,
    ),
}

PRINT_AREAS: dict[str, dict[str, float]] = {
    zone.value: {"width": cal.print_area.width, "height": cal.print_area.height}
    for zone, cal in ZONES.items()
}

BASE_SIZES: dict[str, float] = {zone.value: cal.base_size_cm for zone, cal in ZONES.items()}


def calibration(zone: Zone | str) -> ZoneCalibration:
    return ZONES[Zone(zone)]


def calibration_tables() -> dict:
    """Serializable calibration snapshot for clients that derive specs locally."""
    return {
        "printAreas": PRINT_AREAS,
        "baseSizes": BASE_SIZES,
        "cmPerUnit": CM_PER_AUTHORING_UNIT,
        "textBaseHeightCm": TEXT_BASE_HEIGHT_CM,
        "necklineBaseCm": {zone.value: cal.neckline_base_cm for zone, cal in ZONES.items()},
        "positionRanges": {
            zone.value: {
                "xMin": cal.position_range.x_min,
                "xMax": cal.position_range.x_max,
                "yMin": cal.position_range.y_min,
                "yMax": cal.position_range.y_max,
            }
            for zone, cal in ZONES.items()
        },
        "defaultScales": {zone.value: cal.default_scale for zone, cal in ZONES.items()},
        "imageScaleRange": list(IMAGE_SCALE_RANGE),
        "textScaleRange": list(TEXT_SCALE_RANGE),
        "rotationRange": list(ROTATION_RANGE),
    }

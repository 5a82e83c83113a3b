"""
Placement geometry resolver.

Turns a zone placement (authoring-space position / scale / rotation) into a
decal transform in the garment model's native coordinate space:

  1. Anchor: bounding-box centre + author position + the zone's fixed offsets
  2. Depth: near the front-most extent for front / shoulders, mirrored to the
     back-most extent for the back (plus an optional extra z offset that lets
     a text layer sit in front of an image layer on the same zone)
  3. Orientation: yaw about the vertical axis (0, pi, +-pi/2) so the decal
     projects onto the right surface, plus the author's in-plane rotation
  4. Footprint: scale * min(width, height) * zone factor, so scale=1.0 is the
     same visual proportion regardless of the model's unit scale

This module is the single definition of "what does this zone look like";
every render target (Blender capture, web / mobile previews through
``POST /geometry/decal-transform``) consumes it instead of re-deriving it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Literal, Sequence

import trimesh

from .customization import CustomizationRecord, ImageRef, TextSpec, Vec2
from .zones import Zone, calibration

logger = logging.getLogger(__name__)

Vector3 = tuple[float, float, float]


@dataclass(frozen=True)
class ModelBounds:
    min: Vector3
    max: Vector3

    @property
    def size(self) -> Vector3:
        return (
            self.max[0] - self.min[0],
            self.max[1] - self.min[1],
            self.max[2] - self.min[2],
        )

    @property
    def center(self) -> Vector3:
        return (
            (self.min[0] + self.max[0]) / 2,
            (self.min[1] + self.max[1]) / 2,
            (self.min[2] + self.max[2]) / 2,
        )

    @classmethod
    def from_points(cls, lower: Sequence[float], upper: Sequence[float]) -> "ModelBounds":
        return cls(
            min=(float(lower[0]), float(lower[1]), float(lower[2])),
            max=(float(upper[0]), float(upper[1]), float(upper[2])),
        )

    @classmethod
    def from_mesh(cls, path: str | Path) -> "ModelBounds":
        """Axis-aligned bounds of a garment model, computed once per file."""
        return _load_bounds(str(Path(path).resolve()))


@lru_cache(maxsize=16)
def _load_bounds(path: str) -> ModelBounds:
    mesh = trimesh.load(path, force="mesh")
    lower, upper = mesh.bounds
    bounds = ModelBounds.from_points(lower, upper)
    logger.info("Model bounds for %s: min=%s max=%s", Path(path).name, bounds.min, bounds.max)
    return bounds


@dataclass(frozen=True)
class DecalTransform:
    position: Vector3
    rotation: Vector3
    scale: Vector3

    def as_dict(self) -> dict[str, list[float]]:
        return {
            "position": list(self.position),
            "rotation": list(self.rotation),
            "scale": list(self.scale),
        }


def _xy(position: Vec2 | Sequence[float]) -> tuple[float, float]:
    if isinstance(position, Vec2):
        return position.x, position.y
    return float(position[0]), float(position[1])


def resolve_decal_transform(
    zone: Zone | str,
    position: Vec2 | Sequence[float],
    scale: float,
    rotation: float,
    bounds: ModelBounds,
    z_offset: float = 0.0,
) -> DecalTransform:
    cal = calibration(zone)
    x, y = _xy(position)
    center = bounds.center
    width, height, _ = bounds.size

    pos_x = center[0] + x + cal.anchor_x
    pos_y = center[1] + y + cal.anchor_y

    extra = z_offset if cal.accepts_z_offset else 0.0
    if cal.z_mirrored:
        pos_z = -(bounds.max[2] + cal.z_from_max) - extra
    else:
        pos_z = bounds.max[2] + cal.z_from_max + extra

    size = scale * min(width, height) * cal.footprint_factor

    return DecalTransform(
        position=(pos_x, pos_y, pos_z),
        rotation=(0.0, cal.yaw, math.radians(rotation)),
        scale=(size, size, size),
    )


# ---------------------------------------------------------------------------
# Whole-record resolution
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DecalLayer:
    zone: Zone
    kind: Literal["image", "text"]
    source: ImageRef | TextSpec
    transform: DecalTransform


def resolve_layers(record: CustomizationRecord, bounds: ModelBounds) -> list[DecalLayer]:
    """Every image and text layer of a record, image first within a zone."""
    layers: list[DecalLayer] = []
    for zone, entry in record.entries():
        cal = calibration(zone)
        if entry.image is not None:
            layers.append(
                DecalLayer(
                    zone=zone,
                    kind="image",
                    source=entry.image,
                    transform=resolve_decal_transform(
                        zone,
                        entry.effective_position(),
                        entry.effective_scale(zone),
                        entry.effective_rotation(),
                        bounds,
                    ),
                )
            )
        if entry.text is not None:
            position, scale, rotation = entry.text_transform(zone)
            layers.append(
                DecalLayer(
                    zone=zone,
                    kind="text",
                    source=entry.text,
                    transform=resolve_decal_transform(
                        zone,
                        position,
                        scale * cal.text_scale_factor,
                        rotation,
                        bounds,
                        z_offset=cal.text_z_offset,
                    ),
                )
            )
    return layers

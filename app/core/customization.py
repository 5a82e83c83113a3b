"""
Customization record — the per-order-item description of every placement.

A record maps each of the 4 zones to an optional placement entry holding at
most one image layer and one text layer plus the zone's position / scale /
rotation in authoring units. Records are validated at the API boundary and
frozen from the moment an order item is created from them; the exact JSON
(camelCase) is persisted verbatim with the item.
"""

from __future__ import annotations

from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .zones import (
    IMAGE_SCALE_RANGE,
    ROTATION_RANGE,
    TEXT_SCALE_RANGE,
    ZONE_ORDER,
    Zone,
    calibration,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------

class Vec2(FrozenCamelModel):
    x: float = 0.0
    y: float = 0.0


class ImageRef(FrozenCamelModel):
    url: str = Field(min_length=1)
    asset_id: str | None = None


class TextSpec(FrozenCamelModel):
    """Text layer. Torso zones may position text independently of the image."""

    value: str = Field(min_length=1)
    font: str = "Roboto"
    color: str = "#ffffff"

    position: Vec2 | None = None
    scale: float | None = Field(default=None, ge=TEXT_SCALE_RANGE[0], le=TEXT_SCALE_RANGE[1])
    rotation: float | None = Field(default=None, ge=ROTATION_RANGE[0], le=ROTATION_RANGE[1])

    @field_validator("value")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text value must not be blank")
        return value


class PlacementEntry(FrozenCamelModel):
    image: ImageRef | None = None
    text: TextSpec | None = None
    position: Vec2 | None = None
    scale: float | None = Field(default=None, ge=IMAGE_SCALE_RANGE[0], le=TEXT_SCALE_RANGE[1])
    rotation: float | None = Field(default=None, ge=ROTATION_RANGE[0], le=ROTATION_RANGE[1])

    @model_validator(mode="after")
    def _image_scale_range(self) -> "PlacementEntry":
        if self.image is not None and self.scale is not None and self.scale > IMAGE_SCALE_RANGE[1]:
            raise ValueError(
                f"image scale must be within [{IMAGE_SCALE_RANGE[0]}, {IMAGE_SCALE_RANGE[1]}]"
            )
        return self

    @property
    def has_content(self) -> bool:
        return self.image is not None or self.text is not None

    # Missing values fall back to the zone defaults

    def effective_position(self) -> Vec2:
        return self.position or Vec2()

    def effective_scale(self, zone: Zone) -> float:
        return self.scale if self.scale is not None else calibration(zone).default_scale

    def effective_rotation(self) -> float:
        return self.rotation if self.rotation is not None else 0.0

    def text_transform(self, zone: Zone) -> tuple[Vec2, float, float]:
        """(position, scale, rotation) of the text layer."""
        text = self.text
        position = text.position if text and text.position is not None else self.effective_position()
        scale = text.scale if text and text.scale is not None else self.effective_scale(zone)
        rotation = text.rotation if text and text.rotation is not None else self.effective_rotation()
        return position, scale, rotation


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------

class CustomizationRecord(FrozenCamelModel):
    front: PlacementEntry | None = None
    back: PlacementEntry | None = None
    left_shoulder: PlacementEntry | None = None
    right_shoulder: PlacementEntry | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy(cls, data: Any) -> Any:
        if isinstance(data, dict) and any(key in data for key in _LEGACY_MARKERS):
            return legacy_to_tagged(data)
        return data

    @model_validator(mode="after")
    def _positions_in_range(self) -> "CustomizationRecord":
        for zone, entry in self.entries(include_empty=True):
            rng = calibration(zone).position_range
            positions = [entry.position]
            if entry.text is not None:
                positions.append(entry.text.position)
            for pos in positions:
                if pos is not None and not rng.contains(pos.x, pos.y):
                    raise ValueError(
                        f"{zone.value} position ({pos.x}, {pos.y}) outside "
                        f"x[{rng.x_min}, {rng.x_max}] y[{rng.y_min}, {rng.y_max}]"
                    )
        return self

    def entry(self, zone: Zone | str) -> PlacementEntry | None:
        return getattr(self, _FIELD_BY_ZONE[Zone(zone)])

    def entries(self, include_empty: bool = False) -> Iterator[tuple[Zone, PlacementEntry]]:
        """Zone entries in canonical zone order; skips unused zones by default."""
        for zone in ZONE_ORDER:
            entry = self.entry(zone)
            if entry is None:
                continue
            if include_empty or entry.has_content:
                yield zone, entry

    def zones_in_use(self) -> list[Zone]:
        return [zone for zone, _ in self.entries()]

    @property
    def is_empty(self) -> bool:
        return not self.zones_in_use()

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


_FIELD_BY_ZONE: dict[Zone, str] = {
    Zone.front: "front",
    Zone.back: "back",
    Zone.left_shoulder: "left_shoulder",
    Zone.right_shoulder: "right_shoulder",
}


def is_customized(record: CustomizationRecord | None) -> bool:
    return record is not None and not record.is_empty


# ---------------------------------------------------------------------------
# Legacy flat payloads
# ---------------------------------------------------------------------------

# Flat per-field keys written by older storefront builds, per zone:
# (image, text, font, color, position, scale, rotation,
#  text position, text scale, text rotation)
_LEGACY_KEYS: dict[Zone, tuple[str | None, ...]] = {
    Zone.front: (
        "decalImage", "textValue", "textFont", "textColor",
        "decalPosition", "decalScale", "decalRotation",
        "textPosition", "textScale", "textRotation",
    ),
    Zone.back: (
        "backImage", "backText", "backTextFont", "backTextColor",
        "backPosition", "backScale", "backRotation",
        "backTextPosition", "backTextScale", "backTextRotation",
    ),
    Zone.left_shoulder: (
        "leftShoulderImage", "leftShoulderText", "leftShoulderTextFont", "leftShoulderTextColor",
        "leftShoulderPosition", "leftShoulderScale", "leftShoulderRotation",
        None, None, None,
    ),
    Zone.right_shoulder: (
        "rightShoulderImage", "rightShoulderText", "rightShoulderTextFont", "rightShoulderTextColor",
        "rightShoulderPosition", "rightShoulderScale", "rightShoulderRotation",
        None, None, None,
    ),
}

_LEGACY_MARKERS = frozenset(
    key for keys in _LEGACY_KEYS.values() for key in keys[:2] if key
)


def _legacy_number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"invalid legacy value for {key}")
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"invalid legacy value for {key}") from None


def _clamp(value: Any, bounds: tuple[float, float], key: str) -> float:
    return min(max(_legacy_number(value, key), bounds[0]), bounds[1])


def _legacy_position(raw: Any, zone: Zone, key: str) -> dict[str, float] | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"invalid legacy value for {key}")
    x, y = calibration(zone).position_range.clamp(
        _legacy_number(raw.get("x", 0) or 0, key),
        _legacy_number(raw.get("y", 0) or 0, key),
    )
    return {"x": x, "y": y}


def legacy_to_tagged(data: dict[str, Any]) -> dict[str, Any]:
    """
    Convert a flat legacy payload into the tagged per-zone structure.

    Values outside today's authoring ranges (older sliders allowed more) are
    clamped rather than rejected so historical orders stay readable.
    Values that are not numbers raise ``ValueError``.
    """
    tagged: dict[str, Any] = {}
    for zone, keys in _LEGACY_KEYS.items():
        (image_k, text_k, font_k, color_k, pos_k, scale_k, rot_k, tpos_k, tscale_k, trot_k) = keys
        image = data.get(image_k) if image_k else None
        text = data.get(text_k) if text_k else None
        if not image and not (isinstance(text, str) and text.strip()):
            continue

        has_image = bool(image)
        entry: dict[str, Any] = {}
        if has_image:
            entry["image"] = {"url": image}
        position = _legacy_position(data.get(pos_k), zone, pos_k)
        if position is not None:
            entry["position"] = position
        if data.get(scale_k) is not None:
            bounds = IMAGE_SCALE_RANGE if has_image else TEXT_SCALE_RANGE
            entry["scale"] = _clamp(data[scale_k], bounds, scale_k)
        if data.get(rot_k) is not None:
            entry["rotation"] = _clamp(data[rot_k], ROTATION_RANGE, rot_k)

        if isinstance(text, str) and text.strip():
            text_entry: dict[str, Any] = {"value": text}
            if data.get(font_k):
                text_entry["font"] = data[font_k]
            if data.get(color_k):
                text_entry["color"] = data[color_k]
            if tpos_k:
                text_position = _legacy_position(data.get(tpos_k), zone, tpos_k)
                if text_position is not None:
                    text_entry["position"] = text_position
            if tscale_k and data.get(tscale_k) is not None:
                text_entry["scale"] = _clamp(data[tscale_k], TEXT_SCALE_RANGE, tscale_k)
            if trot_k and data.get(trot_k) is not None:
                text_entry["rotation"] = _clamp(data[trot_k], ROTATION_RANGE, trot_k)
            entry["text"] = text_entry

        tagged[zone.value] = entry
    return tagged

"""
Authoring state for a customization session.

The live editing state is an explicit ``{zone -> PlacementState}`` map plus
the session-level bits (selected zone, preview rotation, garment colour).
``reduce(state, action)`` is pure: it returns a new state and never mutates
its input. Every edit records the previous placements so ``Undo`` works the
same way for every zone; ``ResetZone`` / ``ResetAll`` are edits too.

``freeze(state)`` turns the session into the immutable ``CustomizationRecord``
that an order item is created from.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal, Union

from .customization import CustomizationRecord, ImageRef, PlacementEntry, TextSpec, Vec2
from .screenshot_set import VIEW_ROTATIONS, ScreenshotView
from .zones import IMAGE_SCALE_RANGE, ROTATION_RANGE, TEXT_SCALE_RANGE, ZONE_ORDER, Zone, calibration

HISTORY_LIMIT = 50
DEFAULT_GARMENT_COLOR = "#1a1a1a"

Layer = Literal["image", "text"]

# Model rotation that brings each zone in front of the preview camera
ZONE_PREVIEW_ROTATIONS: dict[Zone, float] = {
    Zone.front: VIEW_ROTATIONS[ScreenshotView.front],
    Zone.back: VIEW_ROTATIONS[ScreenshotView.back],
    Zone.left_shoulder: VIEW_ROTATIONS[ScreenshotView.left],
    Zone.right_shoulder: VIEW_ROTATIONS[ScreenshotView.right],
}


@dataclass(frozen=True)
class TextState:
    value: str = ""
    font: str = "Roboto"
    color: str = "#ffffff"


@dataclass(frozen=True)
class PlacementState:
    image: ImageRef | None = None
    text: TextState = field(default_factory=TextState)
    position: tuple[float, float] = (0.0, 0.0)
    scale: float = 0.5
    rotation: float = 0.0

    # Torso zones place text independently of the image; None on shoulders
    text_position: tuple[float, float] | None = None
    text_scale: float | None = None
    text_rotation: float | None = None

    @property
    def has_text(self) -> bool:
        return bool(self.text.value.strip())

    @property
    def has_content(self) -> bool:
        return self.image is not None or self.has_text


def default_placement(zone: Zone) -> PlacementState:
    cal = calibration(zone)
    if zone == Zone.front:
        return PlacementState(
            position=(0.0, -10.0), scale=cal.default_scale,
            text_position=(0.0, -5.0), text_scale=0.5, text_rotation=0.0,
        )
    if zone == Zone.back:
        return PlacementState(
            scale=cal.default_scale,
            text_position=(0.0, -5.0), text_scale=0.5, text_rotation=0.0,
        )
    return PlacementState(scale=cal.default_scale)


def _default_placements() -> dict[Zone, PlacementState]:
    return {zone: default_placement(zone) for zone in ZONE_ORDER}


@dataclass(frozen=True)
class AuthoringState:
    placements: dict[Zone, PlacementState] = field(default_factory=_default_placements)
    selected: Zone = Zone.front
    target_rotation: float = 0.0
    garment_color: str = DEFAULT_GARMENT_COLOR
    history: tuple[tuple[dict[Zone, PlacementState], str], ...] = ()

    def placement(self, zone: Zone | str) -> PlacementState:
        return self.placements[Zone(zone)]

    @property
    def can_undo(self) -> bool:
        return bool(self.history)


def initial_state() -> AuthoringState:
    return AuthoringState()


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SelectZone:
    zone: Zone


@dataclass(frozen=True)
class SetImage:
    zone: Zone
    image: ImageRef | None


@dataclass(frozen=True)
class SetText:
    zone: Zone
    value: str | None = None
    font: str | None = None
    color: str | None = None


@dataclass(frozen=True)
class SetPosition:
    zone: Zone
    x: float | None = None
    y: float | None = None
    layer: Layer = "image"


@dataclass(frozen=True)
class SetScale:
    zone: Zone
    scale: float
    layer: Layer = "image"


@dataclass(frozen=True)
class SetRotation:
    zone: Zone
    rotation: float
    layer: Layer = "image"


@dataclass(frozen=True)
class SetGarmentColor:
    color: str


@dataclass(frozen=True)
class ResetZone:
    zone: Zone


@dataclass(frozen=True)
class ResetAll:
    pass


@dataclass(frozen=True)
class Undo:
    pass


Action = Union[
    SelectZone, SetImage, SetText, SetPosition, SetScale, SetRotation,
    SetGarmentColor, ResetZone, ResetAll, Undo,
]


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

def _clamp(value: float, bounds: tuple[float, float]) -> float:
    return min(max(float(value), bounds[0]), bounds[1])


def _scale_range(placement: PlacementState) -> tuple[float, float]:
    return IMAGE_SCALE_RANGE if placement.image is not None else TEXT_SCALE_RANGE


def _split_text(zone: Zone, layer: Layer) -> bool:
    """True when the text layer carries its own transform on this zone."""
    return layer == "text" and not zone.is_shoulder


def _edit(state: AuthoringState, zone: Zone, placement: PlacementState) -> AuthoringState:
    placements = dict(state.placements)
    placements[zone] = placement
    return _commit(state, placements, state.garment_color)


def _commit(state: AuthoringState, placements: dict[Zone, PlacementState], garment_color: str) -> AuthoringState:
    history = state.history + ((state.placements, state.garment_color),)
    return replace(
        state,
        placements=placements,
        garment_color=garment_color,
        history=history[-HISTORY_LIMIT:],
    )


def reduce(state: AuthoringState, action: Action) -> AuthoringState:
    if isinstance(action, SelectZone):
        zone = Zone(action.zone)
        return replace(state, selected=zone, target_rotation=ZONE_PREVIEW_ROTATIONS[zone])

    if isinstance(action, Undo):
        if not state.history:
            return state
        placements, garment_color = state.history[-1]
        return replace(state, placements=placements, garment_color=garment_color, history=state.history[:-1])

    if isinstance(action, ResetAll):
        return _commit(state, _default_placements(), state.garment_color)

    if isinstance(action, SetGarmentColor):
        return _commit(state, state.placements, action.color)

    zone = Zone(action.zone)
    current = state.placements[zone]
    rng = calibration(zone).position_range

    if isinstance(action, ResetZone):
        return _edit(state, zone, default_placement(zone))

    if isinstance(action, SetImage):
        updated = replace(current, image=action.image)
        if action.image is not None:
            updated = replace(updated, scale=_clamp(updated.scale, IMAGE_SCALE_RANGE))
        return _edit(state, zone, updated)

    if isinstance(action, SetText):
        text = current.text
        text = replace(
            text,
            value=text.value if action.value is None else action.value,
            font=text.font if action.font is None else action.font,
            color=text.color if action.color is None else action.color,
        )
        return _edit(state, zone, replace(current, text=text))

    if isinstance(action, SetPosition):
        if _split_text(zone, action.layer):
            old_x, old_y = current.text_position or current.position
        else:
            old_x, old_y = current.position
        position = rng.clamp(
            old_x if action.x is None else float(action.x),
            old_y if action.y is None else float(action.y),
        )
        if _split_text(zone, action.layer):
            return _edit(state, zone, replace(current, text_position=position))
        return _edit(state, zone, replace(current, position=position))

    if isinstance(action, SetScale):
        if _split_text(zone, action.layer):
            return _edit(state, zone, replace(current, text_scale=_clamp(action.scale, TEXT_SCALE_RANGE)))
        return _edit(state, zone, replace(current, scale=_clamp(action.scale, _scale_range(current))))

    if isinstance(action, SetRotation):
        rotation = _clamp(action.rotation, ROTATION_RANGE)
        if _split_text(zone, action.layer):
            return _edit(state, zone, replace(current, text_rotation=rotation))
        return _edit(state, zone, replace(current, rotation=rotation))

    raise TypeError(f"Unknown authoring action: {action!r}")


# ---------------------------------------------------------------------------
# Freeze
# ---------------------------------------------------------------------------

def _vec(position: tuple[float, float]) -> Vec2:
    return Vec2(x=position[0], y=position[1])


def freeze(state: AuthoringState) -> CustomizationRecord | None:
    """The immutable record for checkout; None when nothing is placed."""
    entries: dict[str, PlacementEntry] = {}
    for zone in ZONE_ORDER:
        placement = state.placements[zone]
        if not placement.has_content:
            continue

        text = None
        if placement.has_text:
            text = TextSpec(
                value=placement.text.value,
                font=placement.text.font,
                color=placement.text.color,
                position=_vec(placement.text_position) if placement.text_position is not None else None,
                scale=placement.text_scale,
                rotation=placement.text_rotation,
            )

        entries[zone.value] = PlacementEntry(
            image=placement.image,
            text=text,
            position=_vec(placement.position),
            scale=placement.scale,
            rotation=placement.rotation,
        )

    if not entries:
        return None
    return CustomizationRecord.model_validate(entries)

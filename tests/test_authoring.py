from __future__ import annotations

import math

import pytest

from app.core.authoring import (
    ResetAll,
    ResetZone,
    SelectZone,
    SetGarmentColor,
    SetImage,
    SetPosition,
    SetRotation,
    SetScale,
    SetText,
    Undo,
    freeze,
    initial_state,
    reduce,
)
from app.core.customization import ImageRef
from app.core.zones import Zone

IMAGE = ImageRef(url="https://cdn.example.com/a.png", asset_id="m-1")


def _apply(state, *actions):
    for action in actions:
        state = reduce(state, action)
    return state


class TestReducer:
    def test_initial_defaults(self):
        state = initial_state()
        assert state.selected == Zone.front
        assert state.placement(Zone.front).position == (0.0, -10.0)
        assert state.placement(Zone.front).scale == 0.6
        assert state.placement(Zone.back).scale == 0.5
        assert state.placement(Zone.left_shoulder).text_position is None

    def test_select_zone_sets_preview_rotation(self):
        state = reduce(initial_state(), SelectZone(Zone.back))
        assert state.selected == Zone.back
        assert state.target_rotation == pytest.approx(math.pi)
        assert reduce(state, SelectZone(Zone.left_shoulder)).target_rotation == pytest.approx(-math.pi / 2)
        assert not state.can_undo

    def test_pure(self):
        state = initial_state()
        after = reduce(state, SetImage(Zone.front, IMAGE))
        assert state.placement(Zone.front).image is None
        assert after.placement(Zone.front).image == IMAGE

    def test_image_scale_clamped(self):
        state = _apply(initial_state(), SetImage(Zone.front, IMAGE), SetScale(Zone.front, 5.0))
        assert state.placement(Zone.front).scale == 1.0

    def test_text_only_shoulder_uses_text_range(self):
        state = _apply(
            initial_state(),
            SetText(Zone.left_shoulder, value="L"),
            SetScale(Zone.left_shoulder, 2.0),
        )
        assert state.placement(Zone.left_shoulder).scale == 2.0
        state = reduce(state, SetImage(Zone.left_shoulder, IMAGE))
        assert state.placement(Zone.left_shoulder).scale == 1.0

    def test_position_clamped_per_zone(self):
        state = _apply(
            initial_state(),
            SetPosition(Zone.front, x=25, y=-150),
            SetPosition(Zone.right_shoulder, x=25),
        )
        assert state.placement(Zone.front).position == (10, -100)
        assert state.placement(Zone.right_shoulder).position == (25, 0.0)

    def test_torso_text_layer_is_independent(self):
        state = _apply(
            initial_state(),
            SetPosition(Zone.front, y=20, layer="text"),
            SetScale(Zone.front, 2.2, layer="text"),
            SetRotation(Zone.front, -400, layer="text"),
        )
        front = state.placement(Zone.front)
        assert front.text_position == (0.0, 20)
        assert front.text_scale == 2.2
        assert front.text_rotation == -180
        assert front.position == (0.0, -10.0)

    def test_shoulder_text_shares_zone_transform(self):
        state = reduce(initial_state(), SetRotation(Zone.left_shoulder, 45, layer="text"))
        assert state.placement(Zone.left_shoulder).rotation == 45

    def test_undo(self):
        state = _apply(
            initial_state(),
            SetImage(Zone.front, IMAGE),
            SetRotation(Zone.front, 30),
            SetGarmentColor("#ffffff"),
        )
        state = reduce(state, Undo())
        assert state.garment_color == "#1a1a1a"
        state = reduce(state, Undo())
        assert state.placement(Zone.front).rotation == 0.0
        assert state.placement(Zone.front).image == IMAGE
        state = _apply(state, Undo(), Undo())
        assert state.placement(Zone.front).image is None
        assert not state.can_undo

    def test_reset_zone_and_all(self):
        state = _apply(
            initial_state(),
            SetImage(Zone.front, IMAGE),
            SetText(Zone.back, value="TEAM"),
            ResetZone(Zone.front),
        )
        assert state.placement(Zone.front).image is None
        assert state.placement(Zone.back).has_text
        state = reduce(state, ResetAll())
        assert not state.placement(Zone.back).has_content
        assert reduce(state, Undo()).placement(Zone.back).has_text


class TestFreeze:
    def test_empty_session(self):
        assert freeze(initial_state()) is None
        assert freeze(reduce(initial_state(), SetText(Zone.front, value="  "))) is None

    def test_record_from_session(self):
        state = _apply(
            initial_state(),
            SetImage(Zone.front, IMAGE),
            SetText(Zone.front, value="HELLO", color="#000000"),
            SetText(Zone.right_shoulder, value="R"),
            SetRotation(Zone.right_shoulder, 15),
        )
        record = freeze(state)
        assert record.zones_in_use() == [Zone.front, Zone.right_shoulder]
        assert record.front.image == IMAGE
        assert record.front.position.y == -10
        assert record.front.scale == 0.6
        assert record.front.text.position.y == -5
        assert record.front.text.color == "#000000"
        assert record.right_shoulder.text.position is None
        assert record.right_shoulder.rotation == 15

from __future__ import annotations

import math

import pytest
import trimesh

from app.core.customization import CustomizationRecord, Vec2
from app.core.geometry import ModelBounds, resolve_decal_transform, resolve_layers
from app.core.zones import Zone


class TestModelBounds:
    def test_size_and_center(self, bounds):
        assert bounds.size == (200, 400, 200)
        assert bounds.center == (0, 0, 50)

    def test_from_mesh(self, tmp_path):
        path = tmp_path / "box.stl"
        trimesh.creation.box(extents=(2.0, 4.0, 6.0)).export(str(path))
        loaded = ModelBounds.from_mesh(path)
        assert loaded.min == pytest.approx((-1.0, -2.0, -3.0))
        assert loaded.max == pytest.approx((1.0, 2.0, 3.0))
        # Plain floats; the mesh library's array types stay inside the loader
        assert all(type(v) is float for v in loaded.min + loaded.max)


class TestResolveDecalTransform:
    """Per-zone anchor, depth, yaw and footprint rules."""

    def test_front(self, bounds):
        t = resolve_decal_transform(Zone.front, Vec2(x=0, y=0), 0.6, 0, bounds)
        assert t.position == pytest.approx((-16, 70, 50))
        assert t.rotation == pytest.approx((0, 0, 0))
        assert t.scale == pytest.approx((36, 36, 36))

    def test_front_z_offset_moves_toward_viewer(self, bounds):
        t = resolve_decal_transform(Zone.front, (0, 0), 0.6, 0, bounds, z_offset=11)
        assert t.position[2] == pytest.approx(61)

    def test_back_is_mirrored(self, bounds):
        t = resolve_decal_transform(Zone.back, Vec2(x=2, y=-5), 0.5, 0, bounds, z_offset=50)
        assert t.position == pytest.approx((-14, 65, -150))
        assert t.rotation[1] == pytest.approx(math.pi)
        assert t.scale[0] == pytest.approx(30)

    def test_left_shoulder(self, bounds):
        t = resolve_decal_transform(Zone.left_shoulder, Vec2(x=5, y=-3), 1.0, 0, bounds)
        assert t.position == pytest.approx((-245, 27, -130))
        assert t.rotation[1] == pytest.approx(math.pi / 2)
        assert t.scale[0] == pytest.approx(40)

    def test_right_shoulder(self, bounds):
        t = resolve_decal_transform(Zone.right_shoulder, Vec2(x=0, y=0), 0.5, 0, bounds)
        assert t.position == pytest.approx((235, 95, -70))
        assert t.rotation[1] == pytest.approx(-math.pi / 2)
        assert t.scale[0] == pytest.approx(20)

    def test_shoulders_ignore_z_offset(self, bounds):
        plain = resolve_decal_transform(Zone.left_shoulder, (0, 0), 0.5, 0, bounds)
        offset = resolve_decal_transform(Zone.left_shoulder, (0, 0), 0.5, 0, bounds, z_offset=25)
        assert plain == offset

    def test_in_plane_rotation_in_radians(self, bounds):
        t = resolve_decal_transform(Zone.front, (0, 0), 0.6, 90, bounds)
        assert t.rotation[2] == pytest.approx(math.pi / 2)

    def test_footprint_uses_smaller_of_width_and_height(self):
        wide = ModelBounds.from_points((-500, -50, 0), (500, 50, 10))
        t = resolve_decal_transform(Zone.front, (0, 0), 1.0, 0, wide)
        assert t.scale[0] == pytest.approx(100 * 0.3)

    def test_pure(self, bounds):
        first = resolve_decal_transform(Zone.back, Vec2(x=3, y=-20), 0.7, -30, bounds, z_offset=4)
        second = resolve_decal_transform(Zone.back, Vec2(x=3, y=-20), 0.7, -30, bounds, z_offset=4)
        assert first == second
        assert first.as_dict() == second.as_dict()


class TestResolveLayers:
    def test_image_before_text_and_text_offsets(self, bounds):
        record = CustomizationRecord.model_validate({
            "front": {
                "image": {"url": "https://cdn.example.com/a.png"},
                "text": {"value": "HELLO"},
                "scale": 0.6,
            },
            "back": {"text": {"value": "TEAM"}},
        })
        layers = resolve_layers(record, bounds)
        assert [(layer.zone, layer.kind) for layer in layers] == [
            (Zone.front, "image"),
            (Zone.front, "text"),
            (Zone.back, "text"),
        ]
        front_image, front_text, back_text = layers
        assert front_text.transform.position[2] == pytest.approx(front_image.transform.position[2] + 11)
        # back text: default scale 0.5, enlarged by 1.1, and pushed 50 further out
        assert back_text.transform.scale[0] == pytest.approx(0.5 * 1.1 * 200 * 0.3)
        assert back_text.transform.position[2] == pytest.approx(-100 - 50)

    def test_text_overrides_position(self, bounds):
        record = CustomizationRecord.model_validate({
            "front": {
                "image": {"url": "https://cdn.example.com/a.png"},
                "position": {"x": 0, "y": -10},
                "text": {"value": "HI", "position": {"x": 4, "y": -5}, "scale": 1.5},
            },
        })
        _, text = resolve_layers(record, bounds)
        assert text.transform.position[:2] == pytest.approx((-12, 65))
        assert text.transform.scale[0] == pytest.approx(1.5 * 200 * 0.3)

    def test_empty_record(self, bounds):
        assert resolve_layers(CustomizationRecord(), bounds) == []

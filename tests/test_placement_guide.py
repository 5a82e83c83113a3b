from __future__ import annotations

import pytest

from app.core.customization import CustomizationRecord
from app.core.measurements import extract_placement_specifications
from app.core.placement_guide import Box, design_marker, render_placement_guide


def _spec(record: dict):
    (spec,) = extract_placement_specifications(CustomizationRecord.model_validate(record))
    return spec


class TestDesignMarker:
    def test_default_front_placement_is_centred(self):
        area = Box(90, 120, 120, 140)
        marker = design_marker(_spec({"front": {"image": {"url": "https://x/a.png"}, "position": {"x": 0, "y": 0}}}), area)
        assert (marker.x, marker.y) == pytest.approx(area.center)
        # 12 cm on a 20 cm base
        assert marker.size == pytest.approx(120 * 0.6 * 0.6)

    def test_offsets_follow_measurements(self):
        area = Box(90, 120, 120, 140)
        spec = _spec({"front": {"image": {"url": "https://x/a.png"}, "position": {"x": 6, "y": -20}, "rotation": 30}})
        marker = design_marker(spec, area)
        # 3 cm right on a 30 cm wide area; 10 cm lower on a 35 cm tall area
        assert marker.x == pytest.approx(150 + 3 / 30 * 120)
        assert marker.y == pytest.approx(190 + 10 / 35 * 140)
        assert marker.rotation == 30

    def test_size_is_capped(self):
        area = Box(55, 95, 40, 35)
        spec = _spec({"leftShoulder": {"text": {"value": "L"}, "scale": 2.5}})
        assert design_marker(spec, area).size == pytest.approx(40 * 0.9)


class TestRenderPlacementGuide:
    def test_front_view_draws_front_and_shoulders_only(self):
        record = CustomizationRecord.model_validate({
            "front": {"image": {"url": "https://x/a.png"}},
            "back": {"text": {"value": "TEAM"}},
            "rightShoulder": {"text": {"value": "R"}},
        })
        svg = render_placement_guide(extract_placement_specifications(record), view="front")
        assert svg.startswith("<svg")
        assert "Front (Chest)" in svg
        assert "Right Shoulder" in svg
        assert "Back" not in svg
        assert "#9333ea" in svg

    def test_back_view(self):
        record = CustomizationRecord.model_validate({"back": {"text": {"value": "TEAM"}}})
        svg = render_placement_guide(extract_placement_specifications(record), view="back", width=150, height=200)
        assert "Back" in svg
        assert 'width="150"' in svg
        assert "grid-back" in svg

    def test_empty_guide(self):
        svg = render_placement_guide([], view="front")
        assert "<rect" in svg
        assert "#2563eb" not in svg

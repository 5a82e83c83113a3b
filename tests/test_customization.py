from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.core.customization import CustomizationRecord, is_customized, legacy_to_tagged
from app.core.screenshot_set import AssetStatus, ScreenshotSet, ScreenshotView, asset_status
from app.core.zones import Zone, calibration_tables


class TestValidation:
    """Records are rejected at the boundary rather than tolerated downstream."""

    def test_image_scale_capped_at_one(self):
        with pytest.raises(ValidationError):
            CustomizationRecord.model_validate(
                {"front": {"image": {"url": "https://cdn.example.com/a.png"}, "scale": 1.5}}
            )

    def test_text_only_zone_allows_wider_scale(self):
        record = CustomizationRecord.model_validate({"back": {"text": {"value": "TEAM"}, "scale": 2.0}})
        assert record.back.scale == 2.0

    def test_rotation_range(self):
        with pytest.raises(ValidationError):
            CustomizationRecord.model_validate({"front": {"text": {"value": "A"}, "rotation": 200}})

    def test_torso_position_range(self):
        with pytest.raises(ValidationError):
            CustomizationRecord.model_validate({"front": {"text": {"value": "A"}, "position": {"x": 20, "y": 0}}})

    def test_shoulder_position_range_is_its_own(self):
        record = CustomizationRecord.model_validate(
            {"leftShoulder": {"text": {"value": "A"}, "position": {"x": 20, "y": -25}}}
        )
        assert record.left_shoulder.position.x == 20
        with pytest.raises(ValidationError):
            CustomizationRecord.model_validate(
                {"leftShoulder": {"text": {"value": "A"}, "position": {"x": 0, "y": -40}}}
            )

    def test_text_position_checked_too(self):
        with pytest.raises(ValidationError):
            CustomizationRecord.model_validate(
                {"front": {"text": {"value": "A", "position": {"x": 0, "y": 80}}}}
            )

    def test_blank_text_rejected(self):
        with pytest.raises(ValidationError):
            CustomizationRecord.model_validate({"front": {"text": {"value": "   "}}})

    def test_record_is_frozen(self):
        record = CustomizationRecord.model_validate({"front": {"text": {"value": "A"}}})
        with pytest.raises(ValidationError):
            record.front = None


class TestRecordHelpers:
    def test_zones_in_use_and_empty(self):
        record = CustomizationRecord.model_validate({
            "back": {"text": {"value": "B"}},
            "front": {"position": {"x": 1, "y": 1}},
        })
        assert record.zones_in_use() == [Zone.back]
        assert not record.is_empty
        assert CustomizationRecord.model_validate({"front": {}}).is_empty
        assert is_customized(record)
        assert not is_customized(None)
        assert not is_customized(CustomizationRecord())

    def test_json_is_camel_case_without_nulls(self):
        record = CustomizationRecord.model_validate(
            {"rightShoulder": {"image": {"url": "https://cdn.example.com/r.png", "assetId": "m-9"}}}
        )
        assert record.to_json() == {
            "rightShoulder": {"image": {"url": "https://cdn.example.com/r.png", "assetId": "m-9"}}
        }

    def test_round_trip_through_json(self):
        data = {
            "front": {
                "image": {"url": "https://cdn.example.com/a.png"},
                "text": {"value": "HI", "font": "Oswald", "color": "#000000"},
                "position": {"x": -2.5, "y": -30.0},
                "scale": 0.8,
                "rotation": -15.0,
            }
        }
        record = CustomizationRecord.model_validate(data)
        assert CustomizationRecord.model_validate(record.to_json()) == record


class TestLegacyPayloads:
    def test_flat_payload_is_converted(self):
        record = CustomizationRecord.model_validate({
            "decalImage": "https://cdn.example.com/a.png",
            "decalScale": 0.7,
            "decalPosition": {"x": 3, "y": -12, "z": 0},
            "decalRotation": 30,
            "textValue": "",
            "backText": "TEAM",
            "backTextFont": "Oswald",
            "backTextColor": "#ff0000",
            "leftShoulderImage": None,
        })
        assert record.zones_in_use() == [Zone.front, Zone.back]
        assert record.front.image.url == "https://cdn.example.com/a.png"
        assert record.front.position.x == 3
        assert record.front.rotation == 30
        assert record.front.text is None
        assert record.back.text.font == "Oswald"
        assert record.back.text.color == "#ff0000"

    def test_out_of_range_values_are_clamped(self):
        tagged = legacy_to_tagged({
            "decalImage": "https://cdn.example.com/a.png",
            "decalScale": 1.4,
            "decalPosition": {"x": 50, "y": 0},
            "rightShoulderText": "R",
            "rightShoulderScale": 3.0,
            "rightShoulderRotation": -270,
        })
        assert tagged["front"]["scale"] == 1.0
        assert tagged["front"]["position"] == {"x": 10.0, "y": 0.0}
        assert tagged["rightShoulder"]["scale"] == 2.5
        assert tagged["rightShoulder"]["rotation"] == -180.0
        CustomizationRecord.model_validate(tagged)

    def test_text_transform_keys(self):
        tagged = legacy_to_tagged({
            "textValue": "HELLO",
            "textPosition": {"x": 1, "y": -5},
            "textScale": 0.9,
            "textRotation": 10,
        })
        assert tagged["front"]["text"] == {
            "value": "HELLO",
            "position": {"x": 1.0, "y": -5.0},
            "scale": 0.9,
            "rotation": 10.0,
        }

    @pytest.mark.parametrize(
        "payload",
        [
            {"decalImage": "https://cdn.example.com/a.png", "decalScale": [0.5]},
            {"decalImage": "https://cdn.example.com/a.png", "decalRotation": "upright"},
            {"decalImage": "https://cdn.example.com/a.png", "decalPosition": {"x": "left", "y": 0}},
            {"decalImage": "https://cdn.example.com/a.png", "decalPosition": [1, 2]},
            {"textValue": "HI", "textScale": {"value": 1}},
        ],
    )
    def test_malformed_values_are_rejected(self, payload):
        with pytest.raises(ValidationError):
            CustomizationRecord.model_validate(payload)


class TestScreenshotSet:
    def test_present_in_view_order(self):
        shots = ScreenshotSet(right="r", front="f")
        assert list(shots.present()) == [ScreenshotView.front, ScreenshotView.right]
        assert shots.count == 2

    def test_asset_status(self):
        assert asset_status(None) == AssetStatus.no_screenshots
        assert asset_status(ScreenshotSet()) == AssetStatus.empty
        assert asset_status(ScreenshotSet(front="f", back="b", left="l")) == AssetStatus.partial
        assert asset_status(ScreenshotSet(front="f", back="b", left="l", right="r")) == AssetStatus.complete


class TestCalibrationTables:
    def test_tables(self):
        tables = calibration_tables()
        assert tables["printAreas"]["front"] == {"width": 30, "height": 35}
        assert tables["printAreas"]["leftShoulder"] == {"width": 12, "height": 10}
        assert tables["baseSizes"] == {"front": 20, "back": 22, "leftShoulder": 8, "rightShoulder": 8}
        assert tables["cmPerUnit"] == 0.5
        assert tables["necklineBaseCm"]["rightShoulder"] == 5

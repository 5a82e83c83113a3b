from __future__ import annotations

import asyncio
import base64

import pytest

from app.core.errors import InvalidDataUrlError
from app.core.screenshot_pipeline import (
    build_screenshot_key,
    decode_data_url,
    screenshot_proxy_url,
    upload_item_views,
)
from app.core.screenshot_set import ScreenshotSet, ScreenshotView
from conftest import MemoryObjectStore, png_bytes, png_data_url


def _upload(store, screenshots, **kwargs):
    return asyncio.run(
        upload_item_views(
            store,
            base_folder="media",
            backend_url="https://api.example.com",
            order_number="ORD-LX2K9A1B-7QZP",
            item_index=1,
            screenshots=screenshots,
            clock=lambda: 1700000000.123,
            **kwargs,
        )
    )


class TestKeys:
    def test_key_layout(self):
        key = build_screenshot_key("media", "ORD-ABC-1234", 0, ScreenshotView.left, 1700000000123)
        assert key == "media/orders/ORD-ABC-1234/item-0/left-1700000000123.png"

    def test_empty_base_folder(self):
        assert build_screenshot_key("", "ORD-A-B", 2, "back", 5) == "orders/ORD-A-B/item-2/back-5.png"

    def test_proxy_url(self):
        assert (
            screenshot_proxy_url("https://api.example.com/", "media/orders/x.png")
            == "https://api.example.com/upload/spaces/media/orders/x.png"
        )


class TestDecodeDataUrl:
    def test_png_default(self):
        data, content_type = decode_data_url(png_data_url())
        assert data == png_bytes()
        assert content_type == "image/png"

    def test_jpeg_detected(self):
        payload = base64.b64encode(b"\xff\xd8\xff\xe0fake").decode("ascii")
        data, content_type = decode_data_url(f"data:image/jpeg;base64,{payload}")
        assert data.startswith(b"\xff\xd8")
        assert content_type == "image/jpeg"

    @pytest.mark.parametrize("value", ["not a data url", "data:image/png;base64,@@@", "data:image/png;base64,"])
    def test_invalid(self, value):
        with pytest.raises(InvalidDataUrlError):
            decode_data_url(value)


class TestUploadItemViews:
    def test_all_views(self):
        store = MemoryObjectStore()
        shots = ScreenshotSet(front=png_data_url(), back=png_data_url(), left=png_data_url(), right=png_data_url())
        result = _upload(store, shots)
        assert result.uploaded == 4
        assert not result.failures
        assert sorted(store.objects) == [
            f"media/orders/ORD-LX2K9A1B-7QZP/item-1/{view}-1700000000123.png"
            for view in ("back", "front", "left", "right")
        ]
        assert result.urls.front == (
            "https://api.example.com/upload/spaces/media/orders/ORD-LX2K9A1B-7QZP/item-1/front-1700000000123.png"
        )

    def test_one_failing_view_keeps_the_rest(self):
        store = MemoryObjectStore(fail_on=("/left-",))
        shots = ScreenshotSet(front=png_data_url(), back=png_data_url(), left=png_data_url(), right=png_data_url())
        result = _upload(store, shots)
        assert result.uploaded == 3
        assert result.urls.left is None
        assert [f.view for f in result.failures] == [ScreenshotView.left]
        assert len(store.objects) == 3

    def test_bad_payload_is_a_view_failure(self):
        store = MemoryObjectStore()
        result = _upload(store, ScreenshotSet(front=png_data_url(), back="garbage"))
        assert result.urls.front is not None
        assert [f.view for f in result.failures] == [ScreenshotView.back]

    def test_size_limit(self):
        store = MemoryObjectStore()
        result = _upload(store, ScreenshotSet(front=png_data_url()), max_bytes=10)
        assert result.uploaded == 0
        assert len(result.failures) == 1
        assert not store.objects

    def test_subset_and_empty(self):
        store = MemoryObjectStore()
        assert _upload(store, ScreenshotSet(right=png_data_url())).urls.present().keys() == {ScreenshotView.right}
        empty = _upload(store, ScreenshotSet())
        assert empty.uploaded == 0 and not empty.failures

"""
Screenshot upload pipeline.

Takes the captured views of one order item (base64 data URLs), stores each
under a deterministic key and returns the proxy URLs of the views that made
it. Views are uploaded concurrently and fail independently: a failed view is
logged and simply absent from the result. There is no retry.

Key layout::

    {baseFolder}/orders/{orderNumber}/item-{index}/{view}-{timestamp}.png

The bucket is private, so the returned URLs point at the service proxy
(``{backend}/upload/spaces/{key}``) instead of the bucket.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from shared.asset_fetcher import parse_data_url
from shared.object_store import ObjectStore

from .errors import InvalidDataUrlError, UploadError
from .screenshot_set import ScreenshotSet, ScreenshotView

logger = logging.getLogger(__name__)

PROXY_PREFIX = "/upload/spaces"


def build_screenshot_key(
    base_folder: str,
    order_number: str,
    item_index: int,
    view: ScreenshotView | str,
    timestamp: int,
) -> str:
    view_name = ScreenshotView(view).value
    key = f"orders/{order_number}/item-{item_index}/{view_name}-{timestamp}.png"
    folder = base_folder.strip("/")
    return f"{folder}/{key}" if folder else key


def screenshot_proxy_url(backend_url: str, key: str) -> str:
    return f"{backend_url.rstrip('/')}{PROXY_PREFIX}/{key}"


def decode_data_url(value: str) -> tuple[bytes, str]:
    """Decode a screenshot data URL into ``(bytes, content_type)``."""
    try:
        data, mime = parse_data_url(value)
    except ValueError as exc:
        raise InvalidDataUrlError(str(exc)) from exc
    if not data:
        raise InvalidDataUrlError("Empty image payload")
    content_type = "image/jpeg" if "jpeg" in mime or "jpg" in mime else "image/png"
    return data, content_type


@dataclass
class UploadFailure:
    view: ScreenshotView
    error: str


@dataclass
class UploadResult:
    urls: ScreenshotSet = field(default_factory=ScreenshotSet)
    failures: list[UploadFailure] = field(default_factory=list)

    @property
    def uploaded(self) -> int:
        return self.urls.count


async def upload_item_views(
    store: ObjectStore,
    *,
    base_folder: str,
    backend_url: str,
    order_number: str,
    item_index: int,
    screenshots: ScreenshotSet,
    max_bytes: int | None = None,
    clock: Callable[[], float] = time.time,
) -> UploadResult:
    """Upload every provided view concurrently; never raises for a failed view."""
    present = screenshots.present()
    if not present:
        return UploadResult()

    loop = asyncio.get_running_loop()
    timestamp = int(clock() * 1000)

    async def _upload(view: ScreenshotView, data_url: str) -> str:
        data, content_type = decode_data_url(data_url)
        if max_bytes is not None and len(data) > max_bytes:
            raise UploadError(f"{len(data)} bytes exceeds limit of {max_bytes}")
        key = build_screenshot_key(base_folder, order_number, item_index, view, timestamp)
        await loop.run_in_executor(None, store.put, key, data, content_type)
        return screenshot_proxy_url(backend_url, key)

    views = list(present.items())
    outcomes = await asyncio.gather(
        *(_upload(view, data_url) for view, data_url in views),
        return_exceptions=True,
    )

    urls: dict[ScreenshotView, str] = {}
    failures: list[UploadFailure] = []
    for (view, _), outcome in zip(views, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(
                "[UPLOAD] %s item-%d %s failed: %s",
                order_number, item_index, view.value, outcome,
            )
            failures.append(UploadFailure(view=view, error=str(outcome)))
        else:
            urls[view] = outcome

    logger.info(
        "[UPLOAD] %s item-%d: %d/%d views stored",
        order_number, item_index, len(urls), len(views),
    )
    return UploadResult(urls=ScreenshotSet.from_views(urls), failures=failures)

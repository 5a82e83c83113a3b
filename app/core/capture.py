"""
Four-view capture of customized order items.

The render surface is a single stateful resource (one scene, one camera), so
items are captured strictly one after another and each item's four views are
taken in canonical order on the same loaded scene. A failing item is logged
and ends with no views; it never stops the remaining items.
"""

from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from .customization import CustomizationRecord, is_customized
from .errors import CaptureError
from .screenshot_set import VIEW_ORDER, VIEW_ROTATIONS, ScreenshotSet, ScreenshotView

logger = logging.getLogger(__name__)


class RenderSurface(Protocol):
    def load(self, record: CustomizationRecord, garment_color: str | None) -> None: ...

    def set_rotation(self, radians: float) -> None: ...

    def snapshot(self) -> bytes: ...


@dataclass
class CaptureLine:
    """One cart line to capture; ``key`` ties the views back to the line."""

    key: str
    record: CustomizationRecord | None
    garment_color: str | None = None


@dataclass
class CapturedViews:
    views: dict[ScreenshotView, bytes] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.views)

    def as_data_urls(self) -> ScreenshotSet:
        return ScreenshotSet.from_views(
            {view: to_data_url(data) for view, data in self.views.items()}
        )


@dataclass
class CaptureFailure:
    key: str
    error: str


@dataclass
class CaptureReport:
    captured: dict[str, CapturedViews] = field(default_factory=dict)
    failures: list[CaptureFailure] = field(default_factory=list)

    def views_for(self, key: str) -> CapturedViews:
        return self.captured.get(key) or CapturedViews()


def to_data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def capture_item(
    surface: RenderSurface,
    record: CustomizationRecord,
    garment_color: str | None = None,
) -> CapturedViews:
    """Render the four canonical views of one record. Raises on any failure."""
    surface.load(record, garment_color)
    views: dict[ScreenshotView, bytes] = {}
    for view in VIEW_ORDER:
        surface.set_rotation(VIEW_ROTATIONS[view])
        data = surface.snapshot()
        if not data:
            raise CaptureError(f"empty snapshot for {view.value} view")
        views[view] = data
    return CapturedViews(views=views)


def capture_items(surface: RenderSurface, lines: Iterable[CaptureLine]) -> CaptureReport:
    """
    Capture every customized line, sequentially.

    Lines without a customization are skipped. A line whose capture raises
    gets an empty ``CapturedViews`` and a ``CaptureFailure`` entry.
    """
    report = CaptureReport()
    for line in lines:
        if not is_customized(line.record):
            continue

        t0 = time.time()
        try:
            views = capture_item(surface, line.record, line.garment_color)
        except Exception as exc:
            logger.error("[CAPTURE] Line %s failed after %.1fs: %s", line.key, time.time() - t0, exc)
            report.captured[line.key] = CapturedViews()
            report.failures.append(CaptureFailure(key=line.key, error=str(exc)))
            continue

        logger.info("[CAPTURE] Line %s: %d views in %.1fs", line.key, views.count, time.time() - t0)
        report.captured[line.key] = views
    return report

from __future__ import annotations

import math
from enum import Enum

from .customization import CamelModel


class ScreenshotView(str, Enum):
    front = "front"
    back = "back"
    left = "left"
    right = "right"


VIEW_ORDER: tuple[ScreenshotView, ...] = (
    ScreenshotView.front,
    ScreenshotView.back,
    ScreenshotView.left,
    ScreenshotView.right,
)

# Model rotation about the vertical axis for each canonical view (radians)
VIEW_ROTATIONS: dict[ScreenshotView, float] = {
    ScreenshotView.front: 0.0,
    ScreenshotView.back: math.pi,
    ScreenshotView.left: -math.pi / 2,
    ScreenshotView.right: math.pi / 2,
}


class AssetStatus(str, Enum):
    no_screenshots = "no_screenshots"
    complete = "complete"
    partial = "partial"
    empty = "empty"


class ScreenshotSet(CamelModel):
    """One URL (or data URL, before upload) per view; any subset may be missing."""

    front: str | None = None
    back: str | None = None
    left: str | None = None
    right: str | None = None

    def get(self, view: ScreenshotView | str) -> str | None:
        return getattr(self, ScreenshotView(view).value)

    def present(self) -> dict[ScreenshotView, str]:
        views: dict[ScreenshotView, str] = {}
        for view in VIEW_ORDER:
            value = self.get(view)
            if value:
                views[view] = value
        return views

    @property
    def count(self) -> int:
        return len(self.present())

    @classmethod
    def from_views(cls, views: dict[ScreenshotView, str]) -> "ScreenshotSet":
        return cls(**{view.value: url for view, url in views.items()})


def asset_status(screenshots: ScreenshotSet | None) -> AssetStatus:
    if screenshots is None:
        return AssetStatus.no_screenshots
    count = screenshots.count
    if count == len(VIEW_ORDER):
        return AssetStatus.complete
    if count == 0:
        return AssetStatus.empty
    return AssetStatus.partial

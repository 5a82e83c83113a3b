"""
Text rasterizer.

Renders a text layer ``{value, font, color}`` onto a fixed transparent square
canvas, bold, centred on both axes. The PNG is consumed by the capture
surface exactly like an uploaded image.

Fonts are files in the registry's font directory. A missing font can be
fetched from a configured source in the background; drawing waits for it by
polling the registry and, after a bounded wait, draws with the fallback font
rather than hanging.
"""

from __future__ import annotations

import io
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable
from urllib.parse import urlparse

from PIL import Image, ImageColor, ImageDraw, ImageFont

from shared.asset_fetcher import download_bytes
from shared.files import ensure_dir, safe_name

from .customization import TextSpec

logger = logging.getLogger(__name__)

CANVAS_SIZE = 512
FONT_PX = 64
_FONT_SUFFIXES = (".ttf", ".otf")


@dataclass(frozen=True)
class FontFace:
    path: Path
    bold: bool


class FontRegistry:
    def __init__(
        self,
        font_dir: Path,
        sources: dict[str, str] | None = None,
        http_timeout: float = 30.0,
    ):
        self.font_dir = ensure_dir(font_dir)
        self.sources = dict(sources or {})
        self.http_timeout = http_timeout
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="font-loader")
        self._pending: dict[str, Future] = {}
        self._lock = threading.Lock()

    def find(self, font: str) -> FontFace | None:
        stem = safe_name(font, fallback="font")
        for bold, name in ((True, f"{stem}-Bold"), (False, stem), (False, f"{stem}-Regular")):
            for suffix in _FONT_SUFFIXES:
                path = self.font_dir / f"{name}{suffix}"
                if path.is_file():
                    return FontFace(path=path, bold=bold)
        return None

    def is_loaded(self, font: str) -> bool:
        return self.find(font) is not None

    def is_pending(self, font: str) -> bool:
        """Whether ``font`` may still arrive: a download in flight, or a source not yet tried."""
        with self._lock:
            future = self._pending.get(font)
        if future is not None:
            return not future.done()
        return font in self.sources

    def request(self, font: str) -> None:
        """Start fetching ``font`` from its source unless present or in flight."""
        url = self.sources.get(font)
        if not url or self.is_loaded(font):
            return
        with self._lock:
            if font in self._pending and not self._pending[font].done():
                return
            future = self._executor.submit(self._download, font, url)
            future.add_done_callback(lambda f, name=font: self._log_failure(name, f))
            self._pending[font] = future

    def _download(self, font: str, url: str) -> Path:
        data, _ = download_bytes(url, timeout=self.http_timeout)
        suffix = Path(urlparse(url).path).suffix.lower()
        if suffix not in _FONT_SUFFIXES:
            suffix = ".ttf"
        stem = safe_name(font, fallback="font")
        name = f"{stem}-Bold{suffix}" if "bold" in url.lower() else f"{stem}{suffix}"
        dest = self.font_dir / name
        # Write then rename: pollers must never see a half-written file
        tmp = dest.with_suffix(dest.suffix + ".part")
        tmp.write_bytes(data)
        tmp.replace(dest)
        logger.info("Font loaded: %s -> %s (%d bytes)", font, dest.name, len(data))
        return dest

    @staticmethod
    def _log_failure(font: str, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.warning("Font download failed for %s: %s", font, exc)

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


def wait_for_font(
    registry: FontRegistry,
    font: str,
    timeout: float = 3.0,
    poll_interval: float = 0.05,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Poll until ``font`` is available.

    False once ``timeout`` elapses, or at once when nothing can load it.
    """
    deadline = clock() + timeout
    while True:
        if registry.is_loaded(font):
            return True
        if not registry.is_pending(font):
            return registry.is_loaded(font)
        if clock() >= deadline:
            return False
        sleep(poll_interval)


def _parse_color(color: str) -> tuple[int, ...]:
    try:
        return ImageColor.getrgb(color)
    except ValueError:
        logger.warning("Unrecognised text color %r, using white", color)
        return (255, 255, 255)


def rasterize_text(
    spec: TextSpec,
    face: FontFace | None,
    canvas_size: int = CANVAS_SIZE,
    font_px: int = FONT_PX,
) -> Image.Image:
    image = Image.new("RGBA", (canvas_size, canvas_size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(image)

    if face is not None:
        font = ImageFont.truetype(str(face.path), font_px)
    else:
        font = ImageFont.load_default(size=font_px)

    # Embolden with a same-colour stroke when no bold face is available
    stroke = 0 if face is not None and face.bold else max(1, font_px // 32)
    fill = _parse_color(spec.color)

    draw.text(
        (canvas_size / 2, canvas_size / 2),
        spec.value,
        font=font,
        fill=fill,
        anchor="mm",
        stroke_width=stroke,
        stroke_fill=fill,
    )
    return image


def render_text_png(
    spec: TextSpec,
    registry: FontRegistry,
    timeout: float = 3.0,
    poll_interval: float = 0.05,
    canvas_size: int = CANVAS_SIZE,
) -> bytes:
    registry.request(spec.font)
    if not wait_for_font(registry, spec.font, timeout=timeout, poll_interval=poll_interval):
        logger.warning("Font %r not available after %.1fs, drawing with fallback font", spec.font, timeout)

    image = rasterize_text(spec, registry.find(spec.font), canvas_size=canvas_size)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()

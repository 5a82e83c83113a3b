#!/usr/bin/env python3
"""
Standalone CLI for capturing the four order views of a customization.

Usage:
  python scripts/capture_item.py customization.json [--model hoodie.glb] [--color "#1a1a1a"]
                                 [--output-dir ./out] [--resolution 1024]

The JSON file holds a customization record (tagged per zone, or a legacy
flat payload). Writes front.png, back.png, left.png and right.png.
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

SERVICE_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(SERVICE_ROOT))

from app.config import settings
from app.core.capture import capture_item
from app.core.customization import CustomizationRecord
from app.core.renderer import BlenderRenderSurface
from app.core.text_raster import FontRegistry
from shared.files import ensure_dir
from shared.logging import configure_logging


def main() -> None:
    parser = argparse.ArgumentParser(description="Render the four order views of a customization")
    parser.add_argument("customization", help="Path to a customization JSON file")
    parser.add_argument("--model", default=None, help="Garment GLB (defaults to APPAREL_GARMENT_MODEL_PATH)")
    parser.add_argument("--color", default="#1a1a1a", help="Garment colour (hex)")
    parser.add_argument("--output-dir", default=str(SERVICE_ROOT / "data" / "captures"),
                        help="Output directory for the views")
    parser.add_argument("--resolution", type=int, default=settings.capture_resolution, help="Render resolution")
    parser.add_argument("--blender", default=None, help="Path to Blender executable")
    args = parser.parse_args()

    configure_logging(settings.log_level)

    source = Path(args.customization)
    if not source.is_file():
        print(f"Error: customization file not found: {source}", file=sys.stderr)
        sys.exit(1)
    record = CustomizationRecord.model_validate(json.loads(source.read_text()))
    if record.is_empty:
        print("Error: customization has no image or text on any zone", file=sys.stderr)
        sys.exit(1)

    model = Path(args.model) if args.model else settings.garment_model_path
    if model is None or not model.is_file():
        print(f"Error: garment model not found: {model}", file=sys.stderr)
        sys.exit(1)

    surface = BlenderRenderSurface(
        model_path=model.resolve(),
        blender_executable=Path(args.blender) if args.blender else settings.blender_executable,
        render_dir=settings.renders_dir,
        asset_cache_dir=settings.asset_cache_dir,
        fonts=FontRegistry(settings.fonts_dir, settings.font_sources, settings.http_timeout_seconds),
        resolution=args.resolution,
        timeout=settings.blender_timeout_seconds,
        http_timeout=settings.http_timeout_seconds,
        font_wait_timeout=settings.font_wait_timeout_seconds,
        font_poll_interval=settings.font_poll_interval_seconds,
    )

    print(f"Capturing views for: {source}")
    print(f"  Zones: {', '.join(zone.value for zone in record.zones_in_use())}")
    print(f"  Model: {model}")
    print(f"  Resolution: {args.resolution}")

    t0 = time.time()
    try:
        views = capture_item(surface, record, args.color)
    except Exception as exc:
        print(f"\nFailed after {time.time() - t0:.1f}s: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        surface.fonts.close()

    out_dir = ensure_dir(Path(args.output_dir))
    for view, data in views.views.items():
        path = out_dir / f"{view.value}.png"
        path.write_bytes(data)
        print(f"  {view.value}: {path} ({len(data)} bytes)")
    print(f"\nSuccess: {views.count} views captured in {time.time() - t0:.1f}s")


if __name__ == "__main__":
    main()

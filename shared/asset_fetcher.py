"""
Asset fetcher for design images and fonts.

Placement images arrive as references inside a customization record:
  - ``https://...`` URLs (media library or proxy URLs)
  - ``data:image/png;base64,...`` URLs (freshly uploaded artwork)
  - plain local file paths (standalone / dev)

This module resolves them to local files, downloading and caching as needed,
so the capture surface can hand a path to Blender.
"""

from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
import re
from pathlib import Path
from urllib.parse import urlparse

import httpx

from shared.files import ensure_dir, sha256_bytes

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(?P<b64>;base64)?,(?P<payload>.*)$", re.DOTALL)


def parse_data_url(value: str) -> tuple[bytes, str]:
    """Decode a ``data:`` URL into ``(bytes, mime)``."""
    match = _DATA_URL_RE.match(value.strip())
    if not match:
        raise ValueError("Not a data URL")
    mime = match.group("mime") or "application/octet-stream"
    payload = match.group("payload")
    if not match.group("b64"):
        return payload.encode("utf-8"), mime
    try:
        return base64.b64decode(payload, validate=True), mime
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 payload: {exc}") from exc


def download_bytes(url: str, timeout: float = 60.0) -> tuple[bytes, str]:
    """Blocking GET returning ``(body, content_type)``."""
    logger.info("Downloading asset: %s", url[:120])
    with httpx.Client(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
        resp = client.get(url)
        resp.raise_for_status()
        content_type = resp.headers.get("content-type", "application/octet-stream")
        return resp.content, content_type.split(";")[0].strip()


def _suffix_for(mime: str, fallback: str = ".bin") -> str:
    if mime == "image/jpeg":
        return ".jpg"
    return mimetypes.guess_extension(mime) or fallback


def fetch_asset(ref: str, cache_dir: Path, http_timeout: float = 60.0) -> Path:
    """
    Resolve an asset reference to a local file path.

    Remote downloads are cached under ``cache_dir`` keyed by the SHA-256 of
    the URL; data URLs are keyed by the SHA-256 of their decoded content.
    """
    ensure_dir(cache_dir)
    ref = (ref or "").strip()
    if not ref:
        raise ValueError("Empty asset reference")

    if ref.startswith("data:"):
        data, mime = parse_data_url(ref)
        dest = cache_dir / f"{sha256_bytes(data)}{_suffix_for(mime)}"
        if not dest.exists():
            dest.write_bytes(data)
        return dest

    if ref.startswith(("http://", "https://")):
        url_key = sha256_bytes(ref.encode("utf-8"))
        cached = sorted(cache_dir.glob(f"{url_key}.*"))
        if cached:
            logger.debug("Asset cache hit: %s", url_key[:12])
            return cached[0]
        data, mime = download_bytes(ref, timeout=http_timeout)
        suffix = Path(urlparse(ref).path).suffix or _suffix_for(mime)
        dest = cache_dir / f"{url_key}{suffix}"
        dest.write_bytes(data)
        logger.info("Cached asset: %s (%d bytes)", url_key[:12], len(data))
        return dest

    local = Path(ref).expanduser()
    if local.is_file():
        return local
    raise FileNotFoundError(f"Asset not found: {ref}")

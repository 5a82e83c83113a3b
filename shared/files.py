from __future__ import annotations

import hashlib
import re
from pathlib import Path


_SAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9._-]+")


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def safe_name(name: str, fallback: str = "file") -> str:
    value = _SAFE_NAME_RE.sub("_", (name or "").strip()).strip("._")
    return value or fallback


def normalize_key(key: str) -> str:
    """
    Normalise an object key to ``a/b/c`` form.

    Rejects empty segments and parent references so a key can never escape
    the storage root when mapped onto a filesystem.
    """
    candidate = (key or "").replace("\\", "/").strip("/")
    if not candidate:
        raise ValueError("Object key cannot be empty")
    segments = candidate.split("/")
    for segment in segments:
        if segment in {"", ".", ".."} or ".." in segment:
            raise ValueError(f"Invalid key segment '{segment}'")
    return "/".join(segments)

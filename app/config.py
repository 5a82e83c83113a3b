from __future__ import annotations

import os
import shutil
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SERVICE_ROOT = Path(__file__).resolve().parents[1]

load_dotenv(SERVICE_ROOT / ".env", override=False)


def _default_blender_executable() -> Path:
    candidates: list[str] = [
        os.getenv("APPAREL_BLENDER_EXECUTABLE", "").strip(),
        os.getenv("BLENDER_PATH", "").strip(),
        shutil.which("blender") or "",
        "/usr/bin/blender",
        "/Applications/Blender.app/Contents/MacOS/Blender",
    ]
    for candidate in candidates:
        if not candidate:
            continue
        path = Path(candidate).expanduser()
        if path.exists():
            return path
    return Path("/usr/bin/blender")


class StorefrontSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="APPAREL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    service_name: str = "apparel-print-service"
    host: str = "0.0.0.0"
    port: int = 8110
    log_level: str = "INFO"

    # Storage
    storage_dir: Path = Field(default_factory=lambda: SERVICE_ROOT / "data")
    database_filename: str = "orders.db"
    objects_subdir: str = "objects"
    fonts_subdir: str = "fonts"
    renders_subdir: str = "renders"
    asset_cache_subdir: str = "asset_cache"

    # Object storage (DigitalOcean Spaces); local directory when unset
    spaces_endpoint: str | None = None
    spaces_region: str = "fra1"
    spaces_key: str | None = None
    spaces_secret: str | None = None
    spaces_bucket: str = "apparel-media"
    spaces_base_folder: str = "media"

    # Public base URL used to build proxy URLs for stored objects
    backend_url: str = "http://localhost:8110"

    # Capture (headless Blender)
    blender_executable: Path = Field(default_factory=_default_blender_executable)
    blender_timeout_seconds: int = Field(default=120, ge=10, le=600)
    capture_resolution: int = Field(default=1024, ge=128, le=4096)
    garment_model_path: Path | None = None

    # Text rasterizer
    font_sources: dict[str, str] = Field(default_factory=dict)
    font_wait_timeout_seconds: float = Field(default=3.0, ge=0.0, le=60.0)
    font_poll_interval_seconds: float = Field(default=0.05, gt=0.0, le=5.0)
    http_timeout_seconds: float = Field(default=60.0, ge=1.0, le=600.0)

    # Upload limits
    max_screenshot_bytes: int = Field(default=8 * 1024 * 1024, ge=1024)

    # Auth
    api_key: str | None = None

    @field_validator("blender_executable", mode="after")
    @classmethod
    def _resolve_blender(cls, value: Path) -> Path:
        return value.expanduser().resolve()

    @field_validator("backend_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("spaces_base_folder", mode="after")
    @classmethod
    def _strip_folder_slashes(cls, value: str) -> str:
        return value.strip("/")

    @property
    def database_path(self) -> Path:
        return self.storage_dir / self.database_filename

    @property
    def objects_dir(self) -> Path:
        return self.storage_dir / self.objects_subdir

    @property
    def fonts_dir(self) -> Path:
        return self.storage_dir / self.fonts_subdir

    @property
    def renders_dir(self) -> Path:
        return self.storage_dir / self.renders_subdir

    @property
    def asset_cache_dir(self) -> Path:
        return self.storage_dir / self.asset_cache_subdir


settings = StorefrontSettings()

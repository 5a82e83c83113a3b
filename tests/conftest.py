from __future__ import annotations

import base64
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app.config import StorefrontSettings
from app.core.geometry import ModelBounds
from app.core.orders import OrderRepository
from app.core.text_raster import FontRegistry
from app.main import create_app
from shared.object_store import ObjectNotFoundError, StoredObject

HOODIE_ID = "3f6c9a52-0000-4000-8000-000000000001"
HOODIE_SLUG = "classic-hoodie"


def png_bytes(color: tuple[int, int, int, int] = (255, 0, 0, 255), size: int = 8) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (size, size), color).save(buffer, format="PNG")
    return buffer.getvalue()


def png_data_url(color: tuple[int, int, int, int] = (255, 0, 0, 255)) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes(color)).decode("ascii")


class MemoryObjectStore:
    """In-memory object store; ``put`` fails for keys containing any ``fail_on`` token."""

    def __init__(self, fail_on: tuple[str, ...] = ()):
        self.objects: dict[str, StoredObject] = {}
        self.fail_on = fail_on

    def put(self, key: str, data: bytes, content_type: str) -> None:
        if any(token in key for token in self.fail_on):
            raise ConnectionError(f"simulated storage failure for {key}")
        self.objects[key] = StoredObject(key=key, data=data, content_type=content_type)

    def get(self, key: str) -> StoredObject:
        if key not in self.objects:
            raise ObjectNotFoundError(key)
        return self.objects[key]


@pytest.fixture
def bounds() -> ModelBounds:
    return ModelBounds.from_points((-100, -200, -50), (100, 200, 150))


@pytest.fixture
def test_settings(tmp_path) -> StorefrontSettings:
    return StorefrontSettings(
        storage_dir=tmp_path / "data",
        backend_url="http://testserver",
        spaces_endpoint=None,
        spaces_key=None,
        spaces_secret=None,
        spaces_base_folder="media",
        garment_model_path=None,
        api_key=None,
        font_sources={},
        font_wait_timeout_seconds=0.0,
    )


@pytest.fixture
def store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture
def repository() -> OrderRepository:
    repo = OrderRepository(":memory:")
    repo.add_product(slug=HOODIE_SLUG, name="Classic Hoodie", price=49.99, product_id=HOODIE_ID)
    yield repo
    repo.close()


@pytest.fixture
def fonts(tmp_path) -> FontRegistry:
    registry = FontRegistry(tmp_path / "fonts")
    yield registry
    registry.close()


@pytest.fixture
def app(test_settings, store, repository, fonts):
    return create_app(test_settings, object_store=store, repository=repository, fonts=fonts)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def order_payload(*items: dict, **overrides) -> dict:
    payload = {
        "customerEmail": "sam@example.com",
        "customerName": "Sam Carter",
        "shippingAddress": {
            "street": "12 Harbour Road",
            "city": "Bristol",
            "state": "Avon",
            "zipCode": "BS1 4RN",
            "country": "GB",
        },
        "shipping": 5.0,
        "tax": 0.0,
        "items": list(items) or [
            {"productId": HOODIE_SLUG, "quantity": 1, "color": "Black", "size": "M", "price": 49.99}
        ],
    }
    payload.update(overrides)
    return payload


FRONT_IMAGE_RECORD = {
    "front": {
        "image": {"url": "https://cdn.example.com/designs/wave.png", "assetId": "a-1"},
        "position": {"x": 0, "y": 0},
        "scale": 0.6,
        "rotation": 0,
    },
}

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field, model_validator

from .core.customization import CamelModel, CustomizationRecord, TextSpec, Vec2
from .core.measurements import PlacementSpecification
from .core.screenshot_set import AssetStatus, ScreenshotSet
from .core.zones import Zone


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

class ShippingAddress(CamelModel):
    street: str
    city: str
    state: str
    zip_code: str
    country: str | None = None


class OrderItemIn(CamelModel):
    """One cart line. ``product_id`` may be a product id or its slug."""

    product_id: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)
    color: str | None = None
    size: str | None = None
    price: float = Field(ge=0)
    customization: CustomizationRecord | None = None

    # Client-generated key, echoed on the created item for screenshot matching
    line_key: str | None = None


class CreateOrderRequest(CamelModel):
    customer_email: str = Field(min_length=3)
    customer_name: str = Field(min_length=1)
    shipping_address: ShippingAddress
    items: list[OrderItemIn] = Field(min_length=1)
    shipping: float = Field(default=0.0, ge=0)
    tax: float = Field(default=0.0, ge=0)


class OrderItemView(CamelModel):
    id: str
    index: int
    product_id: str
    product_slug: str
    product_name: str
    quantity: int
    color: str | None = None
    size: str | None = None
    price: float
    customization: dict[str, Any] | None = None
    is_customized: bool = False
    line_key: str | None = None
    screenshots: ScreenshotSet | None = None
    asset_status: AssetStatus = AssetStatus.no_screenshots


class OrderView(CamelModel):
    id: str
    order_number: str
    customer_email: str
    customer_name: str
    shipping_address: ShippingAddress
    subtotal: float
    shipping: float
    tax: float
    total: float
    created_at: datetime
    items: list[OrderItemView] = Field(default_factory=list)

    def item(self, item_id: str) -> OrderItemView | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


# ---------------------------------------------------------------------------
# Screenshots
# ---------------------------------------------------------------------------

class ItemScreenshotsUpload(ScreenshotSet):
    """Flat ``{front, back, left, right}`` or wrapped ``{screenshots: {...}}``."""

    @model_validator(mode="before")
    @classmethod
    def _unwrap(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("screenshots"), dict):
            return data["screenshots"]
        return data

    def to_set(self) -> ScreenshotSet:
        return ScreenshotSet.from_views(self.present())


class BatchItemScreenshots(CamelModel):
    item_id: str
    screenshots: ScreenshotSet = Field(default_factory=ScreenshotSet)


class BatchScreenshotUpload(CamelModel):
    items: list[BatchItemScreenshots] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Geometry / print specs / text
# ---------------------------------------------------------------------------

class BoundsIn(CamelModel):
    min: tuple[float, float, float]
    max: tuple[float, float, float]


class DecalTransformRequest(CamelModel):
    zone: Zone
    position: Vec2 = Field(default_factory=Vec2)
    scale: float = Field(gt=0)
    rotation: float = 0.0
    z_offset: float = 0.0

    # Defaults to the configured garment model's bounds
    bounds: BoundsIn | None = None


class DecalTransformView(CamelModel):
    position: list[float]
    rotation: list[float]
    scale: list[float]


class PrintSpecView(CamelModel):
    order_id: str
    order_number: str
    item_id: str
    item_index: int
    placements: list[PlacementSpecification] = Field(default_factory=list)
    descriptions: dict[str, str] = Field(default_factory=dict)


class TextRenderRequest(TextSpec):
    canvas_size: int = Field(default=512, ge=64, le=2048)

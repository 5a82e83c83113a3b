"""
Checkout orchestration (client side).

  1. Capture every customized cart line, one after another, off the event
     loop. Failed lines simply have no views.
  2. Create the order. Errors here (unknown product, validation) propagate:
     nothing has been uploaded yet and nothing will be.
  3. Pair each cart line with its order item: by the client line key first,
     else by a unique (product id or slug, colour, size) match. Lines that
     cannot be paired are logged and their views dropped.
  4. Upload the captured views in one batch call. A failing upload is logged
     and never fails the checkout.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field

import httpx

from ..schemas import BatchItemScreenshots, CreateOrderRequest, OrderItemIn, OrderItemView, OrderView, ShippingAddress
from .capture import CaptureFailure, CaptureLine, RenderSurface, capture_items
from .customization import CustomizationRecord
from .errors import MatchError, StorefrontError
from .screenshot_set import ScreenshotSet
from .storefront_client import StorefrontClient

logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    product_id: str
    name: str
    price: float
    quantity: int = 1
    color: str | None = None
    color_hex: str | None = None
    size: str | None = None
    customization: CustomizationRecord | None = None
    line_key: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass
class CheckoutDetails:
    customer_email: str
    customer_name: str
    shipping_address: ShippingAddress
    shipping: float = 0.0
    tax: float = 0.0


@dataclass
class CheckoutResult:
    order: OrderView
    screenshots: dict[str, ScreenshotSet] = field(default_factory=dict)
    capture_failures: list[CaptureFailure] = field(default_factory=list)
    match_failures: list[MatchError] = field(default_factory=list)
    upload_error: str | None = None


def build_order_request(details: CheckoutDetails, lines: list[CartLine]) -> CreateOrderRequest:
    return CreateOrderRequest(
        customer_email=details.customer_email,
        customer_name=details.customer_name,
        shipping_address=details.shipping_address,
        shipping=details.shipping,
        tax=details.tax,
        items=[
            OrderItemIn(
                product_id=line.product_id,
                quantity=line.quantity,
                color=line.color,
                size=line.size,
                price=line.price,
                customization=line.customization,
                line_key=line.line_key,
            )
            for line in lines
        ],
    )


def _same_line(item: OrderItemView, line: CartLine) -> bool:
    return (
        line.product_id in (item.product_id, item.product_slug)
        and item.color == line.color
        and item.size == line.size
    )


def match_order_items(
    order: OrderView,
    lines: list[CartLine],
) -> tuple[dict[str, str], list[MatchError]]:
    """Map ``line_key -> order item id``; unpairable lines are returned as errors."""
    matches: dict[str, str] = {}
    failures: list[MatchError] = []

    by_key = {item.line_key: item for item in order.items if item.line_key}
    claimed: set[str] = set()
    pending: list[CartLine] = []
    for line in lines:
        item = by_key.get(line.line_key)
        if item is not None:
            matches[line.line_key] = item.id
            claimed.add(item.id)
        else:
            pending.append(line)

    for line in pending:
        candidates = [
            item for item in order.items
            if item.id not in claimed and _same_line(item, line)
        ]
        if len(candidates) != 1:
            failures.append(
                MatchError(
                    f"Cart line {line.line_key} ({line.product_id}/{line.color}/{line.size}) "
                    f"matched {len(candidates)} order items"
                )
            )
            continue
        matches[line.line_key] = candidates[0].id
        claimed.add(candidates[0].id)

    return matches, failures


async def checkout(
    client: StorefrontClient,
    surface: RenderSurface,
    details: CheckoutDetails,
    lines: list[CartLine],
) -> CheckoutResult:
    loop = asyncio.get_running_loop()

    capture_lines = [
        CaptureLine(key=line.line_key, record=line.customization, garment_color=line.color_hex)
        for line in lines
    ]
    report = await loop.run_in_executor(None, capture_items, surface, capture_lines)
    if report.captured:
        logger.info(
            "[CHECKOUT] Captured %d customized lines (%d failed)",
            len(report.captured), len(report.failures),
        )

    order = await client.create_order(build_order_request(details, lines))
    logger.info("[CHECKOUT] Order %s created with %d items", order.order_number, len(order.items))
    result = CheckoutResult(order=order, capture_failures=report.failures)

    captured_lines = [line for line in lines if report.views_for(line.line_key).count]
    if not captured_lines:
        return result

    matches, result.match_failures = match_order_items(order, captured_lines)
    for failure in result.match_failures:
        logger.warning("[CHECKOUT] Dropping screenshots: %s", failure)

    batch = [
        BatchItemScreenshots(
            item_id=matches[line.line_key],
            screenshots=report.views_for(line.line_key).as_data_urls(),
        )
        for line in captured_lines
        if line.line_key in matches
    ]
    if not batch:
        return result

    try:
        result.screenshots = await client.upload_order_screenshots(order.id, batch)
    except (StorefrontError, httpx.HTTPError) as exc:
        result.upload_error = str(exc)
        logger.error("[CHECKOUT] Screenshot upload failed for %s: %s", order.order_number, exc)
    return result

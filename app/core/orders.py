"""
Order persistence.

``OrderRepository`` owns the sqlite database (products, orders, order
items). An order and all of its items are written in one transaction after
every product reference has been resolved, so a bad reference leaves no row
behind. After creation an item is mutated exactly once more: attaching its
screenshot set.

``OrderService`` is the async facade the HTTP layer uses. Repository calls
are blocking and run in the default executor.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import random
import sqlite3
import string
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from shared.files import ensure_dir
from shared.object_store import ObjectStore

from ..schemas import BatchItemScreenshots, CreateOrderRequest, OrderItemView, OrderView
from .customization import CustomizationRecord, is_customized
from .errors import (
    OrderItemNotFoundError,
    OrderNotFoundError,
    ProductNotFoundError,
    ScreenshotsAlreadyAttachedError,
)
from .screenshot_pipeline import upload_item_views
from .screenshot_set import ScreenshotSet, asset_status

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS products (
    id          TEXT PRIMARY KEY,
    slug        TEXT NOT NULL UNIQUE,
    name        TEXT NOT NULL,
    price       REAL NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS orders (
    id                TEXT PRIMARY KEY,
    order_number      TEXT NOT NULL UNIQUE,
    customer_email    TEXT NOT NULL,
    customer_name     TEXT NOT NULL,
    shipping_address  TEXT NOT NULL,
    subtotal          REAL NOT NULL,
    shipping          REAL NOT NULL,
    tax               REAL NOT NULL,
    total             REAL NOT NULL,
    created_at        TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS order_items (
    id             TEXT PRIMARY KEY,
    order_id       TEXT NOT NULL REFERENCES orders(id) ON DELETE CASCADE,
    position       INTEGER NOT NULL,
    product_id     TEXT NOT NULL REFERENCES products(id),
    quantity       INTEGER NOT NULL,
    color          TEXT,
    size           TEXT,
    price          REAL NOT NULL,
    customization  TEXT,
    is_customized  INTEGER NOT NULL DEFAULT 0,
    line_key       TEXT,
    screenshots    TEXT
);

CREATE INDEX IF NOT EXISTS idx_order_items_order ON order_items(order_id, position);
"""

_BASE36 = string.digits + string.ascii_uppercase


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_order_number(now_ms: int | None = None) -> str:
    """``ORD-<base36 epoch ms>-<4 random base36 chars>``, upper case."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(random.choice(_BASE36) for _ in range(4))
    return f"ORD-{_base36(now_ms)}-{suffix}"


@dataclass(frozen=True)
class Product:
    id: str
    slug: str
    name: str
    price: float = 0.0


# ---------------------------------------------------------------------------
# Repository (blocking)
# ---------------------------------------------------------------------------

class OrderRepository:
    def __init__(self, db_path: Path | str):
        path = str(db_path)
        if path != ":memory:":
            ensure_dir(Path(path).parent)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.Lock()
        with self._lock:
            self._conn.executescript(_SCHEMA)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # -- products ------------------------------------------------------------

    def add_product(self, slug: str, name: str, price: float = 0.0, product_id: str | None = None) -> Product:
        product = Product(id=product_id or str(uuid.uuid4()), slug=slug, name=name, price=price)
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO products (id, slug, name, price) VALUES (?, ?, ?, ?)",
                (product.id, product.slug, product.name, product.price),
            )
        return product

    def _find_product(self, reference: str) -> Product | None:
        # Id first, then slug
        for column in ("id", "slug"):
            row = self._conn.execute(
                f"SELECT id, slug, name, price FROM products WHERE {column} = ?",
                (reference,),
            ).fetchone()
            if row is not None:
                return Product(id=row["id"], slug=row["slug"], name=row["name"], price=row["price"])
        return None

    def find_product(self, reference: str) -> Product | None:
        with self._lock:
            return self._find_product(reference)

    # -- orders --------------------------------------------------------------

    def create_order(self, order_number: str, request: CreateOrderRequest) -> OrderView:
        with self._lock:
            products: list[Product] = []
            for item in request.items:
                product = self._find_product(item.product_id)
                if product is None:
                    raise ProductNotFoundError(item.product_id)
                products.append(product)

            order_id = str(uuid.uuid4())
            subtotal = round(sum(item.price * item.quantity for item in request.items), 2)
            total = round(subtotal + request.shipping + request.tax, 2)
            created_at = datetime.now(timezone.utc).isoformat()

            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO orders (
                        id, order_number, customer_email, customer_name, shipping_address,
                        subtotal, shipping, tax, total, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        order_id,
                        order_number,
                        request.customer_email,
                        request.customer_name,
                        json.dumps(request.shipping_address.model_dump(mode="json", by_alias=True)),
                        subtotal,
                        request.shipping,
                        request.tax,
                        total,
                        created_at,
                    ),
                )
                for position, (item, product) in enumerate(zip(request.items, products)):
                    record = item.customization
                    customized = is_customized(record)
                    self._conn.execute(
                        """
                        INSERT INTO order_items (
                            id, order_id, position, product_id, quantity, color, size,
                            price, customization, is_customized, line_key
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            str(uuid.uuid4()),
                            order_id,
                            position,
                            product.id,
                            item.quantity,
                            item.color,
                            item.size,
                            item.price,
                            json.dumps(record.to_json()) if customized else None,
                            int(customized),
                            item.line_key,
                        ),
                    )

            return self._load_order("id", order_id)

    def get_order(self, order_id: str) -> OrderView:
        with self._lock:
            return self._load_order("id", order_id)

    def get_order_by_number(self, order_number: str) -> OrderView:
        with self._lock:
            return self._load_order("order_number", order_number)

    def _load_order(self, column: str, value: str) -> OrderView:
        row = self._conn.execute(f"SELECT * FROM orders WHERE {column} = ?", (value,)).fetchone()
        if row is None:
            raise OrderNotFoundError(f"Order {value} not found")

        item_rows = self._conn.execute(
            """
            SELECT i.*, p.slug AS product_slug, p.name AS product_name
            FROM order_items i JOIN products p ON p.id = i.product_id
            WHERE i.order_id = ?
            ORDER BY i.position
            """,
            (row["id"],),
        ).fetchall()

        return OrderView(
            id=row["id"],
            order_number=row["order_number"],
            customer_email=row["customer_email"],
            customer_name=row["customer_name"],
            shipping_address=json.loads(row["shipping_address"]),
            subtotal=row["subtotal"],
            shipping=row["shipping"],
            tax=row["tax"],
            total=row["total"],
            created_at=datetime.fromisoformat(row["created_at"]),
            items=[self._item_view(r) for r in item_rows],
        )

    @staticmethod
    def _item_view(row: sqlite3.Row) -> OrderItemView:
        screenshots = ScreenshotSet.model_validate(json.loads(row["screenshots"])) if row["screenshots"] else None
        return OrderItemView(
            id=row["id"],
            index=row["position"],
            product_id=row["product_id"],
            product_slug=row["product_slug"],
            product_name=row["product_name"],
            quantity=row["quantity"],
            color=row["color"],
            size=row["size"],
            price=row["price"],
            customization=json.loads(row["customization"]) if row["customization"] else None,
            is_customized=bool(row["is_customized"]),
            line_key=row["line_key"],
            screenshots=screenshots,
            asset_status=asset_status(screenshots),
        )

    def attach_screenshots(self, order_id: str, item_id: str, screenshots: ScreenshotSet) -> None:
        """Attach an item's screenshot set. Allowed once per item."""
        payload = json.dumps(screenshots.model_dump(mode="json", exclude_none=True))
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "UPDATE order_items SET screenshots = ? "
                "WHERE id = ? AND order_id = ? AND screenshots IS NULL",
                (payload, item_id, order_id),
            )
            if cursor.rowcount:
                return
            exists = self._conn.execute(
                "SELECT 1 FROM order_items WHERE id = ? AND order_id = ?",
                (item_id, order_id),
            ).fetchone()
        if exists is None:
            raise OrderItemNotFoundError(f"Order item with ID {item_id} not found in order {order_id}")
        raise ScreenshotsAlreadyAttachedError(f"Screenshots already attached to item {item_id}")


def load_record(item: OrderItemView) -> CustomizationRecord | None:
    """The frozen customization of an order item, re-validated."""
    if not item.customization:
        return None
    return CustomizationRecord.model_validate(item.customization)


# ---------------------------------------------------------------------------
# Service (async)
# ---------------------------------------------------------------------------

class OrderService:
    def __init__(
        self,
        repository: OrderRepository,
        store: ObjectStore,
        base_folder: str,
        backend_url: str,
        max_screenshot_bytes: int | None = None,
    ):
        self.repository = repository
        self.store = store
        self.base_folder = base_folder
        self.backend_url = backend_url
        self.max_screenshot_bytes = max_screenshot_bytes

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args))

    async def create_order(self, request: CreateOrderRequest) -> OrderView:
        order = await self._run(self.repository.create_order, generate_order_number(), request)
        logger.info(
            "Order created: %s (%d items, %d customized)",
            order.order_number,
            len(order.items),
            sum(1 for item in order.items if item.is_customized),
        )
        return order

    async def get_order(self, order_id: str) -> OrderView:
        return await self._run(self.repository.get_order, order_id)

    async def get_order_by_number(self, order_number: str) -> OrderView:
        return await self._run(self.repository.get_order_by_number, order_number)

    async def upload_item_screenshots(
        self,
        order_id: str,
        item_id: str,
        screenshots: ScreenshotSet,
    ) -> ScreenshotSet:
        """
        Upload the provided views of one item and attach whatever succeeded.

        Raises for a missing order or item and for an item whose set is
        already attached; individual view failures only shrink the result.
        """
        order = await self.get_order(order_id)
        item = order.item(item_id)
        if item is None:
            raise OrderItemNotFoundError(f"Order item with ID {item_id} not found in order {order_id}")
        if item.screenshots is not None:
            raise ScreenshotsAlreadyAttachedError(f"Screenshots already attached to item {item_id}")

        logger.info(
            "[UPLOAD] %s item-%d: %d views received",
            order.order_number, item.index, screenshots.count,
        )
        result = await upload_item_views(
            self.store,
            base_folder=self.base_folder,
            backend_url=self.backend_url,
            order_number=order.order_number,
            item_index=item.index,
            screenshots=screenshots,
            max_bytes=self.max_screenshot_bytes,
        )
        # The attach guard is authoritative; a concurrent upload that loses
        # here leaves its stored objects unreferenced.
        await self._run(self.repository.attach_screenshots, order_id, item_id, result.urls)
        return result.urls

    async def upload_order_screenshots(
        self,
        order_id: str,
        items: list[BatchItemScreenshots],
    ) -> dict[str, ScreenshotSet]:
        """Items one after another; a failing item is logged and left out."""
        await self.get_order(order_id)

        results: dict[str, ScreenshotSet] = {}
        for entry in items:
            if not entry.screenshots.count:
                logger.warning("[UPLOAD] Skipping item %s: no screenshots", entry.item_id)
                continue
            try:
                results[entry.item_id] = await self.upload_item_screenshots(
                    order_id, entry.item_id, entry.screenshots
                )
            except (OrderItemNotFoundError, ScreenshotsAlreadyAttachedError) as exc:
                logger.warning("[UPLOAD] Skipping item %s: %s", entry.item_id, exc)
            except Exception:
                logger.exception("[UPLOAD] Item %s failed", entry.item_id)
        return results

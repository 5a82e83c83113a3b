"""
Apparel Print Service — FastAPI entry point.

Endpoints:
  POST /orders                                   Create an order (items carry frozen customizations)
  GET  /orders/{id}                              Order with items and asset status
  GET  /orders/number/{orderNumber}              Same, by order number
  POST /orders/{id}/items/{itemId}/screenshots   Upload + attach one item's views
  POST /orders/{id}/screenshots                  Batch upload, items sequentially
  GET  /orders/{id}/items/{itemId}/print-spec    Manufacturing measurements
  GET  /orders/{id}/items/{itemId}/placement-guide.svg   SVG placement guide
  GET  /upload/spaces/{key}                      Proxy for stored objects (private bucket)
  GET  /calibration                              Calibration tables for client-side specs
  POST /geometry/decal-transform                 Resolve a zone placement to a decal transform
  POST /text/render                              Rasterize a text layer to PNG
  GET  /health                                   Service health check
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
from contextlib import asynccontextmanager
from typing import Literal

from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from shared.files import ensure_dir
from shared.logging import configure_logging
from shared.object_store import ObjectNotFoundError, ObjectStore, build_object_store

from .config import StorefrontSettings, settings
from .core.errors import (
    NotFoundError,
    ProductNotFoundError,
    ScreenshotsAlreadyAttachedError,
)
from .core.geometry import ModelBounds, resolve_decal_transform
from .core.measurements import extract_placement_specifications, format_placement_description
from .core.orders import OrderRepository, OrderService, load_record
from .core.placement_guide import render_placement_guide
from .core.screenshot_set import ScreenshotSet
from .core.text_raster import FontRegistry, render_text_png
from .core.zones import calibration_tables
from .schemas import (
    BatchScreenshotUpload,
    CreateOrderRequest,
    DecalTransformRequest,
    DecalTransformView,
    ItemScreenshotsUpload,
    OrderItemView,
    OrderView,
    PrintSpecView,
    TextRenderRequest,
)

configure_logging(settings.log_level)
logger = logging.getLogger("apparel.main")


async def _offload(fn, *args, **kwargs):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))


def create_app(
    app_settings: StorefrontSettings | None = None,
    object_store: ObjectStore | None = None,
    repository: OrderRepository | None = None,
    fonts: FontRegistry | None = None,
) -> FastAPI:
    cfg = app_settings or settings

    store = object_store or build_object_store(
        local_root=cfg.objects_dir,
        endpoint=cfg.spaces_endpoint,
        region=cfg.spaces_region,
        access_key=cfg.spaces_key,
        secret_key=cfg.spaces_secret,
        bucket=cfg.spaces_bucket,
    )
    repo = repository or OrderRepository(cfg.database_path)
    font_registry = fonts or FontRegistry(cfg.fonts_dir, cfg.font_sources, cfg.http_timeout_seconds)
    orders = OrderService(
        repository=repo,
        store=store,
        base_folder=cfg.spaces_base_folder,
        backend_url=cfg.backend_url,
        max_screenshot_bytes=cfg.max_screenshot_bytes,
    )

    # -----------------------------------------------------------------------
    # Lifespan
    # -----------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        ensure_dir(cfg.renders_dir)
        ensure_dir(cfg.asset_cache_dir)
        yield
        font_registry.close()

    app = FastAPI(
        title="Apparel Print Service",
        version="1.0.0",
        description=(
            "Customization-to-manufacturing pipeline for custom apparel: orders "
            "with frozen placement records, four-view screenshot upload, decal "
            "geometry and print measurements from one set of calibration tables."
        ),
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.object_store = store
    app.state.repository = repo
    app.state.orders = orders
    app.state.fonts = font_registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    def _require_api_key(x_api_key: str | None) -> None:
        if cfg.api_key and x_api_key != cfg.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")

    async def _load_item(order_id: str, item_id: str) -> tuple[OrderView, OrderItemView]:
        try:
            order = await orders.get_order(order_id)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        item = order.item(item_id)
        if item is None:
            raise HTTPException(
                status_code=404,
                detail=f"Order item with ID {item_id} not found in order {order_id}",
            )
        return order, item

    # -----------------------------------------------------------------------
    # Health
    # -----------------------------------------------------------------------

    @app.get("/")
    async def root():
        return {
            "service": cfg.service_name,
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health",
        }

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "service": cfg.service_name,
            "object_store": type(store).__name__,
            "blender_exists": cfg.blender_executable.exists(),
            "garment_model": str(cfg.garment_model_path) if cfg.garment_model_path else None,
        }

    # -----------------------------------------------------------------------
    # Calibration / geometry / text
    # -----------------------------------------------------------------------

    @app.get("/calibration")
    async def get_calibration():
        return calibration_tables()

    @app.post("/geometry/decal-transform", response_model=DecalTransformView)
    async def decal_transform(request: DecalTransformRequest):
        if request.bounds is not None:
            bounds = ModelBounds.from_points(request.bounds.min, request.bounds.max)
        elif cfg.garment_model_path and cfg.garment_model_path.is_file():
            bounds = await _offload(ModelBounds.from_mesh, cfg.garment_model_path)
        else:
            raise HTTPException(status_code=400, detail="bounds required: no garment model configured")

        transform = resolve_decal_transform(
            request.zone,
            request.position,
            request.scale,
            request.rotation,
            bounds,
            z_offset=request.z_offset,
        )
        return DecalTransformView(**transform.as_dict())

    @app.post("/text/render")
    async def text_render(request: TextRenderRequest):
        png = await _offload(
            render_text_png,
            request,
            font_registry,
            timeout=cfg.font_wait_timeout_seconds,
            poll_interval=cfg.font_poll_interval_seconds,
            canvas_size=request.canvas_size,
        )
        return Response(content=png, media_type="image/png")

    # -----------------------------------------------------------------------
    # Orders
    # -----------------------------------------------------------------------

    @app.post("/orders", response_model=OrderView, status_code=201)
    async def create_order(request: CreateOrderRequest, x_api_key: str | None = Header(default=None)):
        _require_api_key(x_api_key)
        try:
            return await orders.create_order(request)
        except ProductNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.get("/orders/number/{order_number}", response_model=OrderView)
    async def get_order_by_number(order_number: str):
        try:
            return await orders.get_order_by_number(order_number)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.get("/orders/{order_id}", response_model=OrderView)
    async def get_order(order_id: str):
        try:
            return await orders.get_order(order_id)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    # -----------------------------------------------------------------------
    # Screenshots
    # -----------------------------------------------------------------------

    @app.post(
        "/orders/{order_id}/items/{item_id}/screenshots",
        response_model=ScreenshotSet,
        response_model_exclude_none=True,
    )
    async def upload_item_screenshots(
        order_id: str,
        item_id: str,
        payload: ItemScreenshotsUpload,
        x_api_key: str | None = Header(default=None),
    ):
        _require_api_key(x_api_key)
        if not payload.count:
            raise HTTPException(status_code=400, detail="No screenshots provided")
        try:
            return await orders.upload_item_screenshots(order_id, item_id, payload.to_set())
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ScreenshotsAlreadyAttachedError as e:
            raise HTTPException(status_code=409, detail=str(e))

    @app.post(
        "/orders/{order_id}/screenshots",
        response_model=dict[str, ScreenshotSet],
        response_model_exclude_none=True,
    )
    async def upload_order_screenshots(
        order_id: str,
        payload: BatchScreenshotUpload,
        x_api_key: str | None = Header(default=None),
    ):
        _require_api_key(x_api_key)
        try:
            return await orders.upload_order_screenshots(order_id, payload.items)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.get("/upload/spaces/{key:path}")
    async def proxy_object(key: str):
        try:
            stored = await _offload(store.get, key)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except ObjectNotFoundError:
            raise HTTPException(status_code=404, detail=f"Object not found: {key}")
        return Response(
            content=stored.data,
            media_type=stored.content_type,
            headers={"Cache-Control": "public, max-age=31536000"},
        )

    # -----------------------------------------------------------------------
    # Print view
    # -----------------------------------------------------------------------

    @app.get("/orders/{order_id}/items/{item_id}/print-spec", response_model=PrintSpecView)
    async def print_spec(order_id: str, item_id: str):
        order, item = await _load_item(order_id, item_id)
        placements = extract_placement_specifications(load_record(item))
        return PrintSpecView(
            order_id=order.id,
            order_number=order.order_number,
            item_id=item.id,
            item_index=item.index,
            placements=placements,
            descriptions={
                spec.area.value: format_placement_description(spec.measurements)
                for spec in placements
            },
        )

    @app.get("/orders/{order_id}/items/{item_id}/placement-guide.svg")
    async def placement_guide(
        order_id: str,
        item_id: str,
        view: Literal["front", "back"] = Query(default="front"),
    ):
        _, item = await _load_item(order_id, item_id)
        placements = extract_placement_specifications(load_record(item))
        svg = render_placement_guide(placements, view=view)
        return Response(content=svg, media_type="image/svg+xml")

    return app


app = create_app()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=bool(int(os.getenv("UVICORN_RELOAD", "0"))),
    )

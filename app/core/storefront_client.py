"""Async HTTP client for the order endpoints, used by the checkout flow."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..schemas import BatchItemScreenshots, BatchScreenshotUpload, CreateOrderRequest, OrderView
from .errors import NotFoundError, StorefrontError
from .screenshot_set import ScreenshotSet

logger = logging.getLogger(__name__)


class StorefrontAPIError(StorefrontError):
    def __init__(self, status_code: int, detail: str):
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


def _detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:300]
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return str(body)[:300]


def _check(resp: httpx.Response) -> Any:
    if resp.status_code == 404:
        raise NotFoundError(_detail(resp))
    if resp.status_code >= 400:
        raise StorefrontAPIError(resp.status_code, _detail(resp))
    return resp.json()


class StorefrontClient:
    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"X-Api-Key": api_key} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "StorefrontClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_order(self, request: CreateOrderRequest) -> OrderView:
        payload = request.model_dump(mode="json", by_alias=True, exclude_none=True)
        resp = await self._client.post("/orders", json=payload)
        return OrderView.model_validate(_check(resp))

    async def get_order(self, order_id: str) -> OrderView:
        resp = await self._client.get(f"/orders/{order_id}")
        return OrderView.model_validate(_check(resp))

    async def upload_item_screenshots(
        self,
        order_id: str,
        item_id: str,
        screenshots: ScreenshotSet,
    ) -> ScreenshotSet:
        resp = await self._client.post(
            f"/orders/{order_id}/items/{item_id}/screenshots",
            json=screenshots.model_dump(mode="json", exclude_none=True),
        )
        return ScreenshotSet.model_validate(_check(resp))

    async def upload_order_screenshots(
        self,
        order_id: str,
        items: list[BatchItemScreenshots],
    ) -> dict[str, ScreenshotSet]:
        body = BatchScreenshotUpload(items=items).model_dump(mode="json", by_alias=True, exclude_none=True)
        logger.info("Uploading screenshots for order %s: %d items", order_id, len(items))
        resp = await self._client.post(f"/orders/{order_id}/screenshots", json=body)
        data = _check(resp)
        return {item_id: ScreenshotSet.model_validate(urls) for item_id, urls in data.items()}

"""
Extra-order endpoints.
"""

from __future__ import annotations

from box_unlock.backend.boxes import _as_list
from box_unlock.backend.client import ApiClient
from box_unlock.models import ExtraOrder, LedgerResponse


class OrderApi:
    """Implements ``OrderLedger`` over HTTP."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def fulfill(self, order_id: int, notes: str | None) -> LedgerResponse:
        body = await self._client.patch(
            f"api/extra-orders/{order_id}/fulfill",
            json={"notes": notes},
        )
        return LedgerResponse.from_api(body)

    async def pending_orders(self) -> list[ExtraOrder]:
        body = await self._client.get("api/extra-orders/pending/my-orders")
        return [ExtraOrder.from_api(item) for item in _as_list(body)]

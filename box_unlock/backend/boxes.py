"""
Box endpoints: open signal, host inventory, opening history.
"""

from __future__ import annotations

from typing import Any

from box_unlock.backend.client import ApiClient
from box_unlock.errors import BackendError
from box_unlock.models import BoxRecord, OpeningEvent


class BoxApi:
    """Implements ``SignalSource`` and ``BoxDirectory`` over HTTP."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def open_box(self, box_id: int, host_id: int) -> dict[str, Any]:
        body = await self._client.post(
            "api/boxes/open",
            json={"boxId": box_id, "hostId": host_id},
        )
        if not isinstance(body, dict):
            raise BackendError("api/boxes/open returned an unexpected body")
        return body

    async def boxes_by_host(self, host_id: int) -> list[BoxRecord]:
        body = await self._client.get(f"api/boxes/host/{host_id}")
        return [BoxRecord.from_api(item) for item in _as_list(body)]

    async def opening_history(self, box_id: int) -> list[OpeningEvent]:
        body = await self._client.get(f"api/boxes/opening-history/box/{box_id}")
        return [OpeningEvent.from_api(item) for item in _as_list(body)]


def _as_list(body: Any) -> list[dict[str, Any]]:
    # Some endpoints wrap lists in {"data": [...]}
    if isinstance(body, dict):
        body = body.get("data")
    if body is None:
        return []
    if not isinstance(body, list):
        raise BackendError(f"Expected a list, got {type(body).__name__}")
    return [item for item in body if isinstance(item, dict)]

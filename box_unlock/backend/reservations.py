"""
Reservation endpoints.
"""

from __future__ import annotations

from datetime import datetime

from box_unlock.backend.client import ApiClient
from box_unlock.errors import BackendError
from box_unlock.models import LedgerResponse, Reservation


class ReservationApi:
    """Implements ``ReservationLedger`` over HTTP."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def get_reservation(self, reservation_id: int) -> Reservation:
        body = await self._client.get(f"api/reservations/{reservation_id}")
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]
        if not isinstance(body, dict):
            raise BackendError(f"Reservation {reservation_id} not found")
        return Reservation.from_api(body)

    async def check_in(self, reservation_id: int) -> LedgerResponse:
        body = await self._client.post(
            "api/reservations/checkin",
            json={"reservationId": reservation_id},
        )
        return LedgerResponse.from_api(body)

    async def check_out(self, reservation_id: int) -> LedgerResponse:
        body = await self._client.post(
            "api/reservations/checkout",
            json={"reservationId": reservation_id},
        )
        return LedgerResponse.from_api(body)

    async def update_timestamp(
        self,
        reservation_id: int,
        field: str,
        value: datetime,
    ) -> LedgerResponse:
        body = await self._client.patch(
            f"api/reservations/{reservation_id}",
            json={field: value.isoformat()},
        )
        return LedgerResponse.from_api(body)

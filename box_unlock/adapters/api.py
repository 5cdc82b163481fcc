"""
Public API Adapter.

``BoxUnlockClient`` wires the HTTP backend, verifier, signal client,
emitter and strategies into a ready-to-use coordinator.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from box_unlock.audit import AuditTrail
from box_unlock.backend import ApiClient, BoxApi, OrderApi, ReservationApi
from box_unlock.config import UnlockConfig
from box_unlock.coordinator import UnlockCoordinator
from box_unlock.models import ExtraOrder, OpeningEvent, Reservation
from box_unlock.monitoring.logging import StructuredLogger, configure_logging
from box_unlock.ownership import OwnershipVerifier
from box_unlock.signal import AudioOutput, SignalEmitter, UnlockSignalClient
from box_unlock.strategies import StrategyRegistry

logger = logging.getLogger(__name__)


class BoxUnlockClient:
    """Box unlock client backed by the REST API.

    Example:
        async with BoxUnlockClient(UnlockConfig(api_token=token)) as client:
            reservation = await client.reservations.get_reservation(12)
            coordinator = client.coordinator
            snap = await coordinator.start_from_qr("42", guest, CheckIn(reservation))
    """

    def __init__(
        self,
        config: UnlockConfig | None = None,
        output: AudioOutput | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        events: StructuredLogger | None = None,
    ):
        self.config = config or UnlockConfig()
        self.events = events or configure_logging(
            level=self.config.log_level,
            json_format=self.config.json_logs,
        )

        self.api = ApiClient(self.config, transport=transport)
        self.boxes = BoxApi(self.api)
        self.reservations = ReservationApi(self.api)
        self.orders = OrderApi(self.api)
        self.audit = AuditTrail()

        self.coordinator = UnlockCoordinator(
            verifier=OwnershipVerifier(self.boxes, events=self.events),
            signals=UnlockSignalClient(
                self.boxes,
                cache_dir=self.config.cache_dir,
                default_suffix=self.config.signal_suffix,
                events=self.events,
            ),
            emitter=SignalEmitter(output),
            strategies=StrategyRegistry.default(self.reservations, self.orders),
            audit=self.audit,
            events=self.events,
        )

    async def get_reservation(self, reservation_id: int) -> Reservation:
        return await self.reservations.get_reservation(reservation_id)

    async def pending_orders(self) -> list[ExtraOrder]:
        return await self.orders.pending_orders()

    async def find_order(self, order_id: int) -> ExtraOrder | None:
        for order in await self.orders.pending_orders():
            if order.id == order_id:
                return order
        return None

    async def opening_history(self, box_id: int) -> list[OpeningEvent]:
        return await self.boxes.opening_history(box_id)

    async def aclose(self) -> None:
        await self.coordinator.aclose()
        await self.api.aclose()

    async def __aenter__(self) -> "BoxUnlockClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

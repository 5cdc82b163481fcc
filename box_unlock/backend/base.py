"""
Backend collaborator protocols.

The unlock components depend on these protocols, not on the HTTP
implementations, so tests and embedding apps can supply their own.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from box_unlock.models import BoxRecord, LedgerResponse


@runtime_checkable
class SignalSource(Protocol):
    """Issues one-time open signals."""

    async def open_box(self, box_id: int, host_id: int) -> dict[str, Any]:
        """Request an open signal; returns the raw response body."""
        ...


@runtime_checkable
class BoxDirectory(Protocol):
    """Lists the boxes a host owns."""

    async def boxes_by_host(self, host_id: int) -> list[BoxRecord]:
        ...


@runtime_checkable
class ReservationLedger(Protocol):
    """System of record for reservation status."""

    async def check_in(self, reservation_id: int) -> LedgerResponse:
        ...

    async def check_out(self, reservation_id: int) -> LedgerResponse:
        ...

    async def update_timestamp(
        self,
        reservation_id: int,
        field: str,
        value: datetime,
    ) -> LedgerResponse:
        ...


@runtime_checkable
class OrderLedger(Protocol):
    """System of record for extra-order status."""

    async def fulfill(self, order_id: int, notes: str | None) -> LedgerResponse:
        ...

"""
Ownership verification.

Decides whether a principal may open a box for a pending action and
resolves the host whose signal key opens it. Every refusal is an
``OwnershipError``; none is retried.

Rules:
    HOST    + NoAction          -> implicit, host is the principal
    GUEST   + CheckIn/CheckOut  -> reservation must name the scanned box
    CLEANER + FulfillOrder      -> box must be in the order host's inventory

Reservations and orders must also be in a status the action accepts,
so a stale record never gets a box opened.
"""

from __future__ import annotations

import logging

from box_unlock.backend.base import BoxDirectory
from box_unlock.errors import BackendError, OwnershipError, OwnershipFailure
from box_unlock.models import (
    CheckIn,
    CheckOut,
    FulfillOrder,
    NoAction,
    OrderStatus,
    PendingAction,
    Principal,
    Reservation,
    ReservationStatus,
    Role,
)
from box_unlock.monitoring.logging import StructuredLogger, get_logger

logger = logging.getLogger(__name__)

# UNKNOWN is left for the ledger to judge
CHECK_IN_STATUSES = frozenset({
    ReservationStatus.PENDING,
    ReservationStatus.CHECKED_IN,
    ReservationStatus.UNKNOWN,
})
CHECK_OUT_STATUSES = frozenset({
    ReservationStatus.CHECKED_IN,
    ReservationStatus.UNKNOWN,
})
FULFILL_STATUSES = frozenset({
    OrderStatus.PENDING,
    OrderStatus.UNKNOWN,
})


class OwnershipVerifier:
    """Checks that a principal is entitled to open a box."""

    def __init__(
        self,
        boxes: BoxDirectory,
        events: StructuredLogger | None = None,
    ):
        self._boxes = boxes
        self._events = events

    @property
    def events(self) -> StructuredLogger:
        return self._events or get_logger()

    async def verify(self, box_id: int, principal: Principal, action: PendingAction) -> int:
        """Verify entitlement and return the host id for the signal request.

        Raises:
            OwnershipError: If the principal may not open ``box_id``.
        """
        try:
            if principal.role == Role.HOST and isinstance(action, NoAction):
                return principal.id

            if principal.role == Role.GUEST and isinstance(action, (CheckIn, CheckOut)):
                host_id = self._verify_reservation(box_id, action.reservation)
                self._check_reservation_status(box_id, action)
                return host_id

            if principal.role == Role.CLEANER and isinstance(action, FulfillOrder):
                return await self._verify_order(box_id, action)

            raise OwnershipError(
                OwnershipFailure.ROLE_NOT_PERMITTED,
                f"A {principal.role.value} cannot perform {action.name}",
                box_id=box_id,
            )
        except OwnershipError as e:
            self.events.ownership_denied(
                e.reason.value,
                e.message,
                box_id=box_id,
                principal_id=principal.id,
                role=principal.role.value,
            )
            raise

    def _verify_reservation(self, box_id: int, reservation: Reservation) -> int:
        reserved = reservation.box_id
        if reserved is None:
            raise OwnershipError(
                OwnershipFailure.RESERVATION_MISSING_BOX_ID,
                "Reservation does not have a valid box ID",
                box_id=box_id,
            )
        if reserved != box_id:
            raise OwnershipError(
                OwnershipFailure.BOX_MISMATCH,
                f"Wrong box! This is box #{box_id}, but your reservation is for box #{reserved}.",
                box_id=box_id,
                details={"reserved_box_id": reserved},
            )
        if reservation.host is None:
            raise OwnershipError(
                OwnershipFailure.HOST_MISSING_ON_RESERVATION,
                "Cannot determine box owner for this reservation",
                box_id=box_id,
            )
        return reservation.host.id

    def _check_reservation_status(self, box_id: int, action: CheckIn | CheckOut) -> None:
        reservation = action.reservation
        if isinstance(action, CheckIn):
            allowed, verb = CHECK_IN_STATUSES, "checked in"
        else:
            allowed, verb = CHECK_OUT_STATUSES, "checked out"
        if reservation.status not in allowed:
            raise OwnershipError(
                OwnershipFailure.NOT_ELIGIBLE,
                f"Reservation #{reservation.id} is {_describe(reservation.status)} and cannot be {verb}.",
                box_id=box_id,
                details={"reservation_id": reservation.id, "status": reservation.status.value},
            )

    async def _verify_order(self, box_id: int, action: FulfillOrder) -> int:
        order = action.order
        if order.status not in FULFILL_STATUSES:
            raise OwnershipError(
                OwnershipFailure.NOT_ELIGIBLE,
                f"Order #{order.id} is {_describe(order.status)} and cannot be fulfilled.",
                box_id=box_id,
                details={"order_id": order.id, "status": order.status.value},
            )

        host = order.host
        if host is None:
            raise OwnershipError(
                OwnershipFailure.HOST_MISSING_ON_RESERVATION,
                "Cannot determine box owner for this reservation",
                box_id=box_id,
            )

        try:
            boxes = await self._boxes.boxes_by_host(host.id)
        except BackendError as e:
            raise OwnershipError(
                OwnershipFailure.LOOKUP_FAILED,
                f"Failed to verify box ownership: {e.message}",
                box_id=box_id,
                cause=e,
            ) from e

        logger.debug("Host %s owns %d boxes", host.id, len(boxes))
        if not any(box.box_id == box_id for box in boxes):
            raise OwnershipError(
                OwnershipFailure.NOT_OWNED,
                f"This box does not belong to the guest. Please scan the correct box for order #{order.id}.",
                box_id=box_id,
                details={"host_id": host.id, "order_id": order.id},
            )
        return host.id


def _describe(status: ReservationStatus | OrderStatus) -> str:
    return status.value.lower().replace("_", " ")

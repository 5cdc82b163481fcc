"""
Action strategies.

Each pending action maps to one strategy that performs the ledger
transaction after the box has been confirmed open. Strategies never
retry; a failed or unsuccessful ledger call becomes ``ActionError``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable

from box_unlock.backend.base import OrderLedger, ReservationLedger
from box_unlock.errors import ActionError, BackendError
from box_unlock.models import (
    ActionOutcome,
    CheckIn,
    CheckOut,
    FulfillOrder,
    LedgerResponse,
    NoAction,
    PendingAction,
    Principal,
)

logger = logging.getLogger(__name__)


def normalize_notes(notes: str | None) -> str | None:
    """Trim notes; blank notes are sent as None."""
    if notes is None:
        return None
    notes = notes.strip()
    return notes or None


class ActionStrategy(ABC):
    """Performs the ledger transaction for one kind of pending action."""

    action_type: type

    @abstractmethod
    async def apply(self, principal: Principal, action: PendingAction) -> ActionOutcome:
        """Apply the action.

        Raises:
            ActionError: The ledger call failed or reported failure.
        """
        ...

    def _check(self, action: PendingAction) -> None:
        if not isinstance(action, self.action_type):
            raise TypeError(f"{type(self).__name__} cannot apply {type(action).__name__}")

    @staticmethod
    def _require_success(name: str, response: LedgerResponse, fallback: str) -> LedgerResponse:
        if not response.success:
            raise ActionError(
                name,
                response.message or fallback,
                details={"response": response.data},
            )
        return response


class CheckInStrategy(ActionStrategy):
    action_type = CheckIn

    def __init__(self, ledger: ReservationLedger):
        self._ledger = ledger

    async def apply(self, principal: Principal, action: PendingAction) -> ActionOutcome:
        self._check(action)
        reservation_id = action.reservation.id
        try:
            response = await self._ledger.check_in(reservation_id)
        except BackendError as e:
            raise ActionError("check_in", f"Check-in failed: {e.message}", cause=e) from e

        self._require_success("check_in", response, "Check-in failed")
        logger.info("Reservation %s checked in by %s", reservation_id, principal.id)
        return ActionOutcome("check_in", "Check-in successful! Welcome!", response)


class CheckOutStrategy(ActionStrategy):
    """Stamps the checkout time, then checks out.

    The checkout call is never made if the timestamp update fails.
    """

    action_type = CheckOut

    def __init__(
        self,
        ledger: ReservationLedger,
        clock: Callable[[], datetime] | None = None,
    ):
        self._ledger = ledger
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def apply(self, principal: Principal, action: PendingAction) -> ActionOutcome:
        self._check(action)
        reservation_id = action.reservation.id

        try:
            stamped = await self._ledger.update_timestamp(reservation_id, "checkoutAt", self._clock())
        except BackendError as e:
            raise ActionError(
                "check_out",
                f"Failed to update checkout time: {e.message}",
                cause=e,
            ) from e
        if not stamped.success:
            raise ActionError(
                "check_out",
                f"Failed to update checkout time: {stamped.message or 'rejected'}",
                details={"response": stamped.data},
            )

        try:
            response = await self._ledger.check_out(reservation_id)
        except BackendError as e:
            raise ActionError("check_out", f"Check-out failed: {e.message}", cause=e) from e

        self._require_success("check_out", response, "Check-out failed")
        logger.info("Reservation %s checked out by %s", reservation_id, principal.id)
        return ActionOutcome("check_out", "Check-out successful! Thank you for staying with us!", response)


class FulfillOrderStrategy(ActionStrategy):
    """Marks an extra order fulfilled.

    Notes are collected after confirmation and attached to the action
    before it reaches this strategy.
    """

    action_type = FulfillOrder

    def __init__(self, ledger: OrderLedger):
        self._ledger = ledger

    async def apply(self, principal: Principal, action: PendingAction) -> ActionOutcome:
        self._check(action)
        order_id = action.order.id
        try:
            response = await self._ledger.fulfill(order_id, normalize_notes(action.notes))
        except BackendError as e:
            raise ActionError("fulfill_order", f"Failed to fulfill order: {e.message}", cause=e) from e

        self._require_success("fulfill_order", response, "Failed to fulfill order")
        logger.info("Order %s fulfilled by %s", order_id, principal.id)
        return ActionOutcome("fulfill_order", "Order fulfilled successfully!", response)


class NoOpStrategy(ActionStrategy):
    action_type = NoAction

    async def apply(self, principal: Principal, action: PendingAction) -> ActionOutcome:
        self._check(action)
        return ActionOutcome("no_action", "Box opened successfully!")


class StrategyRegistry:
    """Maps pending-action types to their strategies.

    Example:
        registry = StrategyRegistry.default(reservations, orders)
        outcome = await registry.for_action(action).apply(principal, action)
    """

    def __init__(self) -> None:
        self._strategies: dict[type, ActionStrategy] = {}

    def register(self, strategy: ActionStrategy) -> None:
        self._strategies[strategy.action_type] = strategy

    def for_action(self, action: PendingAction) -> ActionStrategy:
        try:
            return self._strategies[type(action)]
        except KeyError:
            raise ActionError(
                getattr(action, "name", type(action).__name__),
                f"No strategy registered for {type(action).__name__}",
            ) from None

    def __contains__(self, action_type: type) -> bool:
        return action_type in self._strategies

    @classmethod
    def default(
        cls,
        reservations: ReservationLedger,
        orders: OrderLedger,
        clock: Callable[[], datetime] | None = None,
    ) -> "StrategyRegistry":
        registry = cls()
        registry.register(CheckInStrategy(reservations))
        registry.register(CheckOutStrategy(reservations, clock=clock))
        registry.register(FulfillOrderStrategy(orders))
        registry.register(NoOpStrategy())
        return registry

"""
Domain models for box unlocking.

Backend records are parsed from the camelCase JSON the API returns
via ``from_api`` constructors. Pending actions form a small tagged
union that the coordinator and strategies dispatch on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union


class Role(Enum):
    """Who is asking to open a box."""
    GUEST = "guest"
    HOST = "host"
    CLEANER = "cleaner"


class ReservationStatus(Enum):
    PENDING = "PENDING"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: str | None) -> "ReservationStatus":
        try:
            return cls((value or "").upper())
        except ValueError:
            return cls.UNKNOWN


class OrderStatus(Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FULFILLED = "FULFILLED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: str | None) -> "OrderStatus":
        try:
            return cls((value or "").upper())
        except ValueError:
            return cls.UNKNOWN


def _parse_box_id(value: Any) -> int | None:
    if value is None:
        return None
    text = str(value).strip()
    # Only ASCII digits; int() rejects superscripts that isdigit() accepts
    if not (text.isascii() and text.isdigit()):
        return None
    return int(text)


def _parse_time(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class Principal:
    """The authenticated actor making a request."""
    id: int
    role: Role
    username: str | None = None


@dataclass(frozen=True)
class UserRef:
    """A user embedded in a backend record."""
    id: int
    username: str = ""
    user_type: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any] | None) -> "UserRef | None":
        if not data or data.get("id") is None:
            return None
        return cls(
            id=int(data["id"]),
            username=data.get("username") or "",
            user_type=data.get("userType") or "",
        )


@dataclass(frozen=True)
class ReservationBox:
    """Box summary attached to a reservation.

    The backend sends ``boxId`` as a string; it may be missing or
    non-numeric on stale records.
    """
    box_id: str | None = None
    location: str = ""
    status: str = ""

    @property
    def numeric_id(self) -> int | None:
        """The box id as an int, or None when absent or malformed."""
        return _parse_box_id(self.box_id)

    @classmethod
    def from_api(cls, data: dict[str, Any] | None) -> "ReservationBox | None":
        if not data:
            return None
        box_id = data.get("boxId")
        return cls(
            box_id=None if box_id is None else str(box_id),
            location=data.get("location") or "",
            status=data.get("status") or "",
        )


@dataclass(frozen=True)
class Reservation:
    """A guest's stay in a box."""
    id: int
    box: ReservationBox | None = None
    host: UserRef | None = None
    guest: UserRef | None = None
    status: ReservationStatus = ReservationStatus.PENDING
    checkin_at: datetime | None = None
    checkout_at: datetime | None = None

    @property
    def box_id(self) -> int | None:
        return self.box.numeric_id if self.box else None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Reservation":
        return cls(
            id=int(data["id"]),
            box=ReservationBox.from_api(data.get("box")),
            host=UserRef.from_api(data.get("host")),
            guest=UserRef.from_api(data.get("guest")),
            status=ReservationStatus.parse(data.get("status")),
            checkin_at=_parse_time(data.get("checkinAt")),
            checkout_at=_parse_time(data.get("checkoutAt")),
        )


@dataclass(frozen=True)
class ReservationDetail:
    """The reservation summary embedded in an extra order."""
    id: int
    host: UserRef | None = None
    guest: UserRef | None = None
    status: ReservationStatus = ReservationStatus.PENDING
    checkin_at: datetime | None = None
    checkout_at: datetime | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any] | None) -> "ReservationDetail | None":
        if not data or data.get("id") is None:
            return None
        return cls(
            id=int(data["id"]),
            host=UserRef.from_api(data.get("host")),
            guest=UserRef.from_api(data.get("guest")),
            status=ReservationStatus.parse(data.get("status")),
            checkin_at=_parse_time(data.get("checkinAt")),
            checkout_at=_parse_time(data.get("checkoutAt")),
        )


@dataclass(frozen=True)
class ExtraOrderItem:
    name: str
    quantity: int = 1
    price: float = 0.0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ExtraOrderItem":
        product = data.get("product") or {}
        return cls(
            name=data.get("name") or product.get("name") or "",
            quantity=int(data.get("quantity") or 1),
            price=float(data.get("price") or product.get("price") or 0.0),
        )


@dataclass(frozen=True)
class ExtraOrder:
    """An add-on order a cleaner delivers into a guest's box."""
    id: int
    reservation: ReservationDetail | None = None
    items: tuple[ExtraOrderItem, ...] = ()
    status: OrderStatus = OrderStatus.PENDING
    total_price: float = 0.0
    notes: str | None = None
    fulfilled_by: UserRef | None = None
    fulfilled_at: datetime | None = None

    @property
    def host(self) -> UserRef | None:
        return self.reservation.host if self.reservation else None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ExtraOrder":
        return cls(
            id=int(data["id"]),
            reservation=ReservationDetail.from_api(data.get("reservation")),
            items=tuple(ExtraOrderItem.from_api(i) for i in data.get("items") or []),
            status=OrderStatus.parse(data.get("status")),
            total_price=float(data.get("totalPrice") or 0.0),
            notes=data.get("notes"),
            fulfilled_by=UserRef.from_api(data.get("fulfilledBy")),
            fulfilled_at=_parse_time(data.get("fulfilledAt")),
        )


@dataclass(frozen=True)
class BoxRecord:
    """A box as listed by the host lookup."""
    box_id: int | None
    location: str = ""
    owner_id: int | None = None
    status: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "BoxRecord":
        box_id = _parse_box_id(data.get("boxId"))
        owner = UserRef.from_api(data.get("owner"))
        return cls(
            box_id=box_id,
            location=data.get("location") or "",
            owner_id=owner.id if owner else None,
            status=data.get("status") or "",
        )


@dataclass(frozen=True)
class OpeningEvent:
    """One entry of a box's opening history."""
    box_id: int | None
    opened_at: datetime | None = None
    opened_by: UserRef | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "OpeningEvent":
        return cls(
            box_id=_parse_box_id(data.get("boxId")),
            opened_at=_parse_time(data.get("openedAt") or data.get("createdAt")),
            opened_by=UserRef.from_api(data.get("user") or data.get("openedBy")),
            raw=dict(data),
        )


@dataclass(frozen=True)
class LedgerResponse:
    """Result of a ledger mutation."""
    success: bool
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Any) -> "LedgerResponse":
        """Read the body of a 2xx ledger call.

        Any body counts as applied unless it says ``success: false``.
        A 2xx with no body at all is a failure.
        """
        if data is None:
            return cls(success=False, message="Empty response from server")
        if not isinstance(data, dict):
            data = {"body": data}
        return cls(
            success=bool(data.get("success", True)),
            message=data.get("message") or "",
            data=dict(data),
        )


# =============================================================================
# Pending actions
# =============================================================================

@dataclass(frozen=True)
class CheckIn:
    reservation: Reservation
    name = "check_in"


@dataclass(frozen=True)
class CheckOut:
    reservation: Reservation
    name = "check_out"


@dataclass(frozen=True)
class FulfillOrder:
    """Notes are attached after the box is confirmed open."""
    order: ExtraOrder
    notes: str | None = None
    name = "fulfill_order"


@dataclass(frozen=True)
class NoAction:
    name = "no_action"


PendingAction = Union[CheckIn, CheckOut, FulfillOrder, NoAction]


@dataclass(frozen=True)
class ActionOutcome:
    """What a completed attempt did to the ledger."""
    action: str
    message: str
    response: LedgerResponse | None = None

"""
Backend API access.

Protocols (what the unlock components depend on):
    SignalSource, BoxDirectory, ReservationLedger, OrderLedger

HTTP implementations:
    ApiClient       - httpx client with bearer auth and timeouts
    BoxApi          - open signal, boxes by host, opening history
    ReservationApi  - reservation lookup, check-in/out, timestamp updates
    OrderApi        - fulfill, pending orders
"""

from box_unlock.backend.base import (
    SignalSource,
    BoxDirectory,
    ReservationLedger,
    OrderLedger,
)
from box_unlock.backend.client import ApiClient
from box_unlock.backend.boxes import BoxApi
from box_unlock.backend.reservations import ReservationApi
from box_unlock.backend.orders import OrderApi

__all__ = [
    "SignalSource",
    "BoxDirectory",
    "ReservationLedger",
    "OrderLedger",
    "ApiClient",
    "BoxApi",
    "ReservationApi",
    "OrderApi",
]

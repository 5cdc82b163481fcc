"""
Tests for OwnershipVerifier.

Covers:
    - Implicit host ownership
    - Guest reservation/box matching
    - Cleaner inventory lookups
    - Denial logging
"""

import pytest

from box_unlock.errors import BackendError, ErrorKind, OwnershipError, OwnershipFailure
from box_unlock.models import CheckIn, CheckOut, FulfillOrder, NoAction, OrderStatus, ReservationStatus
from box_unlock.ownership import OwnershipVerifier
from box_unlock.testing import FakeBoxDirectory, make_order, make_reservation

from conftest import log_events, run


@pytest.fixture
def directory():
    return FakeBoxDirectory({7: [41, 42, 43]})


@pytest.fixture
def verifier(directory, events):
    return OwnershipVerifier(directory, events=events)


class TestHostOwnership:

    def test_host_is_implicit_owner(self, verifier, directory, host):
        assert run(verifier.verify(42, host, NoAction())) == host.id
        assert directory.calls == []


class TestGuestOwnership:

    def test_matching_box_returns_reservation_host(self, verifier, guest):
        action = CheckIn(make_reservation(box_id=42, host_id=7))
        assert run(verifier.verify(42, guest, action)) == 7

    def test_checkout_uses_same_rules(self, verifier, guest):
        action = CheckOut(make_reservation(box_id=42, host_id=9, status=ReservationStatus.CHECKED_IN))
        assert run(verifier.verify(42, guest, action)) == 9

    def test_wrong_box_is_caller_error(self, verifier, directory, guest):
        action = CheckIn(make_reservation(box_id=17))

        with pytest.raises(OwnershipError) as exc_info:
            run(verifier.verify(42, guest, action))

        error = exc_info.value
        assert error.reason == OwnershipFailure.BOX_MISMATCH
        assert error.is_caller_error
        assert error.kind == ErrorKind.OWNERSHIP
        assert error.message == "Wrong box! This is box #42, but your reservation is for box #17."
        assert directory.calls == []

    def test_reservation_without_box_id(self, verifier, guest):
        action = CheckIn(make_reservation(box_id=None))

        with pytest.raises(OwnershipError) as exc_info:
            run(verifier.verify(42, guest, action))

        assert exc_info.value.reason == OwnershipFailure.RESERVATION_MISSING_BOX_ID
        assert not exc_info.value.is_caller_error

    def test_reservation_with_malformed_box_id(self, verifier, guest):
        action = CheckIn(make_reservation(box_id="box-42"))

        with pytest.raises(OwnershipError) as exc_info:
            run(verifier.verify(42, guest, action))

        assert exc_info.value.reason == OwnershipFailure.RESERVATION_MISSING_BOX_ID

    def test_reservation_without_host(self, verifier, guest):
        action = CheckIn(make_reservation(box_id=42, host_id=None))

        with pytest.raises(OwnershipError) as exc_info:
            run(verifier.verify(42, guest, action))

        assert exc_info.value.reason == OwnershipFailure.HOST_MISSING_ON_RESERVATION


class TestCleanerOwnership:

    def test_box_in_host_inventory(self, verifier, directory, cleaner):
        action = FulfillOrder(make_order(host_id=7))

        assert run(verifier.verify(42, cleaner, action)) == 7
        assert directory.calls_to("boxes_by_host")[0].args == (7,)

    def test_box_not_in_inventory(self, verifier, cleaner):
        action = FulfillOrder(make_order(order_id=5, host_id=7))

        with pytest.raises(OwnershipError) as exc_info:
            run(verifier.verify(99, cleaner, action))

        assert exc_info.value.reason == OwnershipFailure.NOT_OWNED
        assert "order #5" in exc_info.value.message

    def test_order_without_host(self, verifier, directory, cleaner):
        action = FulfillOrder(make_order(host_id=None))

        with pytest.raises(OwnershipError) as exc_info:
            run(verifier.verify(42, cleaner, action))

        assert exc_info.value.reason == OwnershipFailure.HOST_MISSING_ON_RESERVATION
        assert directory.calls == []

    def test_lookup_failure_keeps_cause(self, verifier, directory, cleaner):
        directory.fail_on("boxes_by_host", BackendError("timeout"))

        with pytest.raises(OwnershipError) as exc_info:
            run(verifier.verify(42, cleaner, FulfillOrder(make_order())))

        error = exc_info.value
        assert error.reason == OwnershipFailure.LOOKUP_FAILED
        assert isinstance(error.cause, BackendError)
        assert error.message == "Failed to verify box ownership: timeout"


class TestStatusRules:

    @pytest.mark.parametrize("status", [ReservationStatus.PENDING, ReservationStatus.CHECKED_IN])
    def test_check_in_accepted(self, verifier, guest, status):
        assert run(verifier.verify(42, guest, CheckIn(make_reservation(status=status)))) == 7

    @pytest.mark.parametrize("status", [
        ReservationStatus.CHECKED_OUT,
        ReservationStatus.COMPLETED,
        ReservationStatus.CANCELLED,
    ])
    def test_check_in_rejected(self, verifier, guest, status):
        with pytest.raises(OwnershipError) as exc_info:
            run(verifier.verify(42, guest, CheckIn(make_reservation(status=status))))

        error = exc_info.value
        assert error.reason == OwnershipFailure.NOT_ELIGIBLE
        assert error.is_caller_error
        assert error.details["status"] == status.value

    @pytest.mark.parametrize("status", [ReservationStatus.PENDING, ReservationStatus.CANCELLED])
    def test_check_out_requires_checked_in(self, verifier, guest, status):
        with pytest.raises(OwnershipError) as exc_info:
            run(verifier.verify(42, guest, CheckOut(make_reservation(reservation_id=3, status=status))))

        assert exc_info.value.reason == OwnershipFailure.NOT_ELIGIBLE
        assert exc_info.value.message.startswith("Reservation #3 is ")
        assert exc_info.value.message.endswith("and cannot be checked out.")

    def test_unknown_status_left_to_ledger(self, verifier, guest):
        action = CheckOut(make_reservation(status=ReservationStatus.UNKNOWN))
        assert run(verifier.verify(42, guest, action)) == 7

    @pytest.mark.parametrize("status", [OrderStatus.FULFILLED, OrderStatus.DELIVERED, OrderStatus.CANCELLED])
    def test_closed_order_rejected_without_lookup(self, verifier, directory, cleaner, status):
        with pytest.raises(OwnershipError) as exc_info:
            run(verifier.verify(42, cleaner, FulfillOrder(make_order(order_id=5, status=status))))

        assert exc_info.value.reason == OwnershipFailure.NOT_ELIGIBLE
        assert exc_info.value.message == f"Order #5 is {status.value.lower()} and cannot be fulfilled."
        assert directory.calls == []


class TestRoleRules:

    @pytest.mark.parametrize("principal_name,action", [
        ("guest", FulfillOrder(make_order())),
        ("guest", NoAction()),
        ("cleaner", CheckIn(make_reservation())),
        ("host", CheckOut(make_reservation())),
    ])
    def test_role_not_permitted(self, request, verifier, principal_name, action):
        principal = request.getfixturevalue(principal_name)

        with pytest.raises(OwnershipError) as exc_info:
            run(verifier.verify(42, principal, action))

        assert exc_info.value.reason == OwnershipFailure.ROLE_NOT_PERMITTED


class TestDenialLogging:

    def test_denial_is_logged(self, verifier, guest, log_stream):
        with pytest.raises(OwnershipError):
            run(verifier.verify(42, guest, CheckIn(make_reservation(box_id=17))))

        denied = [e for e in log_events(log_stream) if e["event"] == "ownership_denied"]
        assert len(denied) == 1
        assert denied[0]["reason"] == "box_mismatch"
        assert denied[0]["box_id"] == 42
        assert denied[0]["principal_id"] == guest.id

    def test_success_is_not_logged_as_denial(self, verifier, host, log_stream):
        run(verifier.verify(42, host, NoAction()))
        assert not any(e["event"] == "ownership_denied" for e in log_events(log_stream))

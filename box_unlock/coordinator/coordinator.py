"""
Unlock Coordinator: one state machine for every unlock flow.

Sequences ownership verification, the signal request, looping
emission, human confirmation, and a single ledger transaction chosen
by the pending action. Host opens, guest check-in/out and cleaner
fulfillment all run through the same coordinator.

Guarantees:
    - Emission never starts before ownership is verified
    - Emission is stopped before any ledger call
    - At most one attempt is active at a time
    - Responses that arrive after cancel/reset are discarded
    - The decoded signal file is released on every exit path
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Callable

from box_unlock.audit import AuditTrail, TransitionRecord
from box_unlock.coordinator.states import (
    AttemptFailure,
    AttemptState,
    UnlockAttempt,
    UnlockSnapshot,
    is_valid_transition,
)
from box_unlock.errors import (
    ActionError,
    AttemptActiveError,
    CoordinatorClosedError,
    DecodeError,
    ErrorKind,
    InvalidTransitionError,
    NetworkError,
    OwnershipError,
    OwnershipFailure,
    PhysicalOpenDenied,
    PlaybackError,
    SignalError,
    UnlockError,
)
from box_unlock.models import FulfillOrder, PendingAction, Principal
from box_unlock.monitoring.logging import StructuredLogger, get_logger
from box_unlock.ownership import OwnershipVerifier
from box_unlock.qr import parse_box_qr
from box_unlock.signal.client import UnlockSignalClient
from box_unlock.signal.emitter import SignalEmitter
from box_unlock.strategies import StrategyRegistry, normalize_notes

logger = logging.getLogger(__name__)

Listener = Callable[[UnlockSnapshot], None]

AUDIO_ERROR_PREFIX = "Box opening signal sent, but audio error: "


def failure_message(error: UnlockError) -> str:
    """User-facing text for a failed attempt."""
    if error.kind in (ErrorKind.DECODE, ErrorKind.PLAYBACK):
        if error.message.startswith(AUDIO_ERROR_PREFIX):
            return error.message
        return AUDIO_ERROR_PREFIX + error.message
    if error.kind == ErrorKind.NETWORK:
        return f"{error.message}. Please try again."
    if error.kind == ErrorKind.ACTION:
        return f"Box opened, but the record was not updated: {error.message}"
    return error.message


class UnlockCoordinator:
    """
    Drives one unlock attempt at a time.

    Usage:
        coordinator = UnlockCoordinator(verifier, signals, emitter, strategies)

        snap = await coordinator.start_attempt(42, guest, CheckIn(reservation))
        if snap.confirmation_required:
            snap = await coordinator.confirm(user_saw_box_open)

        # Fulfillment asks for notes once the box is open
        if snap.notes_required:
            snap = await coordinator.submit_notes("left by the door")

        coordinator.reset()
    """

    def __init__(
        self,
        verifier: OwnershipVerifier,
        signals: UnlockSignalClient,
        emitter: SignalEmitter,
        strategies: StrategyRegistry,
        audit: AuditTrail | None = None,
        events: StructuredLogger | None = None,
    ):
        self._verifier = verifier
        self._signals = signals
        self._emitter = emitter
        self._strategies = strategies
        self.audit = audit or AuditTrail()
        self._events = events

        self._state = AttemptState.IDLE
        self._attempt: UnlockAttempt | None = None
        self._task: asyncio.Future | None = None
        self._listeners: list[Listener] = []
        self._closed = False

    # =========================================================================
    # Observation
    # =========================================================================

    @property
    def state(self) -> AttemptState:
        return self._state

    @property
    def attempt(self) -> UnlockAttempt | None:
        return self._attempt

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def events(self) -> StructuredLogger:
        return self._events or get_logger()

    def snapshot(self) -> UnlockSnapshot:
        return UnlockSnapshot.of(self._state, self._attempt)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with a snapshot after every transition.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # Caller API
    # =========================================================================

    async def start_attempt(
        self,
        box_id: int,
        principal: Principal,
        action: PendingAction,
    ) -> UnlockSnapshot:
        """Start an attempt and run it up to confirmation.

        Returns once the attempt awaits confirmation or has ended.

        Raises:
            AttemptActiveError: Another attempt is mid-flight. Nothing changes.
            CoordinatorClosedError: The coordinator has been closed.
        """
        if self._closed:
            raise CoordinatorClosedError()

        current = self._attempt
        if self._state.is_active and current is not None:
            self._record(
                current.attempt_id,
                str(principal.id),
                self._state,
                AttemptState.VERIFYING_OWNERSHIP,
                "rejected",
                reason="attempt already active",
                box_id=box_id,
            )
            raise AttemptActiveError(current.attempt_id, self._state.value)

        attempt = UnlockAttempt(box_id=box_id, principal=principal, action=action)
        self._attempt = attempt
        self._log(attempt).attempt_started(action.name, principal.role.value)
        self._transition(attempt, AttemptState.VERIFYING_OWNERSHIP)
        return await self._run(attempt, self._prepare(attempt))

    async def start_from_qr(
        self,
        qr_payload: str,
        principal: Principal,
        action: PendingAction,
    ) -> UnlockSnapshot:
        """Parse a scanned QR payload, then start an attempt for that box.

        Raises:
            InvalidQRCodeError: The payload is not a box id. No attempt is created.
        """
        box_id = parse_box_qr(qr_payload)
        return await self.start_attempt(box_id, principal, action)

    async def confirm(self, was_successful: bool) -> UnlockSnapshot:
        """Report whether the box physically opened.

        Outside of awaiting confirmation this is a no-op. Emission is
        always stopped before anything else happens.
        """
        attempt = self._attempt
        if attempt is None or self._state is not AttemptState.AWAITING_CONFIRMATION:
            logger.debug("confirm(%s) ignored in state %s", was_successful, self._state.value)
            return self.snapshot()

        self._stop_emission(attempt)

        if not was_successful:
            self._fail(attempt, PhysicalOpenDenied(attempt.box_id))
            return self.snapshot()

        attempt.box_opened = True
        if attempt.needs_notes:
            self._transition(attempt, AttemptState.COLLECTING_NOTES)
            return self.snapshot()

        self._transition(attempt, AttemptState.APPLYING_ACTION)
        return await self._run(attempt, self._apply(attempt))

    async def submit_notes(self, notes: str | None) -> UnlockSnapshot:
        """Attach fulfillment notes and apply the order.

        Raises:
            InvalidTransitionError: Not currently collecting notes.
        """
        attempt = self._attempt
        if attempt is None or self._state is not AttemptState.COLLECTING_NOTES:
            raise InvalidTransitionError(
                self._state.value,
                AttemptState.APPLYING_ACTION.value,
                details={"operation": "submit_notes"},
            )

        attempt.notes = normalize_notes(notes)
        if isinstance(attempt.action, FulfillOrder):
            attempt.action = replace(attempt.action, notes=attempt.notes)
        self._transition(attempt, AttemptState.APPLYING_ACTION)
        return await self._run(attempt, self._apply(attempt))

    def cancel(self) -> UnlockSnapshot:
        """Cancel the active attempt.

        Audio is stopped before this returns. Pending I/O is cancelled and
        any late result is discarded. No-op when idle or already ended.
        """
        attempt = self._attempt
        if attempt is None or not self._state.is_active:
            return self.snapshot()

        self._stop_emission(attempt)
        self._transition(attempt, AttemptState.CANCELLED, reason="cancelled by caller")

        task = self._task
        if task is not None and not task.done():
            task.cancel()
        return self.snapshot()

    def reset(self) -> UnlockSnapshot:
        """Return to IDLE, cancelling anything in flight."""
        if self._state.is_active:
            self.cancel()

        attempt = self._attempt
        if attempt is not None:
            self._stop_emission(attempt)
        # Force-stop whatever the device is doing
        self._emitter.stop()

        self._attempt = None
        if self._state is not AttemptState.IDLE:
            self._transition(attempt, AttemptState.IDLE, reason="reset")
        return self.snapshot()

    def close(self) -> None:
        """Dispose of the coordinator. Further attempts are refused."""
        if self._closed:
            return
        self.reset()
        self._closed = True
        self._listeners.clear()

    async def aclose(self) -> None:
        task = self._task
        self.close()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def __aenter__(self) -> "UnlockCoordinator":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def _run(self, attempt: UnlockAttempt, step) -> UnlockSnapshot:
        task = asyncio.ensure_future(step)
        self._task = task
        try:
            await task
        except asyncio.CancelledError:
            if not (self._attempt is not attempt or attempt.state is AttemptState.CANCELLED):
                # The caller awaiting us was cancelled, not the attempt
                self.cancel()
                raise
        finally:
            if self._task is task:
                self._task = None
        return self.snapshot()

    async def _prepare(self, attempt: UnlockAttempt) -> None:
        """Verify ownership, fetch and decode the signal, start emission."""
        try:
            host_id = await self._verifier.verify(attempt.box_id, attempt.principal, attempt.action)
        except OwnershipError as e:
            self._fail(attempt, e)
            return
        except Exception as e:
            logger.exception("Ownership check crashed")
            self._fail(attempt, OwnershipError(
                OwnershipFailure.LOOKUP_FAILED,
                f"Failed to verify box ownership: {e}",
                box_id=attempt.box_id,
                cause=e,
            ))
            return

        if not self._is_current(attempt, AttemptState.VERIFYING_OWNERSHIP):
            return
        attempt.host_id = host_id
        self._transition(attempt, AttemptState.REQUESTING_SIGNAL)

        try:
            payload = await self._signals.request_signal(attempt.box_id, host_id)
        except SignalError as e:
            self._fail(attempt, e)
            return
        except Exception as e:
            logger.exception("Signal request crashed")
            self._fail(attempt, NetworkError(f"Failed to request open signal: {e}", cause=e))
            return

        if not self._is_current(attempt, AttemptState.REQUESTING_SIGNAL):
            return

        try:
            resource = self._signals.decode(payload)
        except DecodeError as e:
            self._fail(attempt, e)
            return
        except Exception as e:
            self._fail(attempt, DecodeError(f"Could not decode open signal: {e}", cause=e))
            return

        self._transition(attempt, AttemptState.EMITTING)
        if not self._is_current(attempt, AttemptState.EMITTING):
            resource.release()
            return

        loop = asyncio.get_running_loop()

        def on_error(error: PlaybackError) -> None:
            loop.call_soon_threadsafe(self._playback_fault, attempt, error)

        try:
            attempt.signal_handle = self._emitter.start(resource, on_error=on_error)
        except PlaybackError as e:
            self._fail(attempt, e)
            return

        if self._is_current(attempt, AttemptState.EMITTING):
            self._transition(attempt, AttemptState.AWAITING_CONFIRMATION)

    async def _apply(self, attempt: UnlockAttempt) -> None:
        """Run the pending action's strategy."""
        try:
            strategy = self._strategies.for_action(attempt.action)
            outcome = await strategy.apply(attempt.principal, attempt.action)
        except ActionError as e:
            self._fail(attempt, e)
            return
        except Exception as e:
            logger.exception("Strategy for %s crashed", attempt.action.name)
            self._fail(attempt, ActionError(attempt.action.name, str(e), cause=e))
            return

        if not self._is_current(attempt, AttemptState.APPLYING_ACTION):
            logger.info("Discarding late %s result for %s", attempt.action.name, attempt.attempt_id)
            return

        attempt.outcome = outcome
        self._transition(attempt, AttemptState.SUCCEEDED, reason=outcome.message)
        self._log(attempt).attempt_succeeded(outcome.action, outcome.message)

    def _playback_fault(self, attempt: UnlockAttempt, error: PlaybackError) -> None:
        if self._attempt is not attempt:
            return
        if self._state not in (AttemptState.EMITTING, AttemptState.AWAITING_CONFIRMATION):
            return
        self._fail(attempt, error)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _is_current(self, attempt: UnlockAttempt, state: AttemptState | None = None) -> bool:
        if self._attempt is not attempt:
            return False
        return state is None or self._state is state

    def _stop_emission(self, attempt: UnlockAttempt) -> None:
        handle = attempt.signal_handle
        if handle is not None:
            attempt.signal_handle = None
            self._emitter.stop(handle)

    def _fail(self, attempt: UnlockAttempt, error: UnlockError) -> None:
        if not self._is_current(attempt) or not self._state.is_active:
            return

        self._stop_emission(attempt)
        if isinstance(error, ActionError):
            attempt.box_opened = True
        attempt.failure = AttemptFailure(error.kind, failure_message(error), error)
        self._log(attempt).attempt_failed(error.kind.value, error)
        self._transition(attempt, AttemptState.FAILED, reason=attempt.failure.message)

    def _transition(
        self,
        attempt: UnlockAttempt | None,
        to_state: AttemptState,
        reason: str = "",
    ) -> None:
        from_state = self._state
        attempt_id = attempt.attempt_id if attempt else None
        actor = str(attempt.principal.id) if attempt else "system"
        box_id = attempt.box_id if attempt else None

        if not is_valid_transition(from_state, to_state):
            self._record(attempt_id, actor, from_state, to_state, "rejected", reason, box_id)
            raise InvalidTransitionError(from_state.value, to_state.value)

        self._state = to_state
        if attempt is not None:
            attempt.state = to_state
        self._record(attempt_id, actor, from_state, to_state, "accepted", reason, box_id)
        if attempt is not None:
            self._log(attempt).attempt_transition(from_state.value, to_state.value)
        self._notify()

    def _record(
        self,
        attempt_id: str | None,
        actor: str,
        from_state: AttemptState,
        to_state: AttemptState,
        decision: str,
        reason: str = "",
        box_id: int | None = None,
    ) -> None:
        self.audit.record(TransitionRecord(
            attempt_id=attempt_id,
            actor=actor,
            from_state=from_state.value,
            to_state=to_state.value,
            decision=decision,
            reason=reason,
            box_id=box_id,
        ))

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Unlock listener failed")

    def _log(self, attempt: UnlockAttempt) -> StructuredLogger:
        return self.events.bind(attempt_id=attempt.attempt_id, box_id=attempt.box_id)

"""
Scanner State Machine
=====================

Pure reducer for the scanning session: (SessionState, ScannerEvent) → SessionState.

No I/O, no clock reads, no hidden state. Every (state, event) pair has a
defined result; invalid combinations return the state unchanged, so the
reducer never raises.

Phases:
    READY (initial) → SCANNING → COMPLETE (held until reset)

Completion Policy:
    Auto-complete. PROGRESS_TICK caps progress at 100 and reaching 100
    moves the session to COMPLETE in the same step. FINISH_SCANNING remains
    available as a manual "finish now" control.

Transition Rules:
    START_SCANNING   any phase      → fresh SCANNING state, started_at=now
    PROGRESS_TICK    SCANNING, ok   → progress += step (capped, never decreases)
    ERROR_DETECTED   SCANNING       → new code: set active error, count +1
                                      same code: unchanged
    ERROR_RESOLVED   SCANNING, err  → clear active error
    FINISH_SCANNING  SCANNING       → COMPLETE, progress=100
    CANCEL/SCAN_ANOTHER/RESET any   → fresh READY state
"""

import logging

from receipt_scanner.models.events import ScannerEvent, ScannerEventType
from receipt_scanner.models.state import (
    ActiveError,
    ScannerPhase,
    SessionState,
    create_initial_state,
)


logger = logging.getLogger(__name__)

PROGRESS_CAP = 100.0


def scanner_reducer(state: SessionState, event: ScannerEvent) -> SessionState:
    """
    Apply one event to a session snapshot.

    Args:
        state: Current snapshot
        event: Event to apply

    Returns:
        Next snapshot (the same object when the event is a no-op)
    """
    kind = event.type

    if kind == ScannerEventType.START_SCANNING:
        return create_initial_state().model_copy(update={
            "phase": ScannerPhase.SCANNING,
            "started_at": event.now,
        })

    if kind in (
        ScannerEventType.CANCEL_SCANNING,
        ScannerEventType.SCAN_ANOTHER,
        ScannerEventType.RESET,
    ):
        return create_initial_state()

    if state.phase != ScannerPhase.SCANNING:
        return state

    if kind == ScannerEventType.PROGRESS_TICK:
        return _progress_tick(state, event)

    if kind == ScannerEventType.ERROR_DETECTED:
        return _error_detected(state, event)

    if kind == ScannerEventType.ERROR_RESOLVED:
        if state.active_error is None:
            return state
        return state.model_copy(update={"active_error": None})

    if kind == ScannerEventType.FINISH_SCANNING:
        return _complete(state, event.now, artifact_ref=event.artifact_ref)

    return state


def _progress_tick(state: SessionState, event: ScannerEvent) -> SessionState:
    if state.active_error is not None:
        return state

    progress = min(PROGRESS_CAP, state.progress + max(0.0, event.step))

    if progress >= PROGRESS_CAP:
        return _complete(state, event.now)

    return state.model_copy(update={"progress": progress})


def _error_detected(state: SessionState, event: ScannerEvent) -> SessionState:
    if event.error is None:
        return state

    current = state.active_error
    if current is not None and current.code == event.error:
        return state

    return state.model_copy(update={
        "active_error": ActiveError(code=event.error, detected_at=event.now),
        "adjustments_count": state.adjustments_count + 1,
    })


def _complete(state: SessionState, now: float, artifact_ref=None) -> SessionState:
    return state.model_copy(update={
        "phase": ScannerPhase.COMPLETE,
        "progress": PROGRESS_CAP,
        "active_error": None,
        "completed_at": now,
        "artifact_ref": artifact_ref,
    })

"""
Data Models
===========

Pydantic models and value types for the receipt scanner session engine.

This module re-exports all data models for convenient access.

Models:
    Signal:
        - Direction: Movement direction enum
        - Signal: Canonical scan-quality snapshot
        - DEFAULT_SIGNAL: Healthy default snapshot

    Faults:
        - ErrorCode: Closed set of scan-quality fault codes

    State:
        - ScannerPhase: READY, SCANNING, COMPLETE
        - ActiveError: Surfaced fault with detection timestamp
        - SessionState: Full session snapshot

    Events:
        - ScannerEventType, ScannerEvent: Reducer inputs

    UI:
        - UiModel: Presentation projection output
"""

from receipt_scanner.models.signal import DEFAULT_SIGNAL, Direction, Signal
from receipt_scanner.models.error_codes import ErrorCode
from receipt_scanner.models.state import (
    ActiveError,
    ScannerPhase,
    SessionState,
    create_initial_state,
)
from receipt_scanner.models.events import ScannerEvent, ScannerEventType
from receipt_scanner.models.ui import AlertTexts, ColorTokens, PhaseTexts, UiModel

__all__ = [
    # Signal
    "Direction",
    "Signal",
    "DEFAULT_SIGNAL",
    # Faults
    "ErrorCode",
    # State
    "ScannerPhase",
    "ActiveError",
    "SessionState",
    "create_initial_state",
    # Events
    "ScannerEventType",
    "ScannerEvent",
    # UI
    "AlertTexts",
    "ColorTokens",
    "PhaseTexts",
    "UiModel",
]

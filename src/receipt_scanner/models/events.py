"""
Scanner Events
==============

Events accepted by the scanner reducer.

Every event carries the timestamp it was issued at. The reducer never reads
a clock itself, so replaying the same event sequence always yields the same
states.

Example:
    from receipt_scanner.models.events import ScannerEvent

    events = [
        ScannerEvent.start(now=0),
        ScannerEvent.progress_tick(step=10, now=10),
    ]
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from receipt_scanner.models.error_codes import ErrorCode


class ScannerEventType(str, Enum):
    """Kinds of events the reducer understands."""

    START_SCANNING = "START_SCANNING"
    CANCEL_SCANNING = "CANCEL_SCANNING"
    PROGRESS_TICK = "PROGRESS_TICK"
    ERROR_DETECTED = "ERROR_DETECTED"
    ERROR_RESOLVED = "ERROR_RESOLVED"
    FINISH_SCANNING = "FINISH_SCANNING"
    SCAN_ANOTHER = "SCAN_ANOTHER"
    RESET = "RESET"


@dataclass(frozen=True, slots=True)
class ScannerEvent:
    """
    Immutable reducer input.

    Only the fields relevant to ``type`` are populated; use the factory
    classmethods instead of the raw constructor.

    Attributes:
        type: Event kind
        now: Timestamp in milliseconds
        step: Progress increment (PROGRESS_TICK)
        error: Detected fault code (ERROR_DETECTED)
        artifact_ref: Captured artifact reference (FINISH_SCANNING)
    """

    type: ScannerEventType
    now: float = 0.0
    step: float = 0.0
    error: Optional[ErrorCode] = None
    artifact_ref: Optional[str] = None

    @classmethod
    def start(cls, now: float) -> "ScannerEvent":
        return cls(ScannerEventType.START_SCANNING, now=now)

    @classmethod
    def progress_tick(cls, step: float, now: float) -> "ScannerEvent":
        return cls(ScannerEventType.PROGRESS_TICK, now=now, step=step)

    @classmethod
    def error_detected(cls, error: ErrorCode, now: float) -> "ScannerEvent":
        return cls(ScannerEventType.ERROR_DETECTED, now=now, error=error)

    @classmethod
    def error_resolved(cls, now: float) -> "ScannerEvent":
        return cls(ScannerEventType.ERROR_RESOLVED, now=now)

    @classmethod
    def finish(cls, now: float, artifact_ref: Optional[str] = None) -> "ScannerEvent":
        return cls(ScannerEventType.FINISH_SCANNING, now=now, artifact_ref=artifact_ref)

    @classmethod
    def cancel(cls, now: float = 0.0) -> "ScannerEvent":
        return cls(ScannerEventType.CANCEL_SCANNING, now=now)

    @classmethod
    def scan_another(cls, now: float = 0.0) -> "ScannerEvent":
        return cls(ScannerEventType.SCAN_ANOTHER, now=now)

    @classmethod
    def reset(cls, now: float = 0.0) -> "ScannerEvent":
        return cls(ScannerEventType.RESET, now=now)

    def __repr__(self) -> str:
        if self.type == ScannerEventType.PROGRESS_TICK:
            return f"ScannerEvent({self.type.value}, step={self.step:.2f}, now={self.now:.0f})"
        if self.type == ScannerEventType.ERROR_DETECTED and self.error is not None:
            return f"ScannerEvent({self.type.value}, {self.error.value}, now={self.now:.0f})"
        return f"ScannerEvent({self.type.value}, now={self.now:.0f})"

"""
Session State Models
====================

This module defines the state owned by one scanning session.

Core Concepts:
    - ScannerPhase: Coarse session stage (READY, SCANNING, COMPLETE)
    - ActiveError: The currently surfaced fault, only while SCANNING
    - SessionState: Full snapshot mutated exclusively by the reducer

Phase Lifecycle:
    READY → SCANNING → COMPLETE
    Any phase → READY only through CANCEL_SCANNING, SCAN_ANOTHER or RESET.

Example:
    from receipt_scanner.models.state import SessionState, ScannerPhase

    state = SessionState()
    assert state.phase == ScannerPhase.READY
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from receipt_scanner.models.error_codes import ErrorCode


class ScannerPhase(str, Enum):
    """
    Discrete phases of a scanning session.

    Attributes:
        READY: Waiting for the user to start
        SCANNING: Capturing, progress advances while no fault is active
        COMPLETE: Capture finished, held until reset
    """

    READY = "READY"
    SCANNING = "SCANNING"
    COMPLETE = "COMPLETE"


class ActiveError(BaseModel):
    """
    Currently surfaced scan-quality fault.

    Attributes:
        code: Fault code
        detected_at: Timestamp (ms) of the first tick this occurrence was seen
    """

    code: ErrorCode = Field(..., description="Fault code")
    detected_at: float = Field(..., description="Detection timestamp in milliseconds")

    class Config:
        """Pydantic model configuration."""

        frozen = True


class SessionState(BaseModel):
    """
    Snapshot of one scanning session.

    Instances are never mutated in place; the reducer returns copies.

    Attributes:
        phase: Current session phase
        progress: Capture progress in percent [0, 100]
        active_error: Surfaced fault, if any
        adjustments_count: Distinct fault occurrences during this session
        started_at: Timestamp (ms) of START_SCANNING
        completed_at: Timestamp (ms) the session reached COMPLETE
        artifact_ref: Optional reference to the captured artifact
    """

    phase: ScannerPhase = Field(
        default=ScannerPhase.READY,
        description="Current session phase",
    )

    progress: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
        description="Capture progress in percent",
    )

    active_error: Optional[ActiveError] = Field(
        default=None,
        description="Currently surfaced fault",
    )

    adjustments_count: int = Field(
        default=0,
        ge=0,
        description="Number of distinct fault occurrences in this session",
    )

    started_at: Optional[float] = Field(
        default=None,
        description="Timestamp (ms) when scanning started",
    )

    completed_at: Optional[float] = Field(
        default=None,
        description="Timestamp (ms) when scanning completed",
    )

    artifact_ref: Optional[str] = Field(
        default=None,
        description="Reference to the captured artifact (e.g. a video path)",
    )

    class Config:
        """Pydantic model configuration."""

        frozen = True


def create_initial_state() -> SessionState:
    """Create a fresh READY snapshot."""
    return SessionState()

"""
UI Projection Models
====================

Output contract handed to the presentation layer.

The projection is a pure function of SessionState; nothing in these models
may feed back into the session engine.

Output Contract:
    {
        "phase": "SCANNING",
        "title": "Scanning...",
        "subtitle": "Slowly move down along the receipt",
        "tip": "Tip: Keep movement smooth and steady",
        "progress": 42.7,
        "progress_label": "43% captured",
        "adjustments_count": 1,
        "is_scanning": true,
        "is_complete": false,
        "has_error": true,
        "show_scan_line": true,
        "scan_line_paused": true,
        "side_indicator_color": "#F59E0B",
        "progress_color": "#F59E0B",
        "accent_color": "#F59E0B",
        "alert": {"icon": "〰", "title": "Hold Steady", "message": "..."},
        "colors": {...}
    }
"""

from typing import Optional

from pydantic import BaseModel, Field

from receipt_scanner.models.state import ScannerPhase


class AlertTexts(BaseModel):
    """Banner content for one fault code."""

    icon: str = Field(..., description="Single-glyph icon")
    title: str = Field(..., description="Short headline")
    message: str = Field(..., description="Corrective instruction")


class PhaseTexts(BaseModel):
    """Header content for one phase."""

    title: str
    subtitle: str
    tip: str


class ColorTokens(BaseModel):
    """Static palette used by the scanner screen."""

    ready: str = "#FFFFFF"
    scanning: str = "#2B8BFF"
    error: str = "#F59E0B"
    complete: str = "#22C55E"
    danger: str = "#EF4444"
    frame_side_line: str = "rgba(255,255,255,0.25)"
    backdrop: str = "#050608"


class UiModel(BaseModel):
    """
    Render-ready view of a scanning session.

    Attributes:
        phase: Session phase
        title: Phase headline
        subtitle: Phase instruction
        tip: Phase hint
        progress: Progress percent
        progress_label: Human-readable progress
        adjustments_count: Distinct faults so far
        artifact_ref: Captured artifact reference (COMPLETE only)
        is_scanning: Phase is SCANNING
        is_complete: Phase is COMPLETE
        has_error: A fault is surfaced while scanning
        show_scan_line: Draw the moving scan line
        scan_line_paused: Freeze the scan line (fault active)
        side_indicator_color: Color of the frame side segments
        progress_color: Color of the progress bar
        accent_color: Primary accent color
        alert: Banner texts for the active fault
        colors: Full palette
    """

    phase: ScannerPhase
    title: str
    subtitle: str
    tip: str
    progress: float = Field(..., ge=0.0, le=100.0)
    progress_label: str
    adjustments_count: int = Field(..., ge=0)
    artifact_ref: Optional[str] = None
    is_scanning: bool
    is_complete: bool
    has_error: bool
    show_scan_line: bool
    scan_line_paused: bool
    side_indicator_color: str
    progress_color: str
    accent_color: str
    alert: Optional[AlertTexts] = None
    colors: ColorTokens = Field(default_factory=ColorTokens)

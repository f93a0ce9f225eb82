"""
UI Projection
=============

Pure mapping from SessionState to the render-ready UiModel.

Texts and colors come from static lookup tables. The projection reads state
only; it MUST NOT influence the session engine.

Color Rules:
    accent:         COMPLETE → complete, fault → error, SCANNING → scanning,
                    otherwise ready
    side indicator: COMPLETE → complete, fault → error, otherwise complete
    progress bar:   fault → error, otherwise scanning
"""

from typing import Dict

from receipt_scanner.models.error_codes import ErrorCode
from receipt_scanner.models.state import ScannerPhase, SessionState
from receipt_scanner.models.ui import AlertTexts, ColorTokens, PhaseTexts, UiModel


SCANNER_COLORS = ColorTokens()

PHASE_TEXTS: Dict[ScannerPhase, PhaseTexts] = {
    ScannerPhase.READY: PhaseTexts(
        title="Position Receipt",
        subtitle="Align top edge within the frame",
        tip="Tip: Keep the receipt flat and well-lit",
    ),
    ScannerPhase.SCANNING: PhaseTexts(
        title="Scanning...",
        subtitle="Slowly move down along the receipt",
        tip="Tip: Keep movement smooth and steady",
    ),
    ScannerPhase.COMPLETE: PhaseTexts(
        title="Scan Complete!",
        subtitle="Review and continue",
        tip="Tip: Rescan if anything looks clipped",
    ),
}

ERROR_TEXTS: Dict[ErrorCode, AlertTexts] = {
    ErrorCode.WRONG_DIRECTION: AlertTexts(
        icon="↕", title="Wrong Direction", message="Move downward along the receipt",
    ),
    ErrorCode.TOO_FAST: AlertTexts(
        icon="⚡", title="Slow Down", message="Move more slowly for better capture",
    ),
    ErrorCode.SHAKY: AlertTexts(
        icon="〰", title="Hold Steady", message="Keep your hands stable for a moment",
    ),
    ErrorCode.OUT_OF_FRAME: AlertTexts(
        icon="⬚", title="Out of Frame", message="Keep receipt edges inside the frame",
    ),
    ErrorCode.TOO_DARK: AlertTexts(
        icon="☀", title="Low Lighting", message="Add light and avoid shadows",
    ),
    ErrorCode.GLARE: AlertTexts(
        icon="✦", title="Reduce Glare", message="Tilt slightly to remove reflections",
    ),
    ErrorCode.DRIFTING: AlertTexts(
        icon="↻", title="Keep It Straight", message="Hold the phone level with the receipt",
    ),
    ErrorCode.TOO_CLOSE: AlertTexts(
        icon="⤢", title="Too Close", message="Move the phone back a little",
    ),
}

FALLBACK_ERROR_TEXTS = AlertTexts(
    icon="!",
    title="Adjust Position",
    message="Move slowly and keep the receipt in frame",
)


def get_phase_texts(phase: ScannerPhase) -> PhaseTexts:
    return PHASE_TEXTS.get(phase, PHASE_TEXTS[ScannerPhase.READY])


def get_error_texts(code: ErrorCode) -> AlertTexts:
    return ERROR_TEXTS.get(code, FALLBACK_ERROR_TEXTS)


def progress_label(progress: float) -> str:
    # Half-up rounding for display, not banker's rounding
    return f"{int(progress + 0.5)}% captured"


def project(state: SessionState) -> UiModel:
    """
    Project a session snapshot onto the UI model.

    Args:
        state: Session snapshot

    Returns:
        Render-ready UiModel
    """
    texts = get_phase_texts(state.phase)

    is_scanning = state.phase == ScannerPhase.SCANNING
    is_complete = state.phase == ScannerPhase.COMPLETE
    has_error = is_scanning and state.active_error is not None

    colors = SCANNER_COLORS
    if is_complete:
        accent = colors.complete
    elif has_error:
        accent = colors.error
    elif is_scanning:
        accent = colors.scanning
    else:
        accent = colors.ready

    return UiModel(
        phase=state.phase,
        title=texts.title,
        subtitle=texts.subtitle,
        tip=texts.tip,
        progress=state.progress,
        progress_label=progress_label(state.progress),
        adjustments_count=state.adjustments_count,
        artifact_ref=state.artifact_ref,
        is_scanning=is_scanning,
        is_complete=is_complete,
        has_error=has_error,
        show_scan_line=is_scanning,
        scan_line_paused=has_error,
        side_indicator_color=colors.error if has_error and not is_complete else colors.complete,
        progress_color=colors.error if has_error else colors.scanning,
        accent_color=accent,
        alert=get_error_texts(state.active_error.code) if has_error else None,
        colors=colors,
    )

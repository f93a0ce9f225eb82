"""
Projection Tests
================

Tests for the SessionState → UiModel projection.
"""

import pytest

from receipt_scanner.models.error_codes import ErrorCode
from receipt_scanner.models.state import ActiveError, ScannerPhase, SessionState
from receipt_scanner.observability import (
    ERROR_TEXTS,
    FALLBACK_ERROR_TEXTS,
    SCANNER_COLORS,
    get_error_texts,
    progress_label,
    project,
)


class TestProject:
    """Tests for project()."""

    def test_ready(self):
        ui = project(SessionState())

        assert ui.title == "Position Receipt"
        assert ui.is_scanning is False
        assert ui.show_scan_line is False
        assert ui.accent_color == SCANNER_COLORS.ready
        assert ui.alert is None
        assert ui.progress_label == "0% captured"

    def test_scanning(self):
        ui = project(SessionState(phase=ScannerPhase.SCANNING, progress=42.4))

        assert ui.title == "Scanning..."
        assert ui.show_scan_line is True
        assert ui.scan_line_paused is False
        assert ui.accent_color == SCANNER_COLORS.scanning
        assert ui.progress_color == SCANNER_COLORS.scanning
        assert ui.side_indicator_color == SCANNER_COLORS.complete
        assert ui.progress_label == "42% captured"

    def test_scanning_with_fault(self):
        state = SessionState(
            phase=ScannerPhase.SCANNING,
            progress=30,
            active_error=ActiveError(code=ErrorCode.GLARE, detected_at=10),
            adjustments_count=1,
        )
        ui = project(state)

        assert ui.has_error is True
        assert ui.scan_line_paused is True
        assert ui.accent_color == SCANNER_COLORS.error
        assert ui.progress_color == SCANNER_COLORS.error
        assert ui.side_indicator_color == SCANNER_COLORS.error
        assert ui.alert.title == "Reduce Glare"
        assert ui.adjustments_count == 1

    def test_complete(self):
        ui = project(SessionState(
            phase=ScannerPhase.COMPLETE,
            progress=100,
            artifact_ref="scan-9",
        ))

        assert ui.title == "Scan Complete!"
        assert ui.is_complete is True
        assert ui.show_scan_line is False
        assert ui.accent_color == SCANNER_COLORS.complete
        assert ui.artifact_ref == "scan-9"
        assert ui.progress_label == "100% captured"

    def test_json_serializable(self):
        payload = project(SessionState(phase=ScannerPhase.SCANNING)).model_dump(mode="json")
        assert payload["phase"] == "SCANNING"
        assert payload["colors"]["scanning"] == "#2B8BFF"


class TestTexts:
    """Tests for the static text tables."""

    def test_every_code_has_texts(self):
        assert set(ERROR_TEXTS) == set(ErrorCode)

    def test_fallback_texts(self):
        assert get_error_texts("NOT_A_CODE") == FALLBACK_ERROR_TEXTS

    @pytest.mark.parametrize("progress, label", [
        (0.0, "0% captured"),
        (12.5, "13% captured"),
        (99.4, "99% captured"),
        (99.5, "100% captured"),
    ])
    def test_progress_label_rounds_half_up(self, progress, label):
        assert progress_label(progress) == label

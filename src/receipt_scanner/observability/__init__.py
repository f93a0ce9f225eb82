"""
Observability Module
====================

Presentation projection for the receipt scanner.

This module provides:
    - project: SessionState → UiModel
    - Static text and color tables

DESIGN RULES:
    - Does NOT import driver or agent logic
    - Does NOT influence session state
"""

from receipt_scanner.observability.projection import (
    ERROR_TEXTS,
    FALLBACK_ERROR_TEXTS,
    PHASE_TEXTS,
    SCANNER_COLORS,
    get_error_texts,
    get_phase_texts,
    progress_label,
    project,
)


__all__ = [
    "ERROR_TEXTS",
    "FALLBACK_ERROR_TEXTS",
    "PHASE_TEXTS",
    "SCANNER_COLORS",
    "get_error_texts",
    "get_phase_texts",
    "progress_label",
    "project",
]

"""
Signals Module
==============

Signal shaping for the scanning session.

This module turns raw producer output into canonical Signal snapshots:
    - normalizer.py: Raw payload → Signal via fallback chains, motion patches
    - merger.py: Layered overlay of partial patches with re-clamping
    - simulation.py: Synthetic signals for demo mode
"""

from receipt_scanner.signals.merger import merge_signals
from receipt_scanner.signals.normalizer import normalize_camera_signals, normalize_motion_patch
from receipt_scanner.signals.simulation import (
    ERROR_SIGNATURES,
    ScannerSimulationScenario,
    SimulationSignalGenerator,
    signals_for_error_code,
)

__all__ = [
    "merge_signals",
    "normalize_camera_signals",
    "normalize_motion_patch",
    "ERROR_SIGNATURES",
    "ScannerSimulationScenario",
    "SimulationSignalGenerator",
    "signals_for_error_code",
]

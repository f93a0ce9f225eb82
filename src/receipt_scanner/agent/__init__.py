"""
Agent Module
============

Deterministic decision logic for the scanning session.

This module implements the session engine core:
    - state_machine.py: Pure phase reducer
    - error_rules.py: Priority-ordered fault rules
    - debouncer.py: Time-debounced motion warnings
    - graph.py: LangGraph tick planner (detect → plan)

Key Design Decisions:
    - LangGraph is used for STRUCTURE, not LLM reasoning
    - The reducer is the only place SessionState changes
    - All timing rules read timestamps from events, never a clock
"""

from receipt_scanner.agent.debouncer import MotionWarningDebouncer, MotionWarningThresholds
from receipt_scanner.agent.error_rules import (
    ErrorRuleEngine,
    RuleThresholds,
    evaluate_scanner_error,
)
from receipt_scanner.agent.graph import ERROR_HOLD_MS, ScanTickGraph, TickDecision
from receipt_scanner.agent.state_machine import scanner_reducer

__all__ = [
    "MotionWarningDebouncer",
    "MotionWarningThresholds",
    "ErrorRuleEngine",
    "RuleThresholds",
    "evaluate_scanner_error",
    "ERROR_HOLD_MS",
    "ScanTickGraph",
    "TickDecision",
    "scanner_reducer",
]

"""
Tick Graph Definition
=====================

LangGraph workflow that turns one tick's signal into reducer events.

LangGraph is used for CONTROL FLOW only. The graph decides WHICH events a
tick produces; it never mutates SessionState. The driver dispatches the
planned events through its single serialization point.

Graph Structure:
    START → detect → plan → END

    detect:
        1. Update MotionWarningDebouncer (persisted motion warning)
        2. Evaluate ErrorRuleEngine (instant rule fault)
        3. Prefer the debounced motion warning when both fire

    plan:
        - active + still detected          → ERROR_DETECTED (idempotent)
        - active + clear + hold elapsed    → ERROR_RESOLVED
        - none active + detected           → ERROR_DETECTED
        - none active + nothing detected   → PROGRESS_TICK

Decisions are based on the session snapshot taken at the start of the tick.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TypedDict

from langgraph.graph import END, StateGraph

from receipt_scanner.agent.debouncer import MotionWarningDebouncer
from receipt_scanner.agent.error_rules import ErrorRuleEngine
from receipt_scanner.models.error_codes import ErrorCode
from receipt_scanner.models.events import ScannerEvent
from receipt_scanner.models.signal import Signal
from receipt_scanner.models.state import ScannerPhase, SessionState


logger = logging.getLogger(__name__)

ERROR_HOLD_MS = 2000.0


class TickGraphState(TypedDict):
    """
    State passed through the tick graph.

    Attributes:
        session: Session snapshot at tick start
        signal: Canonical signal for this tick
        timestamp: Tick timestamp (ms)
        motion_warning: Debounced motion warning
        rule_error: Rule engine result
        detected: Fault chosen for this tick
        events: Planned reducer events
    """
    session: SessionState
    signal: Optional[Signal]
    timestamp: float
    motion_warning: Optional[ErrorCode]
    rule_error: Optional[ErrorCode]
    detected: Optional[ErrorCode]
    events: List[ScannerEvent]


@dataclass
class TickDecision:
    """Result of one tick evaluation."""

    detected: Optional[ErrorCode]
    motion_warning: Optional[ErrorCode]
    rule_error: Optional[ErrorCode]
    events: List[ScannerEvent] = field(default_factory=list)

    def __repr__(self) -> str:
        code = self.detected.value if self.detected else None
        return f"TickDecision(detected={code}, events={self.events})"


class ScanTickGraph:
    """
    LangGraph-based planner for one scanning tick.

    No mutation of session state. Deterministic for a given debouncer
    history, signal, timestamp and step provider.
    """

    def __init__(
        self,
        debouncer: Optional[MotionWarningDebouncer] = None,
        rule_engine: Optional[ErrorRuleEngine] = None,
        step_provider: Optional[Callable[[], float]] = None,
        error_hold_ms: float = ERROR_HOLD_MS,
    ) -> None:
        """
        Initialize the tick graph.

        Args:
            debouncer: Motion warning debouncer (owned per session)
            rule_engine: Fault rule engine
            step_provider: Returns the next progress step
            error_hold_ms: Minimum undetected time before clearing a fault
        """
        if error_hold_ms < 0:
            raise ValueError("error_hold_ms must be >= 0")

        self.debouncer = debouncer or MotionWarningDebouncer()
        self.rule_engine = rule_engine or ErrorRuleEngine()
        self.step_provider = step_provider or (lambda: 1.0)
        self.error_hold_ms = error_hold_ms

        self._graph = self._build_graph()

        logger.info(f"ScanTickGraph initialized: hold={error_hold_ms:.0f}ms")

    def _build_graph(self) -> StateGraph:
        """Build the LangGraph workflow."""
        workflow = StateGraph(TickGraphState)

        workflow.add_node("detect", self._detect_node)
        workflow.add_node("plan", self._plan_node)

        workflow.set_entry_point("detect")
        workflow.add_edge("detect", "plan")
        workflow.add_edge("plan", END)

        return workflow.compile()

    def _detect_node(self, state: TickGraphState) -> Dict[str, Any]:
        """Run both detectors and pick the tick's fault."""
        signal = state.get("signal")
        now = state["timestamp"]

        motion_warning = self.debouncer.update(signal, now)
        rule_error = self.rule_engine.evaluate(signal)

        return {
            "motion_warning": motion_warning,
            "rule_error": rule_error,
            "detected": motion_warning or rule_error,
        }

    def _plan_node(self, state: TickGraphState) -> Dict[str, Any]:
        """Translate the detection into reducer events."""
        session = state["session"]
        detected = state.get("detected")
        now = state["timestamp"]
        events: List[ScannerEvent] = []

        if session.phase != ScannerPhase.SCANNING:
            return {"events": events}

        active = session.active_error
        if active is not None:
            if detected is not None:
                events.append(ScannerEvent.error_detected(detected, now))
            elif now - active.detected_at >= self.error_hold_ms:
                events.append(ScannerEvent.error_resolved(now))
        elif detected is not None:
            events.append(ScannerEvent.error_detected(detected, now))
        else:
            events.append(ScannerEvent.progress_tick(self.step_provider(), now))

        return {"events": events}

    def evaluate(
        self,
        session: SessionState,
        signal: Optional[Signal],
        timestamp: float,
    ) -> TickDecision:
        """
        Plan the events for one tick.

        Args:
            session: Session snapshot at tick start
            signal: Canonical signal for this tick
            timestamp: Tick timestamp (ms)

        Returns:
            TickDecision with the chosen fault and planned events
        """
        result = self._graph.invoke({
            "session": session,
            "signal": signal,
            "timestamp": timestamp,
            "motion_warning": None,
            "rule_error": None,
            "detected": None,
            "events": [],
        })

        return TickDecision(
            detected=result.get("detected"),
            motion_warning=result.get("motion_warning"),
            rule_error=result.get("rule_error"),
            events=list(result.get("events", [])),
        )

    def reset(self) -> None:
        """Reset per-session detector state."""
        self.debouncer.reset()

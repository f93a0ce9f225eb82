"""
Scan Session Driver
===================

Scheduling loop that ties the session engine together.

The driver owns everything one scanning session needs:
    - the SessionState (changed only through dispatch → reducer)
    - the merged canonical Signal
    - the tick planner (debouncer + rule engine, LangGraph)
    - the simulation generator for demo mode
    - the source subscriptions and the periodic tick task

Serialization:
    dispatch() is the single mutation point. It and every signal merge run
    under one re-entrant lock, so source callbacks on other threads, the
    asyncio tick and user actions never interleave inside the reducer.

Lifecycle:
    START_SCANNING  → subscribe sources, start the tick task
    leaving SCANNING (complete, cancel, reset) → stop the tick task and
    release subscriptions, each exactly once

Tick (every tick_interval_ms while SCANNING):
    1. Latest signal: merged real input, or simulator output when no camera
       frame signals arrived this session
    2. Tick graph: debounced motion warning, else rule fault
    3. Dispatch planned events (ERROR_DETECTED / ERROR_RESOLVED / PROGRESS_TICK)
"""

import asyncio
import logging
import threading
import time
from typing import Any, Callable, List, Mapping, Optional, Tuple

import numpy as np

from receipt_scanner.agent.debouncer import MotionWarningDebouncer, MotionWarningThresholds
from receipt_scanner.agent.error_rules import ErrorRuleEngine
from receipt_scanner.agent.graph import ERROR_HOLD_MS, ScanTickGraph, TickDecision
from receipt_scanner.agent.state_machine import scanner_reducer
from receipt_scanner.models.error_codes import ErrorCode
from receipt_scanner.models.events import ScannerEvent, ScannerEventType
from receipt_scanner.models.signal import Signal
from receipt_scanner.models.state import ScannerPhase, SessionState, create_initial_state
from receipt_scanner.session.permissions import (
    PermissionProvider,
    PermissionStatus,
    StaticPermissionProvider,
    check_camera_permission,
    request_camera_permission,
)
from receipt_scanner.signals.merger import merge_signals
from receipt_scanner.signals.normalizer import normalize_camera_signals, normalize_motion_patch
from receipt_scanner.signals.simulation import SimulationSignalGenerator
from receipt_scanner.sources.base import SignalSource, Subscription


logger = logging.getLogger(__name__)

SCAN_TICK_MS = 160.0
PROGRESS_STEP_RANGE = (0.85, 2.75)

_RESET_EVENTS = (
    ScannerEventType.CANCEL_SCANNING,
    ScannerEventType.SCAN_ANOTHER,
    ScannerEventType.RESET,
)


def _wall_clock_ms() -> float:
    return time.time() * 1000.0


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class DriverMetrics:
    """Metrics for ScanSessionDriver observability."""

    __slots__ = (
        "ticks",
        "events_dispatched",
        "sessions_started",
        "sessions_completed",
        "timer_starts",
        "timer_stops",
        "subscriptions_released",
        "frame_payloads",
        "motion_payloads",
        "dropped_payloads",
        "tick_errors",
    )

    def __init__(self) -> None:
        self.ticks: int = 0
        self.events_dispatched: int = 0
        self.sessions_started: int = 0
        self.sessions_completed: int = 0
        self.timer_starts: int = 0
        self.timer_stops: int = 0
        self.subscriptions_released: int = 0
        self.frame_payloads: int = 0
        self.motion_payloads: int = 0
        self.dropped_payloads: int = 0
        self.tick_errors: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {name: getattr(self, name) for name in self.__slots__}


class ScanSessionDriver:
    """
    Owner of one scanning session.

    Multiple drivers are fully independent; nothing is shared at module
    level.

    Attributes:
        state: Current SessionState
        signal: Current merged Signal (None before the first sample)
        permission_status: Last permission result
        forced_error: Fault the simulator reproduces while simulating
        forced_error_window: Exclusive progress range limiting forced_error
        metrics: Operational metrics

    Example:
        driver = ScanSessionDriver(permission_provider=StaticPermissionProvider())

        async def main():
            await driver.start_scanning()
            await asyncio.sleep(5)
            driver.cancel_scanning()

        asyncio.run(main())
    """

    def __init__(
        self,
        permission_provider: Optional[PermissionProvider] = None,
        frame_source: Optional[SignalSource] = None,
        motion_source: Optional[SignalSource] = None,
        simulator: Optional[SimulationSignalGenerator] = None,
        simulation_enabled: bool = True,
        rule_engine: Optional[ErrorRuleEngine] = None,
        motion_thresholds: Optional[MotionWarningThresholds] = None,
        tick_interval_ms: float = SCAN_TICK_MS,
        error_hold_ms: float = ERROR_HOLD_MS,
        progress_step_range: Tuple[float, float] = PROGRESS_STEP_RANGE,
        clock: Optional[Callable[[], float]] = None,
        rng: Optional[np.random.Generator] = None,
        forced_error: Optional[ErrorCode] = None,
        forced_error_window: Optional[Tuple[float, float]] = None,
    ) -> None:
        """
        Initialize session driver.

        Args:
            permission_provider: Camera permission backend (grants if None)
            frame_source: Producer of raw frame-analysis payloads
            motion_source: Producer of raw motion payloads
            simulator: Demo signal generator (created if None)
            simulation_enabled: Use the simulator when no camera signals arrive
            rule_engine: Fault rule engine
            motion_thresholds: Debouncer thresholds
            tick_interval_ms: Tick period in milliseconds
            error_hold_ms: Undetected time before an active fault clears
            progress_step_range: [low, high) range of progress increments
            clock: Returns the current time in milliseconds
            rng: Random generator for progress steps (and default simulator)
            forced_error: Fault reproduced by the simulator
            forced_error_window: (low, high) progress range, exclusive, in
                which forced_error applies (always applies if None)
        """
        if tick_interval_ms <= 0:
            raise ValueError("tick_interval_ms must be positive")
        low, high = progress_step_range
        if not 0 <= low < high:
            raise ValueError("progress_step_range must satisfy 0 <= low < high")

        self.permission_provider = permission_provider or StaticPermissionProvider(granted=True)
        self.frame_source = frame_source
        self.motion_source = motion_source
        self.simulation_enabled = simulation_enabled
        self.tick_interval_ms = tick_interval_ms
        self.progress_step_range = (low, high)
        self.forced_error: Optional[ErrorCode] = forced_error
        self.forced_error_window: Optional[Tuple[float, float]] = forced_error_window

        self._clock = clock or _wall_clock_ms
        self._rng = rng if rng is not None else np.random.default_rng()
        self.simulator = simulator or SimulationSignalGenerator(rng=self._rng)

        self._tick_graph = ScanTickGraph(
            debouncer=MotionWarningDebouncer(motion_thresholds),
            rule_engine=rule_engine,
            step_provider=self._next_progress_step,
            error_hold_ms=error_hold_ms,
        )

        # Session state (guarded by _lock)
        self._lock = threading.RLock()
        self._state: SessionState = create_initial_state()
        self._signal: Optional[Signal] = None
        self._motion_patch: dict = {}
        self._has_camera_signals: bool = False
        self._last_decision: Optional[TickDecision] = None
        self._permission_status: Optional[PermissionStatus] = None

        # Session resources
        self._subscriptions: List[Subscription] = []
        self._tick_task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self.metrics = DriverMetrics()

        logger.info(
            f"ScanSessionDriver initialized: tick={tick_interval_ms:.0f}ms, "
            f"hold={error_hold_ms:.0f}ms, simulation={simulation_enabled}"
        )

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def signal(self) -> Optional[Signal]:
        return self._signal

    @property
    def permission_status(self) -> Optional[PermissionStatus]:
        return self._permission_status

    @property
    def last_decision(self) -> Optional[TickDecision]:
        return self._last_decision

    @property
    def is_ticking(self) -> bool:
        """Whether a periodic tick task is scheduled."""
        return self._tick_task is not None

    @property
    def uses_camera_signals(self) -> bool:
        """Whether real frame signals drive this session."""
        return self._has_camera_signals

    # =========================================================================
    # Dispatch
    # =========================================================================

    def dispatch(self, event: ScannerEvent) -> SessionState:
        """
        Apply an event through the reducer.

        This is the ONLY place SessionState changes.

        Args:
            event: Reducer event

        Returns:
            The new SessionState
        """
        with self._lock:
            previous = self._state
            current = scanner_reducer(previous, event)
            self._state = current
            self.metrics.events_dispatched += 1
            self._after_transition(previous, current, event)
            return current

    def _after_transition(
        self,
        previous: SessionState,
        current: SessionState,
        event: ScannerEvent,
    ) -> None:
        """Side effects of a state change: logging and resource lifecycle."""
        if event.type == ScannerEventType.START_SCANNING:
            self._begin_session(event.now)
            return

        if event.type in _RESET_EVENTS:
            self._release_session_resources()
            self._clear_signals()
            logger.info(f"Session reset ({event.type.value})")
            return

        if previous.active_error != current.active_error:
            if current.active_error is not None:
                logger.warning(
                    f"Scan fault detected: {current.active_error.code.value} "
                    f"(adjustments={current.adjustments_count})"
                )
            elif current.phase == ScannerPhase.SCANNING:
                logger.info(f"Scan fault resolved: {previous.active_error.code.value}")

        if previous.phase == ScannerPhase.SCANNING and current.phase == ScannerPhase.COMPLETE:
            self.metrics.sessions_completed += 1
            self._release_session_resources()
            elapsed = (current.completed_at or 0) - (current.started_at or 0)
            logger.info(
                f"Scan complete in {elapsed / 1000.0:.1f}s "
                f"(adjustments={current.adjustments_count})"
            )

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def _begin_session(self, now: float) -> None:
        # A restart while SCANNING reuses nothing from the previous session
        self._release_session_resources()
        self._clear_signals()
        self.metrics.sessions_started += 1

        for source in (self.frame_source, self.motion_source):
            if source is None:
                continue
            callback = self.on_camera_frame if source is self.frame_source else self.on_motion
            self._subscriptions.append(source.subscribe(callback))

        self._start_ticking()
        logger.info(f"Scan session started at {now:.0f}")

    def _clear_signals(self) -> None:
        self._signal = None
        self._motion_patch = {}
        self._has_camera_signals = False
        self._last_decision = None
        self._tick_graph.reset()

    def _release_session_resources(self) -> None:
        self._stop_ticking()

        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            if subscription.unsubscribe():
                self.metrics.subscriptions_released += 1

    def _start_ticking(self) -> None:
        loop = _running_loop()
        if loop is None:
            logger.debug("No running event loop, ticks must be driven manually")
            return

        self._loop = loop
        self._tick_task = loop.create_task(self._tick_loop(), name="scan_tick")
        self.metrics.timer_starts += 1

    def _stop_ticking(self) -> bool:
        """Stop the tick task. Returns False if none was scheduled."""
        task = self._tick_task
        if task is None:
            return False

        self._tick_task = None
        self.metrics.timer_stops += 1

        loop = _running_loop()
        if loop is not None and loop is self._loop:
            if task is not asyncio.current_task():
                task.cancel()
        elif self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(task.cancel)

        return True

    async def _tick_loop(self) -> None:
        """Periodic tick, exits as soon as it is no longer the session's task."""
        me = asyncio.current_task()
        interval = self.tick_interval_ms / 1000.0

        try:
            while self._tick_task is me:
                await asyncio.sleep(interval)
                if self._tick_task is not me:
                    break
                try:
                    self.tick()
                except Exception as e:
                    self.metrics.tick_errors += 1
                    logger.error(f"Tick error: {e}")
        except asyncio.CancelledError:
            logger.debug("Tick loop cancelled")

    # =========================================================================
    # Ticking
    # =========================================================================

    def _next_progress_step(self) -> float:
        low, high = self.progress_step_range
        return float(self._rng.uniform(low, high))

    def _active_forced_error(self) -> Optional[ErrorCode]:
        if self.forced_error is None or self.forced_error_window is None:
            return self.forced_error
        low, high = self.forced_error_window
        if low < self._state.progress < high:
            return self.forced_error
        return None

    def _signal_for_tick(self) -> Signal:
        if self._has_camera_signals or not self.simulation_enabled:
            return merge_signals(self._signal, None)

        simulated = self.simulator.generate(
            is_scanning=True,
            progress=self._state.progress,
            forced_error=self._active_forced_error(),
        )
        # Motion sensors stay live in demo mode, their latest readings win
        self._signal = merge_signals(simulated, self._motion_patch)
        return self._signal

    def tick(self, now: Optional[float] = None) -> Optional[TickDecision]:
        """
        Run one tick.

        Called by the periodic task; tests call it directly with injected
        timestamps.

        Args:
            now: Tick timestamp in milliseconds (clock if None)

        Returns:
            The tick decision, or None when not SCANNING
        """
        with self._lock:
            if self._state.phase != ScannerPhase.SCANNING:
                return None

            if now is None:
                now = self._clock()

            signal = self._signal_for_tick()
            decision = self._tick_graph.evaluate(self._state, signal, now)

            for event in decision.events:
                self.dispatch(event)

            self._last_decision = decision
            self.metrics.ticks += 1

            logger.debug(
                f"Tick {self.metrics.ticks}: progress={self._state.progress:.1f}, "
                f"detected={decision.detected.value if decision.detected else None}"
            )
            return decision

    # =========================================================================
    # Signal input
    # =========================================================================

    def on_camera_frame(self, raw_payload: Any) -> bool:
        """
        Accept a raw frame-analysis payload.

        Returns:
            True if merged, False if dropped (not scanning or not a mapping)
        """
        with self._lock:
            if self._state.phase != ScannerPhase.SCANNING or not isinstance(raw_payload, Mapping):
                self.metrics.dropped_payloads += 1
                logger.debug("Dropped frame payload")
                return False

            if not self._has_camera_signals:
                logger.info("Camera frame signals received, simulation disabled for session")
            self._has_camera_signals = True
            self._signal = merge_signals(self._signal, normalize_camera_signals(raw_payload))
            self.metrics.frame_payloads += 1
            return True

    def on_motion(self, raw_payload: Any) -> bool:
        """
        Accept a raw motion payload (partial patch).

        Returns:
            True if merged, False if dropped
        """
        with self._lock:
            if self._state.phase != ScannerPhase.SCANNING or not isinstance(raw_payload, Mapping):
                self.metrics.dropped_payloads += 1
                logger.debug("Dropped motion payload")
                return False

            patch = normalize_motion_patch(raw_payload)
            self._motion_patch.update(patch)
            self._signal = merge_signals(self._signal, patch)
            self.metrics.motion_payloads += 1
            return True

    # =========================================================================
    # User actions
    # =========================================================================

    async def check_permission(self) -> PermissionStatus:
        """Read the camera permission without prompting."""
        self._permission_status = await check_camera_permission(self.permission_provider)
        return self._permission_status

    async def start_scanning(self) -> PermissionStatus:
        """
        Request camera permission and start a session if granted.

        Must be awaited on the event loop that should run the ticks.

        Returns:
            The permission result; scanning started only when GRANTED
        """
        status = await request_camera_permission(self.permission_provider)
        self._permission_status = status

        if status != PermissionStatus.GRANTED:
            logger.warning("Camera permission denied, scanning not started")
            return status

        self.dispatch(ScannerEvent.start(self._clock()))
        return status

    def finish_scanning(self, artifact_ref: Optional[str] = None) -> SessionState:
        """Complete the session immediately (no-op unless SCANNING)."""
        return self.dispatch(ScannerEvent.finish(self._clock(), artifact_ref=artifact_ref))

    def cancel_scanning(self) -> SessionState:
        return self.dispatch(ScannerEvent.cancel(self._clock()))

    def scan_another(self) -> SessionState:
        return self.dispatch(ScannerEvent.scan_another(self._clock()))

    def reset(self) -> SessionState:
        return self.dispatch(ScannerEvent.reset(self._clock()))

    def close(self) -> None:
        """Release the tick task and subscriptions without changing state."""
        with self._lock:
            self._release_session_resources()
        logger.info("ScanSessionDriver closed")

    def get_metrics(self) -> dict:
        """Get driver metrics for observability."""
        state = self._state
        return {
            "phase": state.phase.value,
            "progress": round(state.progress, 2),
            "active_error": state.active_error.code.value if state.active_error else None,
            "adjustments_count": state.adjustments_count,
            "uses_camera_signals": self._has_camera_signals,
            "ticking": self.is_ticking,
            "subscriptions": len(self._subscriptions),
            **self.metrics.to_dict(),
        }

"""
Session Driver Tests
====================

Tests for ScanSessionDriver: ticking, signal input, resources and
permissions.

Most tests drive ticks by hand: a session started outside an event loop
schedules no tick task, so ``driver.tick(now=...)`` controls time exactly.
"""

import asyncio
import threading

import numpy as np
import pytest

from receipt_scanner.models.error_codes import ErrorCode
from receipt_scanner.models.events import ScannerEvent, ScannerEventType
from receipt_scanner.models.state import ScannerPhase, create_initial_state
from receipt_scanner.session import (
    PermissionStatus,
    StaticPermissionProvider,
    check_camera_permission,
    normalize_permission_status,
    request_camera_permission,
)
from receipt_scanner.signals.simulation import ScannerSimulationScenario, SimulationSignalGenerator
from receipt_scanner.sources import CallbackSignalSource


class FailingPermissionProvider:
    """Provider whose platform call blows up."""

    async def check_permission(self):
        raise RuntimeError("camera service unavailable")

    async def request_permission(self):
        raise RuntimeError("camera service unavailable")


def start(driver, now=0.0):
    return driver.dispatch(ScannerEvent.start(now))


class TestConstruction:
    """Tests for constructor validation."""

    def test_invalid_tick_interval(self, driver_factory):
        with pytest.raises(ValueError):
            driver_factory(tick_interval_ms=0)

    def test_invalid_step_range(self, driver_factory):
        with pytest.raises(ValueError):
            driver_factory(progress_step_range=(2.0, 1.0))

    def test_initial_state(self, driver_factory):
        driver = driver_factory()
        assert driver.state == create_initial_state()
        assert driver.signal is None
        assert driver.is_ticking is False


class TestManualTicks:
    """Tests for tick planning with injected timestamps."""

    def test_tick_ignored_when_ready(self, driver_factory):
        driver = driver_factory()
        assert driver.tick(now=160) is None
        assert driver.metrics.ticks == 0

    def test_healthy_tick_advances_progress(self, driver_factory):
        driver = driver_factory(simulation_enabled=False)
        start(driver)

        decision = driver.tick(now=160)

        assert decision.detected is None
        assert [e.type for e in decision.events] == [ScannerEventType.PROGRESS_TICK]
        assert 0.85 <= driver.state.progress < 2.75
        assert driver.last_decision is decision

    def test_progress_steps_follow_rng(self, driver_factory):
        """Steps come from the injected generator."""
        driver = driver_factory(simulation_enabled=False, rng=np.random.default_rng(5))
        start(driver)

        replay = np.random.default_rng(5)
        expected = 0.0
        for i in range(5):
            driver.tick(now=160 * (i + 1))
            expected += replay.uniform(0.85, 2.75)

        assert driver.state.progress == pytest.approx(expected)

    def test_fault_blocks_then_resolves_after_hold(self, driver_factory):
        """A camera fault holds for 2000ms after it stops being detected."""
        frames = CallbackSignalSource(name="frames")
        driver = driver_factory(frame_source=frames)
        start(driver)

        frames.emit({"stability": 0.2})
        driver.tick(now=160)
        assert driver.state.active_error.code == ErrorCode.SHAKY
        assert driver.state.adjustments_count == 1
        assert driver.uses_camera_signals is True

        frames.emit({"stability": 0.9})
        driver.tick(now=320)
        assert driver.state.active_error is not None
        assert driver.state.progress == 0

        driver.tick(now=2159)
        assert driver.state.active_error is not None

        decision = driver.tick(now=2160)
        assert [e.type for e in decision.events] == [ScannerEventType.ERROR_RESOLVED]
        assert driver.state.active_error is None
        assert driver.state.progress == 0

        driver.tick(now=2320)
        assert driver.state.progress > 0

    def test_persistent_fault_counts_once(self, driver_factory):
        frames = CallbackSignalSource(name="frames")
        driver = driver_factory(frame_source=frames)
        start(driver)

        frames.emit({"glare": 0.95})
        for i in range(10):
            driver.tick(now=160 * (i + 1))

        assert driver.state.active_error.code == ErrorCode.GLARE
        assert driver.state.active_error.detected_at == 160
        assert driver.state.adjustments_count == 1

    def test_motion_warning_is_debounced(self, driver_factory):
        """Rotation must persist 400ms before DRIFTING is raised."""
        motion = CallbackSignalSource(name="motion")
        driver = driver_factory(motion_source=motion, simulation_enabled=False)
        start(driver)

        motion.emit({"rotation": 0.4})
        assert driver.tick(now=160).detected is None
        assert driver.tick(now=400).detected is None
        assert driver.tick(now=560).detected == ErrorCode.DRIFTING
        assert driver.state.active_error.code == ErrorCode.DRIFTING

    def test_motion_overrides_simulation(self, driver_factory):
        """Motion readings apply on top of simulated frames."""
        motion = CallbackSignalSource(name="motion")
        driver = driver_factory(motion_source=motion)
        start(driver)

        motion.emit({"verticalSpeed": 2.5})
        driver.tick(now=160)

        assert driver.signal.vertical_speed == 2.5
        assert driver.state.active_error.code == ErrorCode.TOO_FAST

    def test_forced_simulation_fault(self, driver_factory):
        driver = driver_factory()
        start(driver)

        driver.forced_error = ErrorCode.TOO_DARK
        driver.tick(now=160)

        assert driver.state.active_error.code == ErrorCode.TOO_DARK
        assert driver.uses_camera_signals is False

    def test_forced_fault_limited_to_progress_window(self, driver_factory):
        """A windowed fault only fires while progress is strictly inside it."""
        driver = driver_factory(
            forced_error=ErrorCode.TOO_FAST,
            forced_error_window=(25.0, 40.0),
            progress_step_range=(30.0, 30.5),
        )
        start(driver)

        driver.tick(now=160)
        assert driver.state.active_error is None
        assert 30.0 <= driver.state.progress < 30.5

        driver.tick(now=320)
        assert driver.state.active_error.code == ErrorCode.TOO_FAST

    def test_seeded_mock_errors_are_reproducible(self, clock):
        """Two drivers with the same seed see the same faults."""
        from receipt_scanner.session import ScanSessionDriver

        def run_session():
            rng = np.random.default_rng(21)
            driver = ScanSessionDriver(
                simulator=SimulationSignalGenerator(
                    scenario=ScannerSimulationScenario.MOCK_ERRORS,
                    error_probability=0.2,
                    rng=rng,
                ),
                clock=clock,
                rng=rng,
            )
            start(driver)
            seen = []
            for i in range(80):
                decision = driver.tick(now=160 * (i + 1))
                if decision is None:
                    break
                seen.append((decision.detected, round(driver.state.progress, 6)))
            return seen

        assert run_session() == run_session()

    def test_completion_stops_ticks(self, driver_factory):
        driver = driver_factory(simulation_enabled=False, progress_step_range=(60.0, 61.0))
        start(driver)

        driver.tick(now=160)
        driver.tick(now=320)

        assert driver.state.phase == ScannerPhase.COMPLETE
        assert driver.state.completed_at == 320
        assert driver.metrics.sessions_completed == 1
        assert driver.tick(now=480) is None


class TestSignalInput:
    """Tests for raw payload handling."""

    def test_payloads_dropped_when_not_scanning(self, driver_factory):
        driver = driver_factory()
        assert driver.on_camera_frame({"glare": 0.9}) is False
        assert driver.on_motion({"rotation": 1.0}) is False
        assert driver.signal is None
        assert driver.metrics.dropped_payloads == 2

    def test_non_mapping_dropped(self, driver_factory):
        driver = driver_factory()
        start(driver)
        assert driver.on_camera_frame([0.1, 0.2]) is False
        assert driver.on_motion("fast") is False
        assert driver.uses_camera_signals is False
        assert driver.metrics.dropped_payloads == 2

    def test_motion_patch_keeps_frame_fields(self, driver_factory):
        driver = driver_factory()
        start(driver)

        assert driver.on_camera_frame({"brightness": 0.3, "boundsConfidence": 0.8}) is True
        assert driver.on_motion({"verticalSpeed": 0.9}) is True

        assert driver.signal.brightness == 0.3
        assert driver.signal.vertical_speed == 0.9
        assert driver.metrics.frame_payloads == 1
        assert driver.metrics.motion_payloads == 1

    def test_concurrent_input_and_ticks(self, driver_factory):
        """Payloads from another thread interleave safely with ticks."""
        motion = CallbackSignalSource(name="motion")
        driver = driver_factory(
            motion_source=motion,
            simulation_enabled=False,
            progress_step_range=(0.0, 0.1),
        )
        start(driver)

        def produce():
            for i in range(300):
                motion.emit({"dy": i * 0.001})

        producer = threading.Thread(target=produce)
        producer.start()
        for i in range(300):
            driver.tick(now=float(i))
        producer.join()

        assert driver.metrics.motion_payloads == 300
        assert driver.metrics.tick_errors == 0
        assert driver.state.phase == ScannerPhase.SCANNING


class TestResources:
    """Tests for subscription and timer lifecycle."""

    def test_subscriptions_released_once(self, driver_factory):
        frames = CallbackSignalSource(name="frames")
        motion = CallbackSignalSource(name="motion")
        driver = driver_factory(frame_source=frames, motion_source=motion)

        start(driver)
        assert frames.subscriber_count == 1
        assert motion.subscriber_count == 1

        driver.cancel_scanning()
        driver.cancel_scanning()
        driver.reset()

        assert frames.subscriber_count == 0
        assert motion.subscriber_count == 0
        assert driver.metrics.subscriptions_released == 2

    def test_restart_does_not_leak(self, driver_factory):
        frames = CallbackSignalSource(name="frames")
        driver = driver_factory(frame_source=frames)

        start(driver, now=0)
        start(driver, now=100)

        assert frames.subscriber_count == 1
        assert driver.metrics.sessions_started == 2
        assert driver.metrics.subscriptions_released == 1

    def test_cancel_mid_session_clears_everything(self, driver_factory):
        frames = CallbackSignalSource(name="frames")
        driver = driver_factory(frame_source=frames)
        start(driver)
        frames.emit({"glare": 0.95})
        driver.tick(now=160)

        state = driver.cancel_scanning()

        assert state == create_initial_state()
        assert driver.signal is None
        assert driver.uses_camera_signals is False
        assert frames.emit({"glare": 0.95}) == 0

    def test_tick_task_lifecycle(self, driver_factory):
        """The periodic task runs while scanning and stops exactly once."""
        driver = driver_factory(
            simulation_enabled=False,
            tick_interval_ms=5,
            progress_step_range=(40.0, 41.0),
        )

        async def scenario():
            status = await driver.start_scanning()
            assert driver.is_ticking
            for _ in range(200):
                if driver.state.phase == ScannerPhase.COMPLETE:
                    break
                await asyncio.sleep(0.01)
            driver.cancel_scanning()
            await asyncio.sleep(0.02)
            return status

        status = asyncio.run(scenario())

        assert status == PermissionStatus.GRANTED
        assert driver.metrics.ticks == 3
        assert driver.metrics.sessions_completed == 1
        assert driver.metrics.timer_starts == 1
        assert driver.metrics.timer_stops == 1
        assert driver.is_ticking is False

    def test_cancel_stops_pending_task(self, driver_factory):
        driver = driver_factory(tick_interval_ms=1000)

        async def scenario():
            await driver.start_scanning()
            driver.cancel_scanning()
            driver.reset()
            await asyncio.sleep(0)

        asyncio.run(scenario())

        assert driver.metrics.ticks == 0
        assert driver.metrics.timer_starts == 1
        assert driver.metrics.timer_stops == 1
        assert driver.state == create_initial_state()

    def test_close_releases_without_state_change(self, driver_factory):
        frames = CallbackSignalSource(name="frames")
        driver = driver_factory(frame_source=frames)
        start(driver)

        driver.close()

        assert frames.subscriber_count == 0
        assert driver.state.phase == ScannerPhase.SCANNING

    def test_get_metrics(self, driver_factory):
        driver = driver_factory()
        start(driver)
        driver.tick(now=160)

        metrics = driver.get_metrics()
        assert metrics["phase"] == "SCANNING"
        assert metrics["ticks"] == 1
        assert metrics["sessions_started"] == 1
        assert metrics["active_error"] is None


class TestPermissions:
    """Tests for the camera permission boundary."""

    @pytest.mark.parametrize("raw, expected", [
        ("granted", PermissionStatus.GRANTED),
        ("AUTHORIZED", PermissionStatus.GRANTED),
        ("denied", PermissionStatus.DENIED),
        ("undetermined", PermissionStatus.DENIED),
        (None, PermissionStatus.DENIED),
        (PermissionStatus.GRANTED, PermissionStatus.GRANTED),
    ])
    def test_normalize_status(self, raw, expected):
        assert normalize_permission_status(raw) == expected

    def test_provider_failure_is_denied(self):
        provider = FailingPermissionProvider()
        assert asyncio.run(request_camera_permission(provider)) == PermissionStatus.DENIED
        assert asyncio.run(check_camera_permission(provider)) == PermissionStatus.DENIED

    def test_denied_does_not_start(self, driver_factory):
        provider = StaticPermissionProvider(granted=False)
        driver = driver_factory(permission_provider=provider)

        status = asyncio.run(driver.start_scanning())

        assert status == PermissionStatus.DENIED
        assert driver.permission_status == PermissionStatus.DENIED
        assert driver.state.phase == ScannerPhase.READY
        assert driver.metrics.timer_starts == 0
        assert provider.request_count == 1

    def test_failing_provider_does_not_start(self, driver_factory):
        driver = driver_factory(permission_provider=FailingPermissionProvider())
        assert asyncio.run(driver.start_scanning()) == PermissionStatus.DENIED
        assert driver.state.phase == ScannerPhase.READY

    def test_check_permission_does_not_prompt(self, driver_factory):
        provider = StaticPermissionProvider(granted=True)
        driver = driver_factory(permission_provider=provider)

        assert asyncio.run(driver.check_permission()) == PermissionStatus.GRANTED
        assert provider.request_count == 0

"""
Receipt Scanner Main Application
================================

FastAPI entry point for the receipt scanning session engine.

The service hosts one ScanSessionDriver. Frame-analysis payloads arrive
either over a configured WebSocket stream or via POST /signals/frame; motion
payloads via POST /signals/motion. Without camera frames the driver runs the
simulator so the full UI flow can be demonstrated headless.

Endpoints:
    GET  /                     - Service information
    GET  /health               - Liveness probe
    GET  /metrics              - Driver and source metrics
    GET  /session              - Raw session snapshot
    GET  /session/ui           - Render-ready UI model
    GET  /permission           - Camera permission status (no prompt)
    POST /session/start        - Request permission and start scanning
    POST /session/finish       - Complete the session now
    POST /session/cancel       - Abandon the session
    POST /session/scan-another - Start over from READY
    POST /session/reset        - Reset to READY
    POST /session/force-error  - Force or clear a simulated fault
    POST /signals/frame        - Push a raw frame-analysis payload
    POST /signals/motion       - Push a raw motion payload
    WS   /ws/ui                - Real-time UI model stream
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import numpy as np
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from receipt_scanner.config import Settings, settings
from receipt_scanner.agent.debouncer import MotionWarningThresholds
from receipt_scanner.agent.error_rules import ErrorRuleEngine, RuleThresholds
from receipt_scanner.models.error_codes import ErrorCode
from receipt_scanner.observability import project
from receipt_scanner.session import (
    PermissionStatus,
    ScanSessionDriver,
    StaticPermissionProvider,
)
from receipt_scanner.signals.simulation import SimulationSignalGenerator
from receipt_scanner.sources import CallbackSignalSource, WebSocketSignalSource


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

# Shutdown flag
_shutdown_flag: bool = False

_driver: Optional[ScanSessionDriver] = None
_frame_source: Optional[CallbackSignalSource] = None
_motion_source: Optional[CallbackSignalSource] = None
_stream_task: Optional[asyncio.Task] = None
_startup_time: float = 0.0


# =============================================================================
# Getters
# =============================================================================

def get_driver() -> Optional[ScanSessionDriver]:
    return _driver

def get_frame_source() -> Optional[CallbackSignalSource]:
    return _frame_source

def get_motion_source() -> Optional[CallbackSignalSource]:
    return _motion_source


# =============================================================================
# Component Factories
# =============================================================================

def create_frame_source(config: Settings) -> CallbackSignalSource:
    """
    Create the frame-analysis source.

    A WebSocketSignalSource when a stream URL is configured, otherwise an
    in-process source fed only by POST /signals/frame. Both accept pushes.
    """
    url = config.sources.frame_stream_url
    if url:
        logger.info(f"Frame stream URL: {url}")
        return WebSocketSignalSource(
            url=url,
            reconnect_backoff_ms=config.sources.reconnect_backoff_ms,
            max_reconnect_attempts=config.sources.max_reconnect_attempts,
        )

    logger.info("No frame stream configured, frames accepted over HTTP only")
    return CallbackSignalSource(name="frame-http")


def create_driver(
    config: Settings,
    frame_source: Optional[CallbackSignalSource] = None,
    motion_source: Optional[CallbackSignalSource] = None,
) -> ScanSessionDriver:
    """Build a ScanSessionDriver from settings."""
    rng = np.random.default_rng(config.simulation.seed)

    simulator = SimulationSignalGenerator(
        scenario=config.simulation.scenario,
        error_probability=config.simulation.error_probability,
        rng=rng,
    )

    rule_engine = ErrorRuleEngine(RuleThresholds(
        min_bounds_confidence=config.rules.min_bounds_confidence,
        max_vertical_speed=config.rules.max_vertical_speed,
        min_stability=config.rules.min_stability,
        min_brightness=config.rules.min_brightness,
        max_glare=config.rules.max_glare,
    ))

    motion_thresholds = MotionWarningThresholds(
        persistence_ms=config.motion_warnings.persistence_ms,
        too_fast_speed=config.motion_warnings.too_fast_speed,
        drifting_rotation=config.motion_warnings.drifting_rotation,
    )

    return ScanSessionDriver(
        permission_provider=StaticPermissionProvider(
            granted=config.permissions.camera_granted,
        ),
        frame_source=frame_source,
        motion_source=motion_source,
        simulator=simulator,
        simulation_enabled=config.simulation.enabled,
        rule_engine=rule_engine,
        motion_thresholds=motion_thresholds,
        tick_interval_ms=config.session.tick_interval_ms,
        error_hold_ms=config.session.error_hold_ms,
        progress_step_range=(
            config.session.progress_step_min,
            config.session.progress_step_max,
        ),
        rng=rng,
        forced_error=config.simulation.forced_error,
        forced_error_window=config.simulation.forced_error_window,
    )


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _driver, _frame_source, _motion_source, _stream_task
    global _startup_time, _shutdown_flag

    # Startup
    _startup_time = time.time()
    _shutdown_flag = False
    logger.info(f"Starting {settings.service.name} {settings.service.version}")

    port = int(os.environ.get("PORT", settings.server.port))
    logger.info(f"Configured port: {port}")

    _frame_source = create_frame_source(settings)
    _motion_source = CallbackSignalSource(name="motion-http")
    _driver = create_driver(settings, _frame_source, _motion_source)
    status = await _driver.check_permission()
    logger.info(f"Camera permission: {status.value}")

    if isinstance(_frame_source, WebSocketSignalSource):
        _stream_task = asyncio.create_task(
            _frame_source.run(),
            name="frame_stream",
        )

    logger.info("All components started")

    yield

    # Shutdown
    logger.info("Shutting down gracefully...")
    _shutdown_flag = True

    if _driver:
        _driver.close()

    if isinstance(_frame_source, WebSocketSignalSource):
        await _frame_source.stop()

    if _stream_task:
        try:
            await asyncio.wait_for(_stream_task, timeout=5.0)
        except asyncio.TimeoutError:
            _stream_task.cancel()
            try:
                await _stream_task
            except asyncio.CancelledError:
                pass
        _stream_task = None

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="ReceiptScanner",
    description="Guided receipt scanning session engine",
    version=settings.service.version,
    lifespan=lifespan,
)


class FinishRequest(BaseModel):
    """Optional body of POST /session/finish."""

    artifact_ref: Optional[str] = None


class ForceErrorRequest(BaseModel):
    """Body of POST /session/force-error; a null code clears the fault."""

    code: Optional[ErrorCode] = None


def _session_payload(driver: ScanSessionDriver) -> dict:
    return {
        "session": driver.state.model_dump(mode="json"),
        "ui": project(driver.state).model_dump(mode="json"),
    }


def _not_started() -> JSONResponse:
    return JSONResponse(
        {"error": "Session driver not initialized"},
        status_code=503,
    )


async def _read_payload(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "ReceiptScanner",
        "version": settings.service.version,
        "name": settings.service.name,
        "status": "running",
        "simulation": settings.simulation.enabled,
        "scenario": settings.simulation.scenario.value,
        "frame_stream": settings.sources.frame_stream_url is not None,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    driver = get_driver()
    if driver is None:
        return _not_started()

    source_metrics = {}
    frame_source = get_frame_source()
    if isinstance(frame_source, WebSocketSignalSource):
        source_metrics = {
            "stream_connected": frame_source.connected,
            **frame_source.stream_metrics.to_dict(),
        }

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "permission": driver.permission_status.value if driver.permission_status else None,
        "driver": driver.get_metrics(),
        "frame_source": frame_source.metrics() if frame_source else {},
        "motion_source": _motion_source.metrics() if _motion_source else {},
        **source_metrics,
    })


@app.get("/session")
async def session() -> JSONResponse:
    """Raw session snapshot."""
    driver = get_driver()
    if driver is None:
        return _not_started()
    return JSONResponse(driver.state.model_dump(mode="json"))


@app.get("/session/ui")
async def session_ui() -> JSONResponse:
    """Render-ready UI model for the current snapshot."""
    driver = get_driver()
    if driver is None:
        return _not_started()
    return JSONResponse(project(driver.state).model_dump(mode="json"))


@app.get("/permission")
async def permission() -> JSONResponse:
    """Current camera permission, read without prompting."""
    driver = get_driver()
    if driver is None:
        return _not_started()

    status = await driver.check_permission()
    return JSONResponse({"permission": status.value})


@app.post("/session/start")
async def start_session() -> JSONResponse:
    """
    Request camera permission and start scanning.

    Returns 403 when permission is denied. The request is not retried; the
    client must ask again.
    """
    driver = get_driver()
    if driver is None:
        return _not_started()

    status = await driver.start_scanning()
    if status != PermissionStatus.GRANTED:
        return JSONResponse(
            {
                "error": "Camera access is required to scan receipts. "
                         "Enable camera permission and try again.",
                "permission": status.value,
            },
            status_code=403,
        )

    return JSONResponse({"permission": status.value, **_session_payload(driver)})


@app.post("/session/finish")
async def finish_session(body: Optional[FinishRequest] = None) -> JSONResponse:
    """Complete the session immediately (no-op unless scanning)."""
    driver = get_driver()
    if driver is None:
        return _not_started()

    driver.finish_scanning(artifact_ref=body.artifact_ref if body else None)
    return JSONResponse(_session_payload(driver))


@app.post("/session/cancel")
async def cancel_session() -> JSONResponse:
    driver = get_driver()
    if driver is None:
        return _not_started()

    driver.cancel_scanning()
    return JSONResponse(_session_payload(driver))


@app.post("/session/scan-another")
async def scan_another() -> JSONResponse:
    driver = get_driver()
    if driver is None:
        return _not_started()

    driver.scan_another()
    return JSONResponse(_session_payload(driver))


@app.post("/session/reset")
async def reset_session() -> JSONResponse:
    driver = get_driver()
    if driver is None:
        return _not_started()

    driver.reset()
    return JSONResponse(_session_payload(driver))


@app.post("/session/force-error")
async def force_error(body: ForceErrorRequest) -> JSONResponse:
    """
    Force the simulator to reproduce a fault, or clear it.

    Only affects simulated frames; camera-driven sessions are unchanged.
    """
    driver = get_driver()
    if driver is None:
        return _not_started()

    driver.forced_error = body.code
    logger.info(f"Forced error set to {body.code.value if body.code else None}")
    return JSONResponse({
        "forced_error": body.code.value if body.code else None,
        "window": driver.forced_error_window,
    })


@app.post("/signals/frame")
async def push_frame(request: Request) -> JSONResponse:
    """
    Push one raw frame-analysis payload.

    The payload is delivered to the session's subscription; outside an active
    session nobody is subscribed and the payload is ignored.
    """
    source = get_frame_source()
    if source is None:
        return _not_started()

    delivered = source.emit(await _read_payload(request))
    return JSONResponse({"delivered": delivered, "phase": get_driver().state.phase.value})


@app.post("/signals/motion")
async def push_motion(request: Request) -> JSONResponse:
    """Push one raw motion payload (partial: speed, direction, rotation...)."""
    source = get_motion_source()
    if source is None:
        return _not_started()

    delivered = source.emit(await _read_payload(request))
    return JSONResponse({"delivered": delivered, "phase": get_driver().state.phase.value})


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/ui")
async def ui_stream(websocket: WebSocket) -> None:
    """WebSocket endpoint for real-time UI model pushes."""
    await websocket.accept()
    logger.info("Client connected to /ws/ui")

    try:
        while not _shutdown_flag:
            driver = get_driver()
            if driver is not None:
                await websocket.send_json(project(driver.state).model_dump(mode="json"))

            # Client messages are ignored; receiving surfaces disconnects
            try:
                await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=settings.server.ui_push_interval_sec,
                )
            except asyncio.TimeoutError:
                pass

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(f"WebSocket error: {e}")
    finally:
        logger.info("Client disconnected from /ws/ui")


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    # Cloud Run uses PORT env var
    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "receipt_scanner.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )

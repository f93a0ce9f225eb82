"""
Session Module
==============

Runtime layer around the session engine.

This module provides:
    - ScanSessionDriver: Tick scheduling, dispatch serialization, resources
    - DriverMetrics: Driver observability counters
    - PermissionProvider / StaticPermissionProvider: Camera permission boundary

Example:
    from receipt_scanner.session import ScanSessionDriver

    driver = ScanSessionDriver()
    status = await driver.start_scanning()
"""

from receipt_scanner.session.driver import (
    PROGRESS_STEP_RANGE,
    SCAN_TICK_MS,
    DriverMetrics,
    ScanSessionDriver,
)
from receipt_scanner.session.permissions import (
    PermissionProvider,
    PermissionStatus,
    StaticPermissionProvider,
    check_camera_permission,
    normalize_permission_status,
    request_camera_permission,
)


__all__ = [
    "PROGRESS_STEP_RANGE",
    "SCAN_TICK_MS",
    "DriverMetrics",
    "ScanSessionDriver",
    "PermissionProvider",
    "PermissionStatus",
    "StaticPermissionProvider",
    "check_camera_permission",
    "normalize_permission_status",
    "request_camera_permission",
]

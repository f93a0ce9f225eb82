"""
Camera Permissions
==================

Boundary to the platform's camera permission prompt.

A session may enter SCANNING only after an explicit GRANTED result. A denial
is a capability error: it is reported to the user and NOT retried
automatically.
"""

import logging
from enum import Enum
from typing import Any, Protocol


logger = logging.getLogger(__name__)


class PermissionStatus(str, Enum):
    """Normalized permission result."""

    GRANTED = "granted"
    DENIED = "denied"


def normalize_permission_status(status: Any) -> PermissionStatus:
    """
    Map a platform-specific status onto GRANTED/DENIED.

    "granted" and "authorized" (any case) count as granted; everything else,
    including unknown or missing values, counts as denied.
    """
    if isinstance(status, PermissionStatus):
        return status
    if isinstance(status, str) and status.strip().lower() in ("granted", "authorized"):
        return PermissionStatus.GRANTED
    return PermissionStatus.DENIED


class PermissionProvider(Protocol):
    """
    Protocol for camera permission backends.

    Both calls must return a normalized status; implementations may raise,
    callers map failures to DENIED.
    """

    async def check_permission(self) -> PermissionStatus:
        """Read the current status without prompting."""
        ...

    async def request_permission(self) -> PermissionStatus:
        """Prompt the user if needed and return the result."""
        ...


class StaticPermissionProvider:
    """
    Permission provider with a fixed answer.

    Used by the service (answer comes from configuration) and by tests.
    """

    def __init__(self, granted: bool = True) -> None:
        self.granted = granted
        self.request_count = 0

    async def check_permission(self) -> PermissionStatus:
        return PermissionStatus.GRANTED if self.granted else PermissionStatus.DENIED

    async def request_permission(self) -> PermissionStatus:
        self.request_count += 1
        return await self.check_permission()


async def request_camera_permission(provider: PermissionProvider) -> PermissionStatus:
    """
    Request permission, mapping provider failures to DENIED.

    Args:
        provider: Permission backend

    Returns:
        Normalized status
    """
    try:
        status = await provider.request_permission()
    except Exception as e:
        logger.error(f"Camera permission request failed: {e}")
        return PermissionStatus.DENIED
    return normalize_permission_status(status)


async def check_camera_permission(provider: PermissionProvider) -> PermissionStatus:
    """Check permission, mapping provider failures to DENIED."""
    try:
        status = await provider.check_permission()
    except Exception as e:
        logger.error(f"Camera permission check failed: {e}")
        return PermissionStatus.DENIED
    return normalize_permission_status(status)

"""
Sources Module
==============

Raw signal producers the session subscribes to.

This module provides:
    - Subscription: Idempotent release handle
    - SignalSource: Producer protocol
    - CallbackSignalSource: In-process push source
    - WebSocketSignalSource: Frame-analysis payloads over WebSocket

Example:
    from receipt_scanner.sources import CallbackSignalSource

    motion = CallbackSignalSource(name="motion")
    driver = ScanSessionDriver(motion_source=motion)
    motion.emit({"vertical_speed": 0.6})
"""

from receipt_scanner.sources.base import (
    CallbackSignalSource,
    SignalCallback,
    SignalSource,
    Subscription,
)
from receipt_scanner.sources.websocket import SourceMetrics, WebSocketSignalSource


__all__ = [
    "CallbackSignalSource",
    "SignalCallback",
    "SignalSource",
    "Subscription",
    "SourceMetrics",
    "WebSocketSignalSource",
]

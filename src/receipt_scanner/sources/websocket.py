"""
WebSocket Signal Source
=======================

WebSocket client that consumes raw frame-analysis payloads.

This module provides the WebSocketSignalSource class which:
    - Connects to an analyzer's WebSocket endpoint
    - Parses each message as a JSON object
    - Pushes parsed payloads to subscribers (no normalization here)
    - Handles reconnection with fixed backoff, also after normal closes
    - Exposes metrics for health monitoring

Design Rules:
    - Does NOT normalize or interpret payloads
    - Logs parse errors but continues consuming
    - Reconnects automatically on disconnect
"""

import asyncio
import json
import logging
from typing import Any, Optional

import websockets
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedError,
    ConnectionClosedOK,
)

from receipt_scanner.sources.base import CallbackSignalSource


logger = logging.getLogger(__name__)


class SourceMetrics:
    """Metrics for WebSocketSignalSource observability."""

    __slots__ = (
        "messages_received",
        "payloads_emitted",
        "reconnect_count",
        "parse_errors",
    )

    def __init__(self) -> None:
        self.messages_received: int = 0
        self.payloads_emitted: int = 0
        self.reconnect_count: int = 0
        self.parse_errors: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "messages_received": self.messages_received,
            "payloads_emitted": self.payloads_emitted,
            "reconnect_count": self.reconnect_count,
            "parse_errors": self.parse_errors,
        }


class WebSocketSignalSource(CallbackSignalSource):
    """
    WebSocket consumer for raw frame-analysis payloads.

    Attributes:
        url: WebSocket URL to connect to
        connected: Whether currently connected
        stream_metrics: Connection and parse counters

    Example:
        source = WebSocketSignalSource(url="ws://localhost:8765/frames")
        subscription = source.subscribe(driver.on_camera_frame)

        task = asyncio.create_task(source.run())
        ...
        await source.stop()
        await task
    """

    def __init__(
        self,
        url: str,
        reconnect_backoff_ms: int = 500,
        max_reconnect_attempts: int = 0,
        name: str = "frame-stream",
    ) -> None:
        """
        Initialize WebSocket source.

        Args:
            url: WebSocket URL of the frame analyzer
            reconnect_backoff_ms: Backoff between reconnect attempts
            max_reconnect_attempts: Max attempts (0 = unlimited)
            name: Source name used in logs
        """
        super().__init__(name=name)
        self.url = url
        self.reconnect_backoff_ms = reconnect_backoff_ms
        self.max_reconnect_attempts = max_reconnect_attempts

        self._websocket: Optional[Any] = None
        self._connected: bool = False
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()

        self.stream_metrics = SourceMetrics()

    @property
    def connected(self) -> bool:
        """Whether currently connected to the analyzer."""
        return self._connected

    async def run(self) -> None:
        """
        Start consuming payloads.

        Runs until stop() is called, reconnecting on disconnect. Every
        reconnect, including after a normal close, waits for the backoff.
        """
        self._running = True
        self._stop_event.clear()

        logger.info(f"{self.name}: connecting to {self.url}")

        while self._running:
            try:
                await self._connect_and_consume()
            except Exception as e:
                if not self._running:
                    break

                logger.error(f"{self.name}: connection error: {e}")
                self._connected = False

                if (
                    self.max_reconnect_attempts > 0
                    and self.stream_metrics.reconnect_count >= self.max_reconnect_attempts
                ):
                    logger.error(
                        f"{self.name}: max reconnect attempts "
                        f"({self.max_reconnect_attempts}) exceeded"
                    )
                    break
            else:
                if not self._running:
                    break

            self.stream_metrics.reconnect_count += 1
            backoff_sec = self.reconnect_backoff_ms / 1000.0
            logger.info(
                f"{self.name}: reconnecting in {backoff_sec:.1f}s "
                f"(attempt {self.stream_metrics.reconnect_count})"
            )

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=backoff_sec)
                break
            except asyncio.TimeoutError:
                pass

        logger.info(f"{self.name}: stopped")

    async def stop(self) -> None:
        """Stop consuming and close the connection."""
        logger.info(f"{self.name}: stopping...")
        self._running = False
        self._stop_event.set()

        if self._websocket is not None:
            try:
                await self._websocket.close()
            except Exception as e:
                logger.debug(f"{self.name}: close failed: {e}")

        self._connected = False

    async def _connect_and_consume(self) -> None:
        """Connect and consume messages until disconnect."""
        async with websockets.connect(
            self.url,
            ping_interval=20,
            ping_timeout=10,
            close_timeout=5,
        ) as ws:
            self._websocket = ws
            self._connected = True
            logger.info(f"{self.name}: connected to {self.url}")

            try:
                async for message in ws:
                    if not self._running:
                        break

                    self.stream_metrics.messages_received += 1
                    payload = self.parse_message(message)
                    if payload is not None:
                        self.emit(payload)
                        self.stream_metrics.payloads_emitted += 1

            except ConnectionClosedOK:
                logger.info(f"{self.name}: connection closed normally")
            except ConnectionClosedError as e:
                logger.warning(f"{self.name}: connection closed with error: {e}")
                raise
            except ConnectionClosed as e:
                logger.warning(f"{self.name}: connection closed: {e}")
                raise
            finally:
                self._connected = False
                self._websocket = None

    def parse_message(self, raw: Any) -> Optional[dict]:
        """
        Parse one WebSocket message.

        Args:
            raw: Text or bytes message

        Returns:
            Payload dict, or None if the message is not a JSON object
        """
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")

        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            self.stream_metrics.parse_errors += 1
            logger.error(f"{self.name}: failed to parse payload JSON: {e}")
            return None

        if not isinstance(data, dict):
            self.stream_metrics.parse_errors += 1
            logger.error(f"{self.name}: payload is not a JSON object")
            return None

        return data

"""
Signal Merger
=============

Overlays partial signal patches onto the current canonical snapshot.

Two producers feed the same session at different rates:
    - a low-rate motion stream (speed, rotation, displacement)
    - a higher-rate frame analysis (framing, lighting, glare)

Neither supplies every field. Merging in layers lets both converge onto one
snapshot without either wiping out what the other reported:

    merged = DEFAULT_SIGNAL ← previous ← patch

After overlaying, ratio fields are re-clamped to [0, 1], vertical_speed is
floored at 0 and any value of the wrong type falls back to the default.
"""

import logging
import math
from typing import Any, Mapping, Optional, Union

from receipt_scanner.models.signal import (
    DEFAULT_SIGNAL,
    OFFSET_FIELDS,
    RATIO_FIELDS,
    Direction,
    Signal,
)


logger = logging.getLogger(__name__)

SignalPatch = Union[Signal, Mapping[str, Any]]


def as_number(value: Any, fallback: float) -> float:
    """Return value as float if it is a finite real number, else fallback."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return fallback
    if not math.isfinite(value):
        return fallback
    return float(value)


def clamp01(value: float) -> float:
    """Clamp value to [0, 1]."""
    return min(1.0, max(0.0, value))


def as_direction(value: Any, fallback: Direction = Direction.DOWN) -> Direction:
    """Coerce a raw direction value, falling back on unknown input."""
    if isinstance(value, Direction):
        return value
    if isinstance(value, str):
        try:
            return Direction(value.strip().lower())
        except ValueError:
            return fallback
    return fallback


def _as_fields(source: Optional[SignalPatch]) -> dict:
    if source is None:
        return {}
    if isinstance(source, Signal):
        return source.model_dump()
    if isinstance(source, Mapping):
        return {key: value for key, value in source.items() if key in Signal.model_fields}
    logger.debug(f"Ignoring non-mapping signal patch: {type(source).__name__}")
    return {}


def merge_signals(
    previous: Optional[SignalPatch],
    patch: Optional[SignalPatch],
) -> Signal:
    """
    Merge a patch onto the previous snapshot.

    Args:
        previous: Last canonical snapshot (or None at session start)
        patch: Partial or full update using canonical field names

    Returns:
        New canonical Signal with ranges re-applied
    """
    defaults = DEFAULT_SIGNAL.model_dump()
    merged = {**defaults, **_as_fields(previous), **_as_fields(patch)}

    fields = {
        name: clamp01(as_number(merged[name], defaults[name]))
        for name in RATIO_FIELDS
    }
    fields.update({
        name: as_number(merged[name], defaults[name])
        for name in OFFSET_FIELDS
    })
    fields["vertical_speed"] = max(
        0.0, as_number(merged["vertical_speed"], defaults["vertical_speed"])
    )
    fields["direction"] = as_direction(merged["direction"])
    fields["receipt_too_close"] = bool(merged["receipt_too_close"])

    for name in ("receipt_in_frame", "valid_motion"):
        value = merged[name]
        fields[name] = value if isinstance(value, bool) else defaults[name]

    return Signal(**fields)

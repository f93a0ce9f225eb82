"""
Signal Normalizer
=================

Maps loosely-structured raw payloads into a canonical Signal.

Upstream producers (frame analyzers, motion sensors) are best-effort and
untrusted: keys differ between producers, values may be missing, null, or of
the wrong type. The normalizer therefore:

    - Walks a fallback chain per field, the first present (non-null) key wins
    - Substitutes the default when that value is not a finite number
      (later keys in the chain are not consulted)
    - NEVER raises on malformed input

Fallback Chains:
    bounds_confidence: boundsConfidence → rectangleConfidence → document.confidence
    receipt_in_frame:  receiptInFrame (bool) → documentDetected (bool)
                       → bounds_confidence >= 0.55
    direction:         direction → movement.direction
                       (unknown strings become "down", the enum has no
                       slot for them, so they never raise WRONG_DIRECTION)
    vertical_speed:    verticalSpeed → movement.speed → motionSpeed → motion.speed
    stability:         stability → movement.stability → shakeScore
    brightness:        brightness → luma → lightLevel
    glare:             glare → highlightIntensity → reflection
    dx / dy / rotation: top-level → motion.<name>
    valid_motion:      validMotion (bool) → motion.validMotion (bool)

Every camelCase key is also accepted in snake_case.
"""

import logging
import re
from typing import Any, Mapping, Optional, Sequence, Tuple

from receipt_scanner.models.signal import DEFAULT_SIGNAL, Direction, Signal
from receipt_scanner.signals.merger import as_direction, as_number, merge_signals


logger = logging.getLogger(__name__)

# Bounds confidence at or above which the receipt counts as in frame
IN_FRAME_CONFIDENCE = 0.55

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

Path = Tuple[str, ...]


def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _lookup(raw: Mapping[str, Any], path: Path) -> Any:
    """Resolve a dotted path, trying the snake_case spelling of each key."""
    node: Any = raw
    for key in path:
        if not isinstance(node, Mapping):
            return None
        value = node.get(key)
        if value is None:
            value = node.get(_snake(key))
        node = value
    return node


def _first_number(raw: Mapping[str, Any], paths: Sequence[Path], fallback: float) -> float:
    """First present candidate decides; an unusable one yields the fallback."""
    for path in paths:
        value = _lookup(raw, path)
        if value is not None:
            return as_number(value, fallback)
    return fallback


def _first_bool(raw: Mapping[str, Any], paths: Sequence[Path]) -> Optional[bool]:
    for path in paths:
        value = _lookup(raw, path)
        if isinstance(value, bool):
            return value
    return None


def normalize_camera_signals(raw_payload: Any = None) -> Signal:
    """
    Normalize a raw frame-analysis or motion payload.

    Args:
        raw_payload: Arbitrary producer output, usually a dict

    Returns:
        Canonical Signal; defaults fill anything missing
    """
    if not isinstance(raw_payload, Mapping):
        if raw_payload is not None:
            logger.debug(
                f"Raw payload is not a mapping ({type(raw_payload).__name__}), using defaults"
            )
        raw_payload = {}

    d = DEFAULT_SIGNAL

    bounds_confidence = _first_number(
        raw_payload,
        [("boundsConfidence",), ("rectangleConfidence",), ("document", "confidence")],
        d.bounds_confidence,
    )

    receipt_in_frame = _first_bool(
        raw_payload, [("receiptInFrame",), ("documentDetected",)]
    )
    if receipt_in_frame is None:
        receipt_in_frame = bounds_confidence >= IN_FRAME_CONFIDENCE

    direction_raw = _lookup(raw_payload, ("direction",))
    if direction_raw is None:
        direction_raw = _lookup(raw_payload, ("movement", "direction"))
    direction = as_direction(direction_raw, Direction.DOWN)

    valid_motion = _first_bool(
        raw_payload, [("validMotion",), ("motion", "validMotion")]
    )

    patch = {
        "receipt_in_frame": receipt_in_frame,
        "direction": direction,
        "vertical_speed": _first_number(
            raw_payload,
            [("verticalSpeed",), ("movement", "speed"), ("motionSpeed",), ("motion", "speed")],
            d.vertical_speed,
        ),
        "stability": _first_number(
            raw_payload,
            [("stability",), ("movement", "stability"), ("shakeScore",)],
            d.stability,
        ),
        "brightness": _first_number(
            raw_payload,
            [("brightness",), ("luma",), ("lightLevel",)],
            d.brightness,
        ),
        "glare": _first_number(
            raw_payload,
            [("glare",), ("highlightIntensity",), ("reflection",)],
            d.glare,
        ),
        "bounds_confidence": bounds_confidence,
        "dx": _first_number(raw_payload, [("dx",), ("motion", "dx")], 0.0),
        "dy": _first_number(raw_payload, [("dy",), ("motion", "dy")], 0.0),
        "rotation": _first_number(raw_payload, [("rotation",), ("motion", "rotation")], 0.0),
        "valid_motion": True if valid_motion is None else valid_motion,
        "receipt_too_close": bool(_lookup(raw_payload, ("receiptTooClose",))),
    }

    return merge_signals(DEFAULT_SIGNAL, patch)


# Fields a motion producer may report; everything else is left to frame analysis
MOTION_FIELDS = (
    "vertical_speed",
    "stability",
    "direction",
    "dx",
    "dy",
    "rotation",
    "valid_motion",
    "receipt_too_close",
)

_MOTION_ALIASES = {
    "verticalSpeed": "vertical_speed",
    "validMotion": "valid_motion",
    "receiptTooClose": "receipt_too_close",
}


def normalize_motion_patch(raw_payload: Any) -> dict:
    """
    Extract a partial patch from a motion-stream payload.

    Only the motion fields actually present are returned, so merging the
    patch never resets framing or lighting fields reported by frame analysis.
    Values are coerced later by merge_signals.

    Args:
        raw_payload: Motion producer output

    Returns:
        Dict keyed by canonical field names (possibly empty)
    """
    if not isinstance(raw_payload, Mapping):
        return {}

    patch = {}
    for key, value in raw_payload.items():
        name = _MOTION_ALIASES.get(key, key)
        if name in MOTION_FIELDS and value is not None:
            patch[name] = value
    return patch

"""
Signal Model
============

Canonical per-tick snapshot of scan-quality indicators.

Every raw payload (camera frame analysis, motion stream, simulator output)
is converted into this one shape before any rule looks at it. Downstream
components reason over Signal, NEVER over raw payloads.

Ranges:
    - stability, brightness, glare, bounds_confidence: clamped to [0, 1]
    - vertical_speed: floored at 0 (no upper bound)
    - dx, dy, rotation: unbounded

Example:
    from receipt_scanner.models.signal import DEFAULT_SIGNAL, Direction

    signal = DEFAULT_SIGNAL.model_copy(update={"direction": Direction.UP})
"""

from enum import Enum

from pydantic import BaseModel, Field


class Direction(str, Enum):
    """
    Movement direction of the camera relative to the receipt.

    Scanning is only valid while moving DOWN along the receipt.
    """

    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


class Signal(BaseModel):
    """
    Canonical scan-quality snapshot.

    Attributes:
        receipt_in_frame: Whether the receipt is visible inside the frame
        direction: Current movement direction
        vertical_speed: Movement speed along the receipt (>= 0)
        stability: Hand steadiness (1.0 = perfectly steady)
        brightness: Scene luminance
        glare: Specular highlight intensity
        bounds_confidence: Confidence that receipt edges were found
        dx: Horizontal displacement since last sample
        dy: Vertical displacement since last sample
        rotation: Rotation since last sample (radians)
        receipt_too_close: Receipt fills more than the frame allows
        valid_motion: Whether the motion estimate is trustworthy
    """

    receipt_in_frame: bool = Field(default=True, description="Receipt visible in frame")
    direction: Direction = Field(default=Direction.DOWN, description="Movement direction")
    vertical_speed: float = Field(default=0.55, ge=0.0, description="Speed along receipt")
    stability: float = Field(default=0.94, ge=0.0, le=1.0, description="Hand steadiness")
    brightness: float = Field(default=0.68, ge=0.0, le=1.0, description="Scene luminance")
    glare: float = Field(default=0.05, ge=0.0, le=1.0, description="Highlight intensity")
    bounds_confidence: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Confidence that receipt edges were detected",
    )
    dx: float = Field(default=0.0, description="Horizontal displacement")
    dy: float = Field(default=0.0, description="Vertical displacement")
    rotation: float = Field(default=0.0, description="Rotation in radians")
    receipt_too_close: bool = Field(default=False, description="Receipt too close to lens")
    valid_motion: bool = Field(default=True, description="Motion estimate is trustworthy")

    class Config:
        """Pydantic model configuration."""

        frozen = True


# Ratio fields that the merger re-clamps to [0, 1]
RATIO_FIELDS = ("stability", "brightness", "glare", "bounds_confidence")

# Unbounded numeric fields
OFFSET_FIELDS = ("dx", "dy", "rotation")

DEFAULT_SIGNAL = Signal()

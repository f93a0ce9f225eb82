"""
Error Codes
===========

Fixed set of machine-readable scan-quality fault codes.

Each tick surfaces at most ONE code. Codes are recoverable: they are shown
as a banner and cleared automatically once the signal recovers.

Sources:
    - Rule engine: WRONG_DIRECTION, TOO_FAST, SHAKY, OUT_OF_FRAME,
      TOO_DARK, GLARE
    - Motion debouncer: TOO_FAST, DRIFTING, TOO_CLOSE
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Scan-quality fault codes.

    Attributes:
        WRONG_DIRECTION: Camera is not moving down the receipt
        TOO_FAST: Camera moves faster than capture allows
        SHAKY: Hands are not steady enough
        OUT_OF_FRAME: Receipt edges left the frame
        TOO_DARK: Not enough light
        GLARE: Reflections wash out the receipt
        DRIFTING: Camera is rotating away from the receipt axis
        TOO_CLOSE: Receipt is too close to the lens
    """

    WRONG_DIRECTION = "WRONG_DIRECTION"
    TOO_FAST = "TOO_FAST"
    SHAKY = "SHAKY"
    OUT_OF_FRAME = "OUT_OF_FRAME"
    TOO_DARK = "TOO_DARK"
    GLARE = "GLARE"
    DRIFTING = "DRIFTING"
    TOO_CLOSE = "TOO_CLOSE"

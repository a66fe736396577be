"""Detection schemas shared by the perception pipeline.

Bounding boxes are in source-frame pixels and represented as
``(x, y, width, height)`` with ``(x, y)`` the top-left corner. Nothing here
carries identity across frames; every cycle produces fresh objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Position(str, Enum):
    """Horizontal bucket of an object relative to the frame thirds."""

    LEFT = "left"
    FRONT = "front"
    RIGHT = "right"


@dataclass(frozen=True)
class Detection:
    """Single object detection result."""

    label: str
    confidence: float
    bbox: tuple[float, float, float, float]
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def width(self) -> float:
        return float(self.bbox[2])

    @property
    def center_x(self) -> float:
        return float(self.bbox[0]) + float(self.bbox[2]) / 2.0


@dataclass(frozen=True)
class Frame:
    """One camera frame with its pixel dimensions."""

    image: Any
    width: int
    height: int
    frame_id: int = 0
    timestamp_ms: int = 0


@dataclass(frozen=True)
class ScoredObject:
    """Detection annotated with estimated distance and screen position."""

    detection: Detection
    distance_m: float
    position: Position

    @property
    def label(self) -> str:
        return self.detection.label

    @property
    def confidence(self) -> float:
        return self.detection.confidence


def position_for(detection: Detection, frame_width: float) -> Position:
    """Bucket a detection into left/front/right thirds of the frame."""

    if frame_width <= 0:
        return Position.FRONT
    center = detection.center_x
    if center < frame_width / 3.0:
        return Position.LEFT
    if center > 2.0 * frame_width / 3.0:
        return Position.RIGHT
    return Position.FRONT

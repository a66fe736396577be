"""Bounding-box overlay renderers."""

from __future__ import annotations

import importlib
import importlib.util
from typing import Any, Protocol, Sequence

from core.logging import logger
from vision.detections import Frame, ScoredObject
from vision.distance import FAR_DISTANCE_M


class Overlay(Protocol):
    def render(self, frame: Frame, objects: Sequence[ScoredObject]) -> None:
        """Draw boxes for this cycle's objects."""

    def clear(self) -> None:
        """Remove anything drawn."""


class NullOverlay:
    """Overlay that draws nothing; used when no display is attached."""

    def __init__(self) -> None:
        self.clear_count = 0

    def render(self, frame: Frame, objects: Sequence[ScoredObject]) -> None:
        return None

    def clear(self) -> None:
        self.clear_count += 1


def box_caption(obj: ScoredObject) -> str:
    if obj.distance_m < FAR_DISTANCE_M:
        return f"{obj.label} {obj.distance_m:.1f}m"
    return obj.label


class OpenCVOverlay:
    """Shows the camera frame with labelled boxes in an OpenCV window."""

    def __init__(self, window_name: str = "Blind Assist") -> None:
        if importlib.util.find_spec("cv2") is None:
            raise RuntimeError("opencv-python is required for OpenCVOverlay")
        self._cv2 = importlib.import_module("cv2")
        self.window_name = window_name
        self._visible = False

    def render(self, frame: Frame, objects: Sequence[ScoredObject]) -> None:
        cv2 = self._cv2
        canvas: Any = frame.image.copy()
        for obj in objects:
            x, y, w, h = (int(value) for value in obj.detection.bbox)
            cv2.rectangle(canvas, (x, y), (x + w, y + h), (144, 255, 0), 2)
            cv2.putText(
                canvas,
                box_caption(obj),
                (x + 4, max(16, y - 6)),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.5,
                (255, 255, 255),
                1,
                cv2.LINE_AA,
            )
        cv2.imshow(self.window_name, canvas)
        cv2.waitKey(1)
        self._visible = True

    def clear(self) -> None:
        if not self._visible:
            return
        try:
            self._cv2.destroyWindow(self.window_name)
            self._cv2.waitKey(1)
        except Exception:
            logger.debug("[OVERLAY] Window already closed", exc_info=True)
        self._visible = False

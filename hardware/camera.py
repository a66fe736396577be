"""OpenCV camera source for the detection loop."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import importlib
import importlib.util
import threading
import time
from typing import Any, Callable, Mapping, Protocol

from core.logging import logger
from vision.detections import Frame


class CameraUnavailableError(RuntimeError):
    """Raised when the camera cannot be opened (missing, busy or denied)."""


class FrameReadError(RuntimeError):
    """Raised when a single frame grab fails."""


class FrameSource(Protocol):
    """Live stream of frames with known dimensions."""

    width: int
    height: int

    async def read(self) -> Frame:
        """Return the next frame."""

    def stop(self) -> None:
        """Release the underlying device."""


class Camera(Protocol):
    async def start(self) -> FrameSource:
        """Acquire the device and return its frame source."""


def _require_cv2() -> Any:
    if importlib.util.find_spec("cv2") is None:
        raise CameraUnavailableError("opencv-python is required for OpenCVCamera")
    return importlib.import_module("cv2")


@dataclass(frozen=True)
class CameraConfig:
    """Capture device settings."""

    device_index: int = 0
    width: int = 640
    height: int = 480
    overlay_enabled: bool = False

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "CameraConfig":
        camera_cfg = config.get("camera") if isinstance(config, Mapping) else None
        if not isinstance(camera_cfg, Mapping):
            return cls()
        return cls(
            device_index=int(camera_cfg.get("device_index", 0)),
            width=int(camera_cfg.get("width", 640)),
            height=int(camera_cfg.get("height", 480)),
            overlay_enabled=bool(camera_cfg.get("overlay_enabled", False)),
        )


class OpenCVFrameSource:
    """Frame source wrapping an opened ``cv2.VideoCapture``."""

    def __init__(self, capture: Any, width: int, height: int) -> None:
        self._capture = capture
        self.width = int(width)
        self.height = int(height)
        self._frame_id = 0

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    async def read(self) -> Frame:
        capture = self._capture
        if capture is None:
            raise FrameReadError("Camera stream already stopped")
        ok, image = await asyncio.to_thread(capture.read)
        if not ok or image is None:
            raise FrameReadError("Camera returned no frame")
        self._frame_id += 1
        height, width = image.shape[:2]
        return Frame(
            image=image,
            width=int(width),
            height=int(height),
            frame_id=self._frame_id,
            timestamp_ms=int(time.monotonic() * 1000),
        )

    def stop(self) -> None:
        capture, self._capture = self._capture, None
        if capture is None:
            return
        try:
            capture.release()
        finally:
            logger.info("[CAMERA] Released after %s frames", self._frame_id)


class _PendingOpen:
    """Hands an opened capture to exactly one owner: the caller or the release path.

    The worker thread cannot be interrupted, so a start cancelled mid-open
    marks the open abandoned and whichever side finishes last releases it.
    """

    def __init__(self, open_capture: Callable[[], Any]) -> None:
        self._open_capture = open_capture
        self._lock = threading.Lock()
        self._abandoned = False
        self._capture: Any = None

    def run(self) -> Any:
        capture = self._open_capture()
        with self._lock:
            if not self._abandoned:
                self._capture = capture
                return capture
        capture.release()
        logger.info("[CAMERA] Released capture opened after start was cancelled")
        return None

    def abandon(self) -> None:
        with self._lock:
            self._abandoned = True
            capture, self._capture = self._capture, None
        if capture is not None:
            capture.release()
            logger.info("[CAMERA] Released capture opened after start was cancelled")


class OpenCVCamera:
    """Camera that opens a local capture device on demand."""

    def __init__(self, config: CameraConfig | None = None) -> None:
        self.config = config or CameraConfig()

    async def start(self) -> OpenCVFrameSource:
        cv2 = _require_cv2()
        pending = _PendingOpen(lambda: self._open(cv2))
        try:
            capture = await asyncio.to_thread(pending.run)
        except asyncio.CancelledError:
            pending.abandon()
            raise
        width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH) or self.config.width)
        height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT) or self.config.height)
        logger.info("[CAMERA] Opened device %s at %sx%s", self.config.device_index, width, height)
        return OpenCVFrameSource(capture, width, height)

    def _open(self, cv2: Any) -> Any:
        capture = cv2.VideoCapture(self.config.device_index)
        if not capture.isOpened():
            capture.release()
            raise CameraUnavailableError(
                f"Cannot open camera index {self.config.device_index} (missing or permission denied)"
            )
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
        # Keep only the newest frame so detections never run on stale images.
        capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        return capture

"""Hardware adapters: camera, detector and overlay."""

from hardware.camera import (
    CameraConfig,
    CameraUnavailableError,
    FrameReadError,
    OpenCVCamera,
    OpenCVFrameSource,
)
from hardware.detector import DetectorUnavailableError, YoloDetector
from hardware.overlay import NullOverlay, OpenCVOverlay

__all__ = [
    "CameraConfig",
    "CameraUnavailableError",
    "DetectorUnavailableError",
    "FrameReadError",
    "NullOverlay",
    "OpenCVCamera",
    "OpenCVFrameSource",
    "OpenCVOverlay",
    "YoloDetector",
]

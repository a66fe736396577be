"""Ultralytics YOLO detector adapter."""

from __future__ import annotations

import asyncio
import importlib
import importlib.util
import math
import threading
from typing import Any, Protocol

from core.logging import logger
from vision.detections import Detection, Frame


class DetectorUnavailableError(RuntimeError):
    """Raised when the detection library or model weights cannot be loaded."""


class Detector(Protocol):
    async def load(self) -> None:
        """Load model weights; repeated calls are cheap."""

    async def detect(self, frame: Frame) -> list[Detection]:
        """Return detections for one frame; may raise."""


def _to_finite_float(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


class YoloDetector:
    """Runs a YOLO model off the event loop and returns pixel-space boxes."""

    def __init__(self, model_path: str = "yolov8n.pt", min_confidence: float = 0.0) -> None:
        self.model_path = model_path
        self.min_confidence = float(min_confidence)
        self._model: Any = None
        self._names: dict[int, str] = {}
        self._load_lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._model is not None

    async def load(self) -> None:
        if self._model is not None:
            return
        logger.info("[DETECTOR] Model: loading %s", self.model_path)
        await asyncio.to_thread(self._load_blocking)
        logger.info("[DETECTOR] Model: ready (%s classes)", len(self._names))

    def _load_blocking(self) -> None:
        with self._load_lock:
            if self._model is not None:
                return
            if importlib.util.find_spec("ultralytics") is None:
                raise DetectorUnavailableError("ultralytics is required for YoloDetector")
            ultralytics = importlib.import_module("ultralytics")
            try:
                model = ultralytics.YOLO(self.model_path)
            except Exception as exc:
                raise DetectorUnavailableError(
                    f"Failed to load detection model {self.model_path}: {exc}"
                ) from exc
            names = getattr(model, "names", {}) or {}
            if isinstance(names, list):
                names = dict(enumerate(names))
            self._names = {int(key): str(value) for key, value in names.items()}
            self._model = model

    async def detect(self, frame: Frame) -> list[Detection]:
        if self._model is None:
            await self.load()
        results = await asyncio.to_thread(self._predict, frame.image)
        return self._convert_results(results)

    def _predict(self, image: Any) -> Any:
        return self._model.predict(image, conf=self.min_confidence, verbose=False)

    def _convert_results(self, results: Any) -> list[Detection]:
        detections: list[Detection] = []
        for result in results or []:
            boxes = getattr(result, "boxes", None)
            if boxes is None:
                continue
            xyxy = boxes.xyxy.tolist()
            confidences = boxes.conf.tolist()
            class_ids = boxes.cls.tolist()
            for coords, confidence, class_id in zip(xyxy, confidences, class_ids):
                detection = self._convert_single(coords, confidence, class_id)
                if detection is not None:
                    detections.append(detection)
        return detections

    def _convert_single(self, coords: list[float], confidence: Any, class_id: Any) -> Detection | None:
        values = [_to_finite_float(value) for value in coords]
        score = _to_finite_float(confidence)
        if score is None or any(value is None for value in values) or len(values) != 4:
            return None
        x1, y1, x2, y2 = values
        label = self._names.get(int(class_id), str(int(class_id)))
        return Detection(
            label=label,
            confidence=score,
            bbox=(x1, y1, max(0.0, x2 - x1), max(0.0, y2 - y1)),
        )

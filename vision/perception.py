"""Perception filter: confidence/class gating and distance ordering."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from vision.classes import ClassTable
from vision.detections import Detection, ScoredObject, position_for
from vision.distance import CalibrationModel, DistanceEstimator


DEFAULT_MODEL_THRESHOLD = 0.3


class PerceptionFilter:
    """Turn one cycle's raw detections into nearest-first scored objects."""

    def __init__(
        self,
        estimator: DistanceEstimator | None = None,
        class_table: ClassTable | None = None,
        threshold: float = DEFAULT_MODEL_THRESHOLD,
    ) -> None:
        self.estimator = estimator or DistanceEstimator()
        self.class_table = class_table or ClassTable.default()
        self.threshold = float(threshold)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "PerceptionFilter":
        detection_cfg = config.get("detection") or {}
        return cls(
            estimator=DistanceEstimator(CalibrationModel.from_config(config)),
            class_table=ClassTable.from_config(config),
            threshold=float(detection_cfg.get("model_threshold", DEFAULT_MODEL_THRESHOLD)),
        )

    def accepts(self, detection: Detection) -> bool:
        if float(detection.confidence) < self.threshold:
            return False
        return self.class_table.is_important(detection.label)

    def filter(
        self,
        detections: Iterable[Detection | ScoredObject],
        frame_width: float,
    ) -> list[ScoredObject]:
        """Return accepted detections sorted by ascending distance.

        Already scored objects are unwrapped and scored again, so feeding the
        output back in yields the same list.
        """

        scored: list[ScoredObject] = []
        for item in detections:
            detection = item.detection if isinstance(item, ScoredObject) else item
            if not self.accepts(detection):
                continue
            scored.append(
                ScoredObject(
                    detection=detection,
                    distance_m=self.estimator.estimate(detection.width),
                    position=position_for(detection, frame_width),
                )
            )
        scored.sort(key=lambda obj: obj.distance_m)
        return scored

"""Vision package exports."""

from vision.arbitration import AlarmState, AlertArbitrator, AlertConfig, ArbitrationDecision
from vision.classes import ClassPolicy, ClassTable
from vision.detections import Detection, Frame, Position, ScoredObject
from vision.distance import FAR_DISTANCE_M, CalibrationModel, DistanceEstimator
from vision.perception import PerceptionFilter

__all__ = [
    "AlarmState",
    "AlertArbitrator",
    "AlertConfig",
    "ArbitrationDecision",
    "CalibrationModel",
    "ClassPolicy",
    "ClassTable",
    "Detection",
    "DistanceEstimator",
    "FAR_DISTANCE_M",
    "Frame",
    "PerceptionFilter",
    "Position",
    "ScoredObject",
]

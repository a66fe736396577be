"""Pinhole-style distance estimation from bounding-box width."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Any, Mapping


FAR_DISTANCE_M = 999.0


@dataclass(frozen=True)
class CalibrationModel:
    """Reference measurement relating pixel width to real-world distance.

    An object ``reference_real_width_m`` wide that appears
    ``reference_width_px`` wide in the frame is ``reference_dist_m`` away.
    """

    reference_width_px: float = 160.0
    reference_real_width_m: float = 0.45
    reference_dist_m: float = 1.0

    def __post_init__(self) -> None:
        for name in ("reference_width_px", "reference_real_width_m", "reference_dist_m"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not value > 0:
                raise ValueError(f"Calibration value {name} must be positive, got {value!r}")

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "CalibrationModel":
        section = config.get("calibration") if isinstance(config, Mapping) else None
        if not isinstance(section, Mapping):
            return cls()
        defaults = cls()
        return cls(
            reference_width_px=float(section.get("reference_width_px", defaults.reference_width_px)),
            reference_real_width_m=float(
                section.get("reference_real_width_m", defaults.reference_real_width_m)
            ),
            reference_dist_m=float(section.get("reference_dist_m", defaults.reference_dist_m)),
        )


class DistanceEstimator:
    """Convert bounding-box widths into metres using a calibration model."""

    def __init__(self, calibration: CalibrationModel | None = None) -> None:
        self.calibration = calibration or CalibrationModel()

    def estimate(self, box_width_px: float | None) -> float:
        """Return the estimated distance, or ``FAR_DISTANCE_M`` for unusable widths."""

        try:
            width = float(box_width_px)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return FAR_DISTANCE_M
        if math.isnan(width) or width <= 0:
            return FAR_DISTANCE_M

        cal = self.calibration
        return (cal.reference_width_px / width) * cal.reference_real_width_m * cal.reference_dist_m

"""Alert arbitration over one cycle of scored objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from vision.classes import ClassTable
from vision.detections import ScoredObject
from vision.distance import FAR_DISTANCE_M


class AlarmState(str, Enum):
    """Proximity alarm level, recomputed every cycle."""

    SAFE = "safe"
    ALERT = "alert"


@dataclass(frozen=True)
class AlertConfig:
    """Distances and limits used by the arbitrator."""

    announce_distance_m: float = 3.5
    critical_distance_m: float = 2.0
    max_announcements: int = 2
    fallback_distance_m: float = 1.5

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "AlertConfig":
        alerts_cfg = config.get("alerts") if isinstance(config, Mapping) else None
        if not isinstance(alerts_cfg, Mapping):
            return cls()
        return cls(
            announce_distance_m=float(alerts_cfg.get("announce_distance_m", 3.5)),
            critical_distance_m=float(alerts_cfg.get("critical_distance_m", 2.0)),
            max_announcements=max(0, int(alerts_cfg.get("max_announcements", 2))),
            fallback_distance_m=float(alerts_cfg.get("fallback_distance_m", 1.5)),
        )


@dataclass(frozen=True)
class ArbitrationDecision:
    """What the feedback channels should render for one cycle."""

    announcements: list[str] = field(default_factory=list)
    alarm: AlarmState = AlarmState.SAFE
    nearest_distance_m: float = FAR_DISTANCE_M
    nearest_hazard_distance_m: float | None = None
    object_count: int = 0

    @property
    def utterance(self) -> str:
        return ", ".join(self.announcements)


def format_announcement(obj: ScoredObject) -> str:
    return f"{obj.label} {obj.position.value} at {obj.distance_m:.1f} meters"


def resolve_nearest_distance(
    objects: Sequence[ScoredObject],
    alarm: AlarmState,
    fallback_distance_m: float = 1.5,
) -> float:
    """Return the modulation distance for a cycle.

    An ALERT always has at least one hazard object behind it, so the fallback
    only applies if an alarm is raised for an empty cycle.
    """

    if objects:
        return min(obj.distance_m for obj in objects)
    if alarm is AlarmState.ALERT:
        return fallback_distance_m
    return FAR_DISTANCE_M


class AlertArbitrator:
    """Choose announcements and the alarm level for a set of scored objects."""

    def __init__(
        self,
        class_table: ClassTable | None = None,
        config: AlertConfig | None = None,
    ) -> None:
        self.class_table = class_table or ClassTable.default()
        self.config = config or AlertConfig()

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "AlertArbitrator":
        return cls(class_table=ClassTable.from_config(config), config=AlertConfig.from_config(config))

    def arbitrate(self, objects: Sequence[ScoredObject]) -> ArbitrationDecision:
        ordered = sorted(objects, key=lambda obj: obj.distance_m)

        eligible = [obj for obj in ordered if obj.distance_m <= self.config.announce_distance_m]
        announcements = [format_announcement(obj) for obj in eligible[: self.config.max_announcements]]

        hazards = [obj for obj in ordered if self.class_table.is_hazard(obj.label)]
        critical = any(obj.distance_m <= self.config.critical_distance_m for obj in hazards)
        alarm = AlarmState.ALERT if critical else AlarmState.SAFE

        return ArbitrationDecision(
            announcements=announcements,
            alarm=alarm,
            nearest_distance_m=resolve_nearest_distance(
                ordered, alarm, self.config.fallback_distance_m
            ),
            nearest_hazard_distance_m=hazards[0].distance_m if hazards else None,
            object_count=len(ordered),
        )

"""Declarative class table for announcement and hazard membership."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping


@dataclass(frozen=True)
class ClassPolicy:
    """How one detector label is treated downstream."""

    important: bool = True
    hazard: bool = False


_HAZARD_LABELS = ("person", "car", "bus", "truck", "bicycle", "motorcycle")

_LANDMARK_LABELS = (
    "dog",
    "cat",
    "chair",
    "bench",
    "bottle",
    "cup",
    "door",
    "stairs",
    "handbag",
    "backpack",
    "traffic light",
    "stop sign",
    "fire hydrant",
    "potted plant",
    "tv",
    "keyboard",
    "cell phone",
)


class ClassTable:
    """Case-insensitive lookup from label to :class:`ClassPolicy`.

    Labels that are not in the table are neither important nor hazards. A
    hazard is always treated as important, otherwise it could raise an alarm
    without ever being announced.
    """

    def __init__(self, policies: Mapping[str, ClassPolicy]) -> None:
        self._policies: dict[str, ClassPolicy] = {}
        for label, policy in policies.items():
            if policy.hazard and not policy.important:
                policy = ClassPolicy(important=True, hazard=True)
            self._policies[label.strip().lower()] = policy

    @classmethod
    def default(cls) -> "ClassTable":
        policies = {label: ClassPolicy(important=True, hazard=True) for label in _HAZARD_LABELS}
        policies.update({label: ClassPolicy(important=True) for label in _LANDMARK_LABELS})
        return cls(policies)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ClassTable":
        section = config.get("classes") if isinstance(config, Mapping) else None
        if not isinstance(section, Mapping) or not section:
            return cls.default()

        policies: dict[str, ClassPolicy] = {}
        for label, entry in section.items():
            if isinstance(entry, Mapping):
                policies[str(label)] = ClassPolicy(
                    important=bool(entry.get("important", True)),
                    hazard=bool(entry.get("hazard", False)),
                )
            elif isinstance(entry, bool):
                policies[str(label)] = ClassPolicy(important=entry)
        return cls(policies)

    def policy(self, label: str) -> ClassPolicy | None:
        return self._policies.get(label.strip().lower())

    def is_important(self, label: str) -> bool:
        policy = self.policy(label)
        return policy is not None and policy.important

    def is_hazard(self, label: str) -> bool:
        policy = self.policy(label)
        return policy is not None and policy.hazard

    def labels(self) -> list[str]:
        return sorted(self._policies)

    def hazard_labels(self) -> list[str]:
        return sorted(label for label, policy in self._policies.items() if policy.hazard)

    def __contains__(self, label: object) -> bool:
        return isinstance(label, str) and self.is_important(label)

    def __len__(self) -> int:
        return len(self._policies)


def table_from_labels(important: Iterable[str], hazards: Iterable[str] = ()) -> ClassTable:
    """Build a table from two plain label lists."""

    hazard_set = {label.lower() for label in hazards}
    policies = {label: ClassPolicy(important=True, hazard=label.lower() in hazard_set) for label in important}
    for label in hazard_set:
        policies.setdefault(label, ClassPolicy(important=True, hazard=True))
    return ClassTable(policies)

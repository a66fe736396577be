"""YAML configuration for the assist runtime.

``config/default.yaml`` holds the shipped defaults. ``config/override.yaml``,
when present, is deep-merged on top. Older flat option names (``CRITICAL_DISTANCE``
and friends) are folded into their nested sections on load.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


# Flat option names accepted from older configs -> (section, key, cast).
_LEGACY_KEYS: dict[str, tuple[str, str, type]] = {
    "MODEL_THRESHOLD": ("detection", "model_threshold", float),
    "FRAME_INTERVAL": ("detection", "frame_interval_ms", int),
    "CRITICAL_DISTANCE": ("alerts", "critical_distance_m", float),
    "ANNOUNCE_DISTANCE": ("alerts", "announce_distance_m", float),
    "REFERENCE_WIDTH_PX": ("calibration", "reference_width_px", float),
    "REFERENCE_REAL_WIDTH_M": ("calibration", "reference_real_width_m", float),
    "REFERENCE_DIST_M": ("calibration", "reference_dist_m", float),
    "SPEECH_GAP_MS": ("feedback", "speech_gap_ms", int),
}

SECTIONS = ("detection", "alerts", "calibration", "feedback", "camera", "voice")


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``override`` applied; nested mappings merge key by key."""

    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def normalize_config(config: dict[str, Any]) -> dict[str, Any]:
    """Fold legacy flat keys into sections and make sure every section exists.

    Nested values win over the flat spelling when both are present.
    """

    normalized = dict(config)
    for legacy_key, (section, key, cast) in _LEGACY_KEYS.items():
        if legacy_key not in normalized:
            continue
        legacy_value = normalized.pop(legacy_key)
        section_cfg = dict(normalized.get(section) or {})
        section_cfg.setdefault(key, cast(legacy_value))
        normalized[section] = section_cfg

    for section in SECTIONS:
        normalized[section] = dict(normalized.get(section) or {})
    return normalized


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as file:
        return yaml.safe_load(file) or {}


@dataclass(frozen=True)
class ConfigPaths:
    """Where the default, override and archived override files live."""

    config_dir: Path
    config_file: Path
    override_file: Path

    def archive_file(self, index: int) -> Path:
        return self.config_dir / f"override_{index:04d}.yaml"


class ConfigController:
    """Process-wide holder of the merged configuration."""

    _instance: "ConfigController | None" = None

    def __init__(self, config_file: str = "default.yaml", config_dir: str | Path = "config") -> None:
        if ConfigController._instance is not None:
            raise RuntimeError("You cannot create another ConfigController class")

        config_dir = Path(config_dir)
        self.paths = ConfigPaths(
            config_dir=config_dir,
            config_file=config_dir / config_file,
            override_file=config_dir / "override.yaml",
        )
        self.config: dict[str, Any] = {}
        self.load_config()
        ConfigController._instance = self

    @classmethod
    def get_instance(cls) -> "ConfigController":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def load_config(self) -> None:
        """Re-read defaults and overrides from disk."""

        config = _read_yaml(self.paths.config_file)
        overrides = _read_yaml(self.paths.override_file)
        if overrides:
            config = deep_merge(config, overrides)
        self.config = normalize_config(config)

    def get_config(self) -> dict[str, Any]:
        return dict(self.config)

    def set_config(self, config: dict[str, Any]) -> None:
        """Replace the live configuration and persist it as the new override."""

        self.config = normalize_config(dict(config))
        self.save_config(self.config)

    def save_config(self, config: dict[str, Any]) -> None:
        """Write ``override.yaml``, first renaming any existing one to ``override_NNNN.yaml``."""

        self.paths.config_dir.mkdir(parents=True, exist_ok=True)
        if self.paths.override_file.exists():
            index = 1
            while self.paths.archive_file(index).exists():
                index += 1
            self.paths.override_file.rename(self.paths.archive_file(index))

        with self.paths.override_file.open("w", encoding="utf-8") as file:
            yaml.safe_dump(config, file, sort_keys=False)

"""Diagnostics routines for the configuration subsystem."""

from __future__ import annotations

from pathlib import Path

import yaml

from diagnostics.models import DiagnosticResult, DiagnosticStatus
from vision.distance import CalibrationModel


def probe(base_dir: Path | None = None) -> DiagnosticResult:
    """Validate that config files exist, parse, and hold a usable calibration.

    Args:
        base_dir: Optional base directory for offline testing.

    Returns:
        Diagnostic result indicating config readiness.
    """

    name = "config"
    root_dir = base_dir if base_dir is not None else Path.cwd()
    config_dir = root_dir / "config"
    default_config = config_dir / "default.yaml"
    override_config = config_dir / "override.yaml"

    if not default_config.exists():
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Missing default config at {default_config}",
        )

    try:
        data = yaml.safe_load(default_config.read_text(encoding="utf-8")) or {}
        overrides = {}
        if override_config.exists():
            overrides = yaml.safe_load(override_config.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Config unreadable: {exc}",
        )

    if not isinstance(data, dict) or not isinstance(overrides, dict):
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details="Config root must be a mapping",
        )
    data.update(overrides)

    try:
        CalibrationModel.from_config(data)
    except (TypeError, ValueError) as exc:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Invalid calibration: {exc}",
        )

    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details=f"Config files readable at {config_dir}",
    )

"""Diagnostics routines for camera and detector dependencies."""

from __future__ import annotations

import importlib.util
from dataclasses import dataclass

from diagnostics.models import DiagnosticResult, DiagnosticStatus


@dataclass(frozen=True)
class HardwareProbeConfig:
    """Configuration for hardware dependency checks."""

    require_overlay: bool = False


def _missing(modules: list[str], available_modules: set[str] | None) -> list[str]:
    missing: list[str] = []
    for module_name in modules:
        if available_modules is not None:
            is_available = module_name in available_modules
        else:
            is_available = importlib.util.find_spec(module_name) is not None
        if not is_available:
            missing.append(module_name)
    return missing


def probe(config: HardwareProbeConfig | None = None, available_modules: set[str] | None = None) -> DiagnosticResult:
    """Check that the camera and detector libraries can be imported.

    Both are needed to run detection at all, so their absence fails.

    Args:
        config: Optional configuration for probe behavior.
        available_modules: Optional override set for offline testing.

    Returns:
        Diagnostic result indicating hardware dependency readiness.
    """

    settings = config or HardwareProbeConfig()
    missing = _missing(["cv2", "ultralytics"], available_modules)
    if missing:
        return DiagnosticResult(
            name="camera_detector",
            status=DiagnosticStatus.FAIL,
            details=f"Missing detection deps: {', '.join(missing)}",
        )
    if settings.require_overlay and _missing(["numpy"], available_modules):
        return DiagnosticResult(
            name="camera_detector",
            status=DiagnosticStatus.WARN,
            details="Overlay requested but numpy is missing",
        )
    return DiagnosticResult(
        name="camera_detector",
        status=DiagnosticStatus.PASS,
        details="Camera and detector dependencies available",
    )

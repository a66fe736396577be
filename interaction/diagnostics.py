"""Diagnostics routines for speech, tone and voice command support."""

from __future__ import annotations

import importlib.util

from diagnostics.models import DiagnosticResult, DiagnosticStatus
from interaction.output_hal import SpeechBackend, ToneBackend


def _missing(modules: list[str], available_modules: set[str] | None) -> list[str]:
    if available_modules is not None:
        return [name for name in modules if name not in available_modules]
    return [name for name in modules if importlib.util.find_spec(name) is None]


def speech_probe(
    backend: SpeechBackend | None = None,
    available_modules: set[str] | None = None,
) -> DiagnosticResult:
    """Check that spoken announcements can be produced.

    Args:
        backend: Optional offline speech backend for testing.
        available_modules: Optional override set for offline testing.

    Returns:
        Diagnostic result for speech output.
    """

    name = "speech_output"
    if backend is not None:
        if not getattr(backend, "available", True):
            return DiagnosticResult(name=name, status=DiagnosticStatus.WARN, details="Speech backend unavailable")
        try:
            backend.speak("Diagnostics", 1.0, 1.0)
            backend.cancel()
        except Exception as exc:  # noqa: BLE001 - probe should not raise
            return DiagnosticResult(
                name=name,
                status=DiagnosticStatus.FAIL,
                details=f"Offline speech probe failed: {exc}",
            )
        return DiagnosticResult(name=name, status=DiagnosticStatus.PASS, details="Offline speech backend ready")

    missing = _missing(["pyttsx3"], available_modules)
    if missing:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.WARN,
            details="pyttsx3 missing; announcements will only be logged",
        )
    return DiagnosticResult(name=name, status=DiagnosticStatus.PASS, details="pyttsx3 available")


def tone_probe(
    backend: ToneBackend | None = None,
    available_modules: set[str] | None = None,
) -> DiagnosticResult:
    """Check that the alarm oscillator can start, ramp and stop."""

    name = "tone_output"
    if backend is not None:
        try:
            backend.start()
            backend.ramp_to(900.0, 0.0, 0.05)
            backend.stop()
        except Exception as exc:  # noqa: BLE001 - probe should not raise
            return DiagnosticResult(
                name=name,
                status=DiagnosticStatus.FAIL,
                details=f"Offline tone probe failed: {exc}",
            )
        return DiagnosticResult(name=name, status=DiagnosticStatus.PASS, details="Offline tone backend ready")

    missing = _missing(["pyaudio", "numpy"], available_modules)
    if missing:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.WARN,
            details=f"Alarm tone disabled; missing {', '.join(missing)}",
        )
    return DiagnosticResult(name=name, status=DiagnosticStatus.PASS, details="Tone dependencies available")


def voice_probe(available_modules: set[str] | None = None) -> DiagnosticResult:
    """Check that voice command recognition can be started."""

    missing = _missing(["speech_recognition", "pyaudio"], available_modules)
    if missing:
        return DiagnosticResult(
            name="voice_input",
            status=DiagnosticStatus.WARN,
            details=f"Voice commands disabled; missing {', '.join(missing)}",
        )
    return DiagnosticResult(
        name="voice_input",
        status=DiagnosticStatus.PASS,
        details="Voice recognition dependencies available",
    )

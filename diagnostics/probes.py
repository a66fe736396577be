"""Probe list used by ``main.py --diagnostics``."""

from __future__ import annotations

from config.diagnostics import probe as config_probe
from hardware.diagnostics import probe as hardware_probe
from interaction.diagnostics import speech_probe, tone_probe, voice_probe

ALL_PROBES = [
    config_probe,
    hardware_probe,
    speech_probe,
    tone_probe,
    voice_probe,
]

"""Thin output HAL for speech, tone and vibration backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from core.logging import logger


class OutputUnavailableError(RuntimeError):
    """Raised when an output device or its library cannot be used."""


class SpeechBackend(Protocol):
    """Text-to-speech engine; speak() must return without waiting for audio."""

    available: bool

    def speak(self, text: str, rate: float, pitch: float) -> None:
        """Start speaking text, replacing nothing."""

    def cancel(self) -> None:
        """Cut off any utterance in flight."""

    def close(self) -> None:
        """Release the engine."""


class ToneBackend(Protocol):
    """Continuous oscillator with click-free gain ramps."""

    available: bool

    def start(self) -> None:
        """Start the oscillator at zero volume."""

    def ramp_to(self, frequency_hz: float, volume: float, duration_s: float) -> None:
        """Linearly move to the target volume; frequency applies at once."""

    def stop(self) -> None:
        """Physically stop the oscillator."""

    def close(self) -> None:
        """Release the audio device."""


class VibrationBackend(Protocol):
    """Haptic motor accepting on/off millisecond patterns."""

    available: bool

    def vibrate(self, pattern_ms: list[int]) -> None:
        """Fire a pattern; overlapping requests are the motor's problem."""


@dataclass
class FakeSpeechBackend:
    """Speech backend that records utterances instead of playing them."""

    available: bool = True
    spoken: list[tuple[str, float, float]] = field(default_factory=list)
    cancel_count: int = 0
    events: list[tuple[str, ...]] = field(default_factory=list)

    def speak(self, text: str, rate: float, pitch: float) -> None:
        logger.info("[SPEECH] (offline) %s", text)
        self.spoken.append((text, rate, pitch))
        self.events.append(("speak", text))

    def cancel(self) -> None:
        self.cancel_count += 1
        self.events.append(("cancel",))

    def close(self) -> None:
        return None

    @property
    def texts(self) -> list[str]:
        return [text for text, _, _ in self.spoken]


@dataclass
class FakeToneBackend:
    """Tone backend that records oscillator calls in order."""

    available: bool = True
    events: list[tuple[str, ...]] = field(default_factory=list)
    running: bool = False
    frequency_hz: float = 0.0
    volume: float = 0.0

    def start(self) -> None:
        self.running = True
        self.volume = 0.0
        self.events.append(("start",))

    def ramp_to(self, frequency_hz: float, volume: float, duration_s: float) -> None:
        self.frequency_hz = frequency_hz
        self.volume = volume
        self.events.append(("ramp", round(frequency_hz, 3), round(volume, 4), duration_s))

    def stop(self) -> None:
        self.running = False
        self.events.append(("stop",))

    def close(self) -> None:
        self.running = False

    @property
    def kinds(self) -> list[str]:
        return [event[0] for event in self.events]


@dataclass
class FakeVibrationMotor:
    """Vibration motor that records requested patterns."""

    available: bool = True
    patterns: list[list[int]] = field(default_factory=list)

    def vibrate(self, pattern_ms: list[int]) -> None:
        self.patterns.append(list(pattern_ms))


class NullVibrationMotor:
    """Stand-in for platforms without a haptic motor."""

    available = False

    def vibrate(self, pattern_ms: list[int]) -> None:
        return None


class NullToneBackend:
    """Stand-in for platforms without an audio output for tones."""

    available = False

    def start(self) -> None:
        return None

    def ramp_to(self, frequency_hz: float, volume: float, duration_s: float) -> None:
        return None

    def stop(self) -> None:
        return None

    def close(self) -> None:
        return None

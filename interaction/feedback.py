"""Rate-limited speech, tone and vibration feedback channels."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import time
from typing import Any, Callable, Mapping

from core.logging import log_spoken, logger
from interaction.output_hal import SpeechBackend, ToneBackend, VibrationBackend
from vision.arbitration import AlarmState, ArbitrationDecision


WARNING_TEXT = "Warning, object very near"
WARNING_RATE = 1.05
WARNING_PITCH = 1.3


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def speech_modulation(distance_m: float) -> tuple[float, float]:
    """Return ``(rate, pitch)``; both rise as the nearest object gets closer."""

    pitch = clamp(1.6 - distance_m / 4.0, 0.8, 1.5)
    rate = clamp(1.2 - distance_m / 8.0, 0.9, 1.3)
    return rate, pitch


def tone_modulation(distance_m: float, critical_distance_m: float) -> tuple[float, float]:
    """Return ``(frequency_hz, volume)`` for a hazard at ``distance_m``."""

    frequency = clamp(1200.0 - distance_m * 250.0, 400.0, 2000.0)
    critical = critical_distance_m if critical_distance_m > 0 else 1.0
    volume = clamp(0.1 + ((critical - distance_m) / critical) * 0.2, 0.04, 0.25)
    return frequency, volume


@dataclass(frozen=True)
class FeedbackConfig:
    """Timing and pattern settings for the feedback channels."""

    speech_gap_ms: int = 1300
    speech_base_rate_wpm: int = 170
    tone_ramp_ms: int = 50
    tone_stop_delay_ms: int = 150
    vibration_pattern_ms: tuple[int, ...] = field(default=(250, 100))

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "FeedbackConfig":
        feedback_cfg = config.get("feedback") if isinstance(config, Mapping) else None
        if not isinstance(feedback_cfg, Mapping):
            return cls()
        pattern = feedback_cfg.get("vibration_pattern_ms", [250, 100])
        if not isinstance(pattern, (list, tuple)):
            pattern = [250, 100]
        return cls(
            speech_gap_ms=int(feedback_cfg.get("speech_gap_ms", 1300)),
            speech_base_rate_wpm=int(feedback_cfg.get("speech_base_rate_wpm", 170)),
            tone_ramp_ms=int(feedback_cfg.get("tone_ramp_ms", 50)),
            tone_stop_delay_ms=int(feedback_cfg.get("tone_stop_delay_ms", 150)),
            vibration_pattern_ms=tuple(int(step) for step in pattern),
        )


def _guarded(label: str, action: Callable[..., Any], *args: Any) -> bool:
    try:
        action(*args)
    except Exception:
        logger.exception("[FEEDBACK] %s backend call failed", label)
        return False
    return True


class SpeechChannel:
    """Drop-not-queue speech with a system-wide minimum gap."""

    def __init__(
        self,
        backend: SpeechBackend,
        gap_ms: int = 1300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.backend = backend
        self.gap_s = max(0, int(gap_ms)) / 1000.0
        self._clock = clock
        self.last_emitted_at: float | None = None
        self.last_text: str | None = None
        self._notice_in_flight = False

    @property
    def available(self) -> bool:
        return bool(getattr(self.backend, "available", True))

    def say(self, text: str, rate: float = 1.0, pitch: float = 1.0) -> bool:
        """Speak unless the previous utterance started less than a gap ago."""

        now = self._clock()
        if self._within_gap(now):
            logger.debug("[SPEECH] Dropped within gap: %s", text)
            return False
        return self._emit(text, rate, pitch, now)

    def announce(self, text: str, rate: float = 1.0, pitch: float = 1.0) -> bool:
        """Speak a lifecycle notice regardless of the gap.

        A notice issued within a gap of another notice is queued behind it
        instead of cutting it off.
        """

        now = self._clock()
        queued = self._notice_in_flight and self._within_gap(now)
        spoken = self._emit(text, rate, pitch, now, interrupt=not queued)
        self._notice_in_flight = True
        return spoken

    def cancel(self) -> None:
        self._notice_in_flight = False
        _guarded("speech", self.backend.cancel)

    def _within_gap(self, now: float) -> bool:
        return self.last_emitted_at is not None and (now - self.last_emitted_at) < self.gap_s

    def _emit(self, text: str, rate: float, pitch: float, now: float, interrupt: bool = True) -> bool:
        self.last_emitted_at = now
        self.last_text = text
        self._notice_in_flight = False
        if interrupt:
            _guarded("speech", self.backend.cancel)
        spoken = _guarded("speech", self.backend.speak, text, rate, pitch)
        if spoken:
            log_spoken(text)
        return spoken


class ToneChannel:
    """Lazily started oscillator that ramps in and out instead of stepping."""

    def __init__(
        self,
        backend: ToneBackend,
        ramp_ms: int = 50,
        stop_delay_ms: int = 150,
    ) -> None:
        self.backend = backend
        self.ramp_s = max(0, int(ramp_ms)) / 1000.0
        # The physical stop must never land inside the ramp.
        self.stop_delay_s = max(int(stop_delay_ms) / 1000.0, self.ramp_s)
        self.active = False
        self.frequency_hz = 0.0
        self.volume = 0.0
        self._stop_task: asyncio.Task[None] | None = None

    @property
    def available(self) -> bool:
        return bool(getattr(self.backend, "available", True))

    @property
    def stopping(self) -> bool:
        return self._stop_task is not None and not self._stop_task.done()

    def update(self, frequency_hz: float, volume: float) -> None:
        self._cancel_pending_stop()
        if not self.active:
            if not _guarded("tone", self.backend.start):
                return
            self.active = True
        self.frequency_hz = frequency_hz
        self.volume = volume
        _guarded("tone", self.backend.ramp_to, frequency_hz, volume, self.ramp_s)

    def release(self) -> None:
        """Ramp to silence, then stop the oscillator once the ramp is over."""

        if not self.active or self.stopping:
            return
        self.volume = 0.0
        _guarded("tone", self.backend.ramp_to, self.frequency_hz, 0.0, self.ramp_s)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._stop_now()
            return
        self._stop_task = loop.create_task(self._stop_after(self.stop_delay_s))

    async def aclose(self) -> None:
        self.release()
        if self._stop_task is not None:
            await asyncio.gather(self._stop_task, return_exceptions=True)
            self._stop_task = None

    async def _stop_after(self, delay_s: float) -> None:
        await asyncio.sleep(delay_s)
        self._stop_now()

    def _stop_now(self) -> None:
        if self.active:
            self.active = False
            _guarded("tone", self.backend.stop)

    def _cancel_pending_stop(self) -> None:
        if self._stop_task is not None:
            if not self._stop_task.done():
                self._stop_task.cancel()
            self._stop_task = None


class VibrationChannel:
    """Fire-and-forget haptic pulses."""

    def __init__(self, backend: VibrationBackend, pattern_ms: tuple[int, ...] = (250, 100)) -> None:
        self.backend = backend
        self.pattern_ms = [int(step) for step in pattern_ms]

    @property
    def available(self) -> bool:
        return bool(getattr(self.backend, "available", True))

    def pulse(self) -> bool:
        if not self.available:
            return False
        return _guarded("vibration", self.backend.vibrate, list(self.pattern_ms))


class FeedbackController:
    """Render arbitration decisions onto the three output channels."""

    def __init__(
        self,
        speech: SpeechChannel,
        tone: ToneChannel,
        vibration: VibrationChannel,
        critical_distance_m: float = 2.0,
    ) -> None:
        self.speech = speech
        self.tone = tone
        self.vibration = vibration
        self.critical_distance_m = float(critical_distance_m)
        self._reported_missing: set[str] = set()

    @classmethod
    def build(
        cls,
        speech_backend: SpeechBackend,
        tone_backend: ToneBackend,
        vibration_backend: VibrationBackend,
        config: FeedbackConfig | None = None,
        critical_distance_m: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> "FeedbackController":
        settings = config or FeedbackConfig()
        return cls(
            speech=SpeechChannel(speech_backend, settings.speech_gap_ms, clock=clock),
            tone=ToneChannel(tone_backend, settings.tone_ramp_ms, settings.tone_stop_delay_ms),
            vibration=VibrationChannel(vibration_backend, settings.vibration_pattern_ms),
            critical_distance_m=critical_distance_m,
        )

    def render(self, decision: ArbitrationDecision) -> None:
        if decision.announcements:
            rate, pitch = speech_modulation(decision.nearest_distance_m)
            self.speech.say(decision.utterance, rate, pitch)

        if decision.alarm is AlarmState.ALERT:
            hazard_distance = decision.nearest_hazard_distance_m
            if hazard_distance is None:
                hazard_distance = decision.nearest_distance_m
            frequency, volume = tone_modulation(hazard_distance, self.critical_distance_m)
            self.tone.update(frequency, volume)
            self.vibration.pulse()
            if not decision.announcements:
                self.speech.say(WARNING_TEXT, WARNING_RATE, WARNING_PITCH)
        else:
            self.tone.release()

    def announce(self, text: str) -> bool:
        return self.speech.announce(text)

    def silence(self) -> None:
        self.speech.cancel()
        self.tone.release()

    def report_capabilities(self) -> list[str]:
        """Announce each missing output channel once; return what was missing."""

        notices = {
            "vibration": (self.vibration.available, "Vibration not available on this device"),
            "tone": (self.tone.available, "Alert tone not available on this device"),
        }
        missing: list[str] = []
        messages: list[str] = []
        if not self.speech.available and "speech" not in self._reported_missing:
            self._reported_missing.add("speech")
            logger.warning("[FEEDBACK] Speech output unavailable; announcements go to the log only")
            missing.append("speech")
        for name, (available, message) in notices.items():
            if available or name in self._reported_missing:
                continue
            self._reported_missing.add(name)
            logger.warning("[FEEDBACK] %s", message)
            messages.append(message)
            missing.append(name)
        if messages:
            # One utterance, otherwise the second notice cancels the first.
            self.announce(". ".join(messages))
        return missing

    async def aclose(self) -> None:
        self.speech.cancel()
        await self.tone.aclose()
        for label, backend in (("speech", self.speech.backend), ("tone", self.tone.backend)):
            close = getattr(backend, "close", None)
            if close is not None:
                _guarded(label, close)

"""PyAudio sine oscillator with linear gain ramps."""

from __future__ import annotations

import importlib
import importlib.util
import math
import threading
from typing import Any

from core.logging import logger
from interaction.output_hal import OutputUnavailableError


SAMPLE_RATE = 44100
FRAMES_PER_BUFFER = 512


class PyAudioTone:
    """Tone backend generating a sine wave in the PyAudio stream callback.

    Gain changes are spread across ``duration_s`` worth of samples so volume
    steps never click. Frequency changes keep phase continuity.
    """

    available = True

    def __init__(self, sample_rate: int = SAMPLE_RATE, frames_per_buffer: int = FRAMES_PER_BUFFER) -> None:
        if importlib.util.find_spec("pyaudio") is None:
            raise OutputUnavailableError("PyAudio is required for PyAudioTone")
        if importlib.util.find_spec("numpy") is None:
            raise OutputUnavailableError("NumPy is required for PyAudioTone")

        pyaudio = importlib.import_module("pyaudio")
        self._np = importlib.import_module("numpy")
        self._pa_continue = pyaudio.paContinue
        self._pa_format = pyaudio.paFloat32
        self.p = pyaudio.PyAudio()
        self.sample_rate = int(sample_rate)
        self.frames_per_buffer = int(frames_per_buffer)

        self.stream: Any = None
        self._lock = threading.Lock()
        self._phase = 0.0
        self._frequency_hz = 900.0
        self._gain = 0.0
        self._ramp_start_gain = 0.0
        self._ramp_target_gain = 0.0
        self._ramp_samples = 1
        self._ramp_position = 1

    def start(self) -> None:
        if self.stream is not None:
            return
        with self._lock:
            self._phase = 0.0
            self._gain = 0.0
            self._ramp_start_gain = 0.0
            self._ramp_target_gain = 0.0
            self._ramp_samples = 1
            self._ramp_position = 1
        try:
            self.stream = self.p.open(
                format=self._pa_format,
                channels=1,
                rate=self.sample_rate,
                output=True,
                frames_per_buffer=self.frames_per_buffer,
                stream_callback=self._callback,
            )
        except Exception as exc:
            raise OutputUnavailableError(f"Failed to open tone output stream: {exc}") from exc
        logger.debug("[TONE] Oscillator started")

    def ramp_to(self, frequency_hz: float, volume: float, duration_s: float) -> None:
        with self._lock:
            self._frequency_hz = float(frequency_hz)
            self._ramp_start_gain = self._gain
            self._ramp_target_gain = max(0.0, min(1.0, float(volume)))
            self._ramp_samples = max(1, int(duration_s * self.sample_rate))
            self._ramp_position = 0

    def stop(self) -> None:
        stream, self.stream = self.stream, None
        if stream is None:
            return
        try:
            stream.stop_stream()
            stream.close()
        finally:
            with self._lock:
                self._gain = 0.0
            logger.debug("[TONE] Oscillator stopped")

    def close(self) -> None:
        try:
            self.stop()
        finally:
            self.p.terminate()

    def _callback(
        self,
        in_data: bytes | None,
        frame_count: int,
        time_info: dict[str, Any],
        status: int,
    ) -> tuple[bytes, int]:
        np = self._np
        index = np.arange(frame_count, dtype=np.float64)
        with self._lock:
            if self._ramp_position < self._ramp_samples:
                progress = np.clip((self._ramp_position + index + 1) / self._ramp_samples, 0.0, 1.0)
                gains = self._ramp_start_gain + (self._ramp_target_gain - self._ramp_start_gain) * progress
                self._ramp_position += frame_count
            else:
                gains = np.full(frame_count, self._ramp_target_gain)
            self._gain = float(gains[-1]) if frame_count else self._gain
            step = 2.0 * math.pi * self._frequency_hz / self.sample_rate
            phases = self._phase + step * index
            self._phase = (self._phase + step * frame_count) % (2.0 * math.pi)

        samples = (np.sin(phases) * gains).astype(np.float32)
        return samples.tobytes(), self._pa_continue

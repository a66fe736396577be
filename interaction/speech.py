"""pyttsx3-backed speech output running on a worker thread."""

from __future__ import annotations

import importlib
import importlib.util
import queue
import threading
from typing import Any

from core.logging import logger
from interaction.output_hal import OutputUnavailableError


DEFAULT_BASE_RATE_WPM = 170


class Pyttsx3Speech:
    """Speech backend with a single owner thread for the pyttsx3 engine.

    ``speak`` only enqueues. ``cancel`` drops queued text and interrupts the
    utterance in progress at its next word boundary.
    """

    available = True

    def __init__(self, base_rate_wpm: int = DEFAULT_BASE_RATE_WPM, voice_id: str | None = None) -> None:
        if importlib.util.find_spec("pyttsx3") is None:
            raise OutputUnavailableError("pyttsx3 is required for Pyttsx3Speech")

        self._pyttsx3 = importlib.import_module("pyttsx3")
        self._base_rate_wpm = int(base_rate_wpm)
        self._voice_id = voice_id
        self._q: queue.Queue[tuple[int, str, float, float] | None] = queue.Queue()
        self._generation = 0
        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._init_error: BaseException | None = None
        self._engine: Any = None

        self._t = threading.Thread(target=self._worker, name="tts-worker", daemon=True)
        self._t.start()
        self._ready.wait(timeout=5.0)
        if self._init_error is not None:
            raise OutputUnavailableError(f"Failed to start speech engine: {self._init_error}")

    def speak(self, text: str, rate: float, pitch: float) -> None:
        with self._lock:
            generation = self._generation
        self._q.put_nowait((generation, text, rate, pitch))

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
        try:
            while True:
                self._q.get_nowait()
        except queue.Empty:
            pass

    def close(self) -> None:
        self.cancel()
        self._q.put_nowait(None)
        self._t.join(timeout=1.0)

    def _current_generation(self) -> int:
        with self._lock:
            return self._generation

    def _worker(self) -> None:
        try:
            engine = self._pyttsx3.init()
            if self._voice_id:
                engine.setProperty("voice", self._voice_id)
        except Exception as exc:
            self._init_error = exc
            self._ready.set()
            return

        self._engine = engine
        active_generation = [0]

        def _on_word(name: str, location: int, length: int) -> None:
            if active_generation[0] != self._current_generation():
                engine.stop()

        engine.connect("started-word", _on_word)
        self._ready.set()

        while True:
            item = self._q.get()
            if item is None:
                break
            generation, text, rate, pitch = item
            if generation != self._current_generation():
                continue
            active_generation[0] = generation
            try:
                # pyttsx3 exposes no portable pitch control; rate carries urgency.
                engine.setProperty("rate", int(self._base_rate_wpm * rate))
                engine.say(text)
                engine.runAndWait()
            except Exception:
                logger.exception("[SPEECH] Failed to speak %r", text)

        try:
            engine.stop()
        except Exception:
            logger.debug("[SPEECH] Engine stop on close failed", exc_info=True)

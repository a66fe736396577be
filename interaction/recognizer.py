"""SpeechRecognition-backed transcript stream."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import importlib
import importlib.util
from typing import Any, AsyncIterator, Mapping, Protocol

from core.logging import logger


class RecognizerUnavailableError(RuntimeError):
    """Raised when speech recognition cannot run on this device at all."""


class TranscriptSource(Protocol):
    def listen(self) -> AsyncIterator[str]:
        """Return a fresh stream of transcripts; it may end at any time."""


@dataclass(frozen=True)
class VoiceConfig:
    """Voice command recognition settings."""

    enabled: bool = True
    language: str = "en-IN"
    phrase_time_limit_s: float = 4.0
    listen_timeout_s: float = 5.0
    restart_delay_ms: int = 0
    device_index: int | None = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "VoiceConfig":
        voice_cfg = config.get("voice") if isinstance(config, Mapping) else None
        if not isinstance(voice_cfg, Mapping):
            return cls()
        device_index = voice_cfg.get("device_index")
        return cls(
            enabled=bool(voice_cfg.get("enabled", True)),
            language=str(voice_cfg.get("language", "en-IN")),
            phrase_time_limit_s=float(voice_cfg.get("phrase_time_limit_s", 4.0)),
            listen_timeout_s=float(voice_cfg.get("listen_timeout_s", 5.0)),
            restart_delay_ms=int(voice_cfg.get("restart_delay_ms", 0)),
            device_index=int(device_index) if device_index is not None else None,
        )


class SpeechRecognitionListener:
    """Listens on the microphone and yields Google Web Speech transcripts.

    Silence and unintelligible phrases are skipped. A service error ends the
    stream so the caller can restart it.
    """

    def __init__(self, config: VoiceConfig | None = None) -> None:
        if importlib.util.find_spec("speech_recognition") is None:
            raise RecognizerUnavailableError("SpeechRecognition is required for voice commands")

        self._sr = importlib.import_module("speech_recognition")
        self.config = config or VoiceConfig()
        self._recognizer = self._sr.Recognizer()
        self._recognizer.dynamic_energy_threshold = True

        try:
            names = self._sr.Microphone.list_microphone_names()
        except (AttributeError, OSError) as exc:
            raise RecognizerUnavailableError(f"Microphone access unavailable: {exc}") from exc
        if not names:
            raise RecognizerUnavailableError("No microphone found")

    def _open_microphone(self) -> Any:
        try:
            return self._sr.Microphone(device_index=self.config.device_index)
        except (AttributeError, OSError) as exc:
            raise RecognizerUnavailableError(f"Cannot open microphone: {exc}") from exc

    async def listen(self) -> AsyncIterator[str]:
        sr = self._sr
        recognizer = self._recognizer
        with self._open_microphone() as source:
            await asyncio.to_thread(recognizer.adjust_for_ambient_noise, source, 0.5)
            logger.info("[VOICE] Listening for commands...")
            while True:
                try:
                    audio = await asyncio.to_thread(
                        recognizer.listen,
                        source,
                        self.config.listen_timeout_s,
                        self.config.phrase_time_limit_s,
                    )
                except sr.WaitTimeoutError:
                    continue
                try:
                    text = await asyncio.to_thread(
                        recognizer.recognize_google,
                        audio,
                        language=self.config.language,
                    )
                except sr.UnknownValueError:
                    continue
                if isinstance(text, str) and text.strip():
                    yield text

"""Application runtime wiring and lifecycle helpers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Mapping

from core.logging import logger
from core.scheduler import DetectionConfig, DetectionScheduler, SessionState
from hardware.camera import CameraConfig, OpenCVCamera
from hardware.detector import YoloDetector
from hardware.overlay import NullOverlay, OpenCVOverlay, Overlay
from interaction.feedback import FeedbackConfig, FeedbackController
from interaction.output_hal import (
    FakeSpeechBackend,
    NullToneBackend,
    NullVibrationMotor,
    OutputUnavailableError,
    SpeechBackend,
    ToneBackend,
)
from interaction.recognizer import (
    RecognizerUnavailableError,
    SpeechRecognitionListener,
    TranscriptSource,
    VoiceConfig,
)
from interaction.voice_commands import VoiceCommandSupervisor
from vision.arbitration import AlertArbitrator, AlertConfig
from vision.perception import PerceptionFilter


@dataclass(frozen=True)
class AppConfig:
    """Runtime switches chosen on the command line.

    Attributes:
        autostart: Start detection immediately instead of waiting for "start".
        voice_enabled: Run the voice command supervisor.
    """

    autostart: bool = False
    voice_enabled: bool = True


def _build_speech_backend(settings: FeedbackConfig) -> SpeechBackend:
    from interaction.speech import Pyttsx3Speech

    try:
        return Pyttsx3Speech(base_rate_wpm=settings.speech_base_rate_wpm)
    except OutputUnavailableError as exc:
        logger.warning("Speech output unavailable: %s", exc)
        return FakeSpeechBackend(available=False)


def _build_tone_backend() -> ToneBackend:
    from interaction.tone import PyAudioTone

    try:
        return PyAudioTone()
    except OutputUnavailableError as exc:
        logger.warning("Tone output unavailable: %s", exc)
        return NullToneBackend()


def _build_recognizer(voice_config: VoiceConfig) -> TranscriptSource | None:
    try:
        return SpeechRecognitionListener(voice_config)
    except RecognizerUnavailableError as exc:
        logger.warning("Voice recognition unavailable: %s", exc)
        return None


def _build_overlay(camera_config: CameraConfig) -> Overlay:
    if not camera_config.overlay_enabled:
        return NullOverlay()
    try:
        return OpenCVOverlay()
    except RuntimeError as exc:
        logger.warning("Overlay unavailable: %s", exc)
        return NullOverlay()


class AssistApp:
    """Owns the scheduler, feedback controller and voice supervisor."""

    def __init__(
        self,
        scheduler: DetectionScheduler,
        feedback: FeedbackController,
        supervisor: VoiceCommandSupervisor | None,
        app_config: AppConfig | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.feedback = feedback
        self.supervisor = supervisor
        self.app_config = app_config or AppConfig()
        self._shutdown = asyncio.Event()
        self._voice_task: asyncio.Task[None] | None = None
        self._preload_task: asyncio.Task[None] | None = None

    def request_shutdown(self) -> None:
        self._shutdown.set()

    async def run(self) -> None:
        self.feedback.report_capabilities()
        self._preload_task = asyncio.create_task(self._preload_model(), name="model-preload")

        if self.supervisor is not None and self.app_config.voice_enabled:
            self._voice_task = asyncio.create_task(self.supervisor.run(), name="voice-supervisor")
        elif not self.app_config.autostart:
            logger.warning("Voice commands disabled and autostart off; detection will not start")

        if self.app_config.autostart:
            await self.scheduler.start()

        try:
            await self._shutdown.wait()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        logger.info("Shutting down assist runtime")
        if self.supervisor is not None:
            self.supervisor.stop()
        for task in (self._voice_task, self._preload_task):
            if task is not None and not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
        if self.scheduler.state is not SessionState.IDLE:
            self.scheduler.stop()
        await self.scheduler.wait_closed()
        await self.feedback.aclose()

    async def _preload_model(self) -> None:
        try:
            await self.scheduler.detector.load()
        except Exception as exc:
            logger.warning("Model preload failed (will retry on start): %s", exc)


def build_app(config: Mapping[str, Any], app_config: AppConfig | None = None) -> AssistApp:
    """Construct the runtime from a loaded configuration mapping."""

    app_config = app_config or AppConfig()
    detection_config = DetectionConfig.from_config(config)
    alert_config = AlertConfig.from_config(config)
    feedback_config = FeedbackConfig.from_config(config)
    camera_config = CameraConfig.from_config(config)
    voice_config = VoiceConfig.from_config(config)

    feedback = FeedbackController.build(
        speech_backend=_build_speech_backend(feedback_config),
        tone_backend=_build_tone_backend(),
        vibration_backend=NullVibrationMotor(),
        config=feedback_config,
        critical_distance_m=alert_config.critical_distance_m,
    )
    scheduler = DetectionScheduler(
        camera=OpenCVCamera(camera_config),
        detector=YoloDetector(detection_config.model_path),
        perception=PerceptionFilter.from_config(config),
        arbitrator=AlertArbitrator.from_config(config),
        feedback=feedback,
        overlay=_build_overlay(camera_config),
        config=detection_config,
    )

    supervisor = None
    if app_config.voice_enabled and voice_config.enabled:
        supervisor = VoiceCommandSupervisor(
            recognizer=_build_recognizer(voice_config),
            scheduler=scheduler,
            feedback=feedback,
            restart_delay_ms=voice_config.restart_delay_ms,
        )
    return AssistApp(scheduler, feedback, supervisor, app_config)

"""Tests for runtime wiring, autostart and shutdown."""

from __future__ import annotations

import asyncio

from core.app import AppConfig, AssistApp
from core.scheduler import DetectionConfig, DetectionScheduler, SessionState
from interaction.feedback import FeedbackController
from interaction.output_hal import FakeSpeechBackend, FakeToneBackend, NullVibrationMotor
from interaction.voice_commands import READY_TEXT, VoiceCommandSupervisor
from vision.arbitration import AlertArbitrator
from vision.detections import Frame
from vision.perception import PerceptionFilter


class _Source:
    width = 640
    height = 480

    def __init__(self) -> None:
        self.stop_count = 0

    async def read(self) -> Frame:
        return Frame(image=None, width=self.width, height=self.height)

    def stop(self) -> None:
        self.stop_count += 1


class _Camera:
    def __init__(self) -> None:
        self.source = _Source()

    async def start(self) -> _Source:
        return self.source


class _Detector:
    def __init__(self) -> None:
        self.load_count = 0

    async def load(self) -> None:
        self.load_count += 1

    async def detect(self, frame: Frame) -> list:
        return []


def _app(app_config: AppConfig) -> tuple[AssistApp, _Camera, _Detector]:
    camera = _Camera()
    detector = _Detector()
    tone = FakeToneBackend()
    feedback = FeedbackController.build(
        speech_backend=FakeSpeechBackend(),
        tone_backend=tone,
        vibration_backend=NullVibrationMotor(),
    )
    scheduler = DetectionScheduler(
        camera=camera,
        detector=detector,
        perception=PerceptionFilter(),
        arbitrator=AlertArbitrator(),
        feedback=feedback,
        config=DetectionConfig(frame_interval_ms=0, idle_yield_ms=0),
    )
    return AssistApp(scheduler, feedback, None, app_config), camera, detector


def test_autostart_runs_until_shutdown_and_releases_camera() -> None:
    app, camera, detector = _app(AppConfig(autostart=True, voice_enabled=False))

    async def scenario() -> None:
        runner = asyncio.create_task(app.run())
        while not app.scheduler.is_running:
            await asyncio.sleep(0)
        app.request_shutdown()
        await runner

    asyncio.run(scenario())

    assert app.scheduler.state is SessionState.IDLE
    assert camera.source.stop_count == 1
    assert detector.load_count >= 1
    spoken = app.feedback.speech.backend.texts
    assert spoken[0] == "Vibration not available on this device"
    assert "Detection started" in spoken
    assert spoken[-1] == "Detection stopped"


def test_shutdown_without_detection_does_not_announce_already_stopped() -> None:
    app, _, _ = _app(AppConfig(autostart=False, voice_enabled=False))

    async def scenario() -> None:
        runner = asyncio.create_task(app.run())
        await asyncio.sleep(0)
        app.request_shutdown()
        await runner

    asyncio.run(scenario())

    assert "Already stopped" not in app.feedback.speech.backend.texts


class _IdleRecognizer:
    async def listen(self):
        await asyncio.Event().wait()
        yield ""


def test_startup_notices_are_not_cut_off_by_voice_ready() -> None:
    app, _, _ = _app(AppConfig(autostart=False, voice_enabled=True))
    app.supervisor = VoiceCommandSupervisor(_IdleRecognizer(), app.scheduler, app.feedback)
    backend = app.feedback.speech.backend

    async def scenario() -> None:
        runner = asyncio.create_task(app.run())
        while READY_TEXT not in backend.texts:
            await asyncio.sleep(0)
        app.request_shutdown()
        await runner

    asyncio.run(scenario())

    assert backend.events[:3] == [
        ("cancel",),
        ("speak", "Vibration not available on this device"),
        ("speak", READY_TEXT),
    ]


def test_autostart_notice_queues_behind_capability_notice() -> None:
    app, _, _ = _app(AppConfig(autostart=True, voice_enabled=False))
    backend = app.feedback.speech.backend

    async def scenario() -> None:
        runner = asyncio.create_task(app.run())
        while not app.scheduler.is_running:
            await asyncio.sleep(0)
        app.request_shutdown()
        await runner

    asyncio.run(scenario())

    notice = backend.events.index(("speak", "Vibration not available on this device"))
    assert backend.events[notice + 1] == ("speak", "Detection started")

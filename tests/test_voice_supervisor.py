"""Tests for voice command parsing and recognizer supervision."""

from __future__ import annotations

import asyncio

import pytest

from core.scheduler import (
    STARTED_TEXT,
    STOPPED_TEXT,
    DetectionConfig,
    DetectionScheduler,
    SessionState,
)
from interaction.feedback import FeedbackController
from interaction.output_hal import FakeSpeechBackend, FakeToneBackend, FakeVibrationMotor
from interaction.recognizer import RecognizerUnavailableError, VoiceConfig
from interaction.voice_commands import (
    READY_TEXT,
    UNSUPPORTED_TEXT,
    VoiceCommand,
    VoiceCommandSupervisor,
    parse_command,
)
from vision.arbitration import AlertArbitrator
from vision.detections import Frame
from vision.perception import PerceptionFilter


class _FakeScheduler:
    def __init__(self, events: list[str]) -> None:
        self.events = events

    async def start(self) -> bool:
        self.events.append("start")
        return True

    def stop(self) -> bool:
        self.events.append("stop")
        return True


class _ScriptedRecognizer:
    """Each listen() call plays the next session; a session may end in an error."""

    def __init__(self, sessions: list, events: list[str]) -> None:
        self.sessions = list(sessions)
        self.events = events
        self.supervisor: VoiceCommandSupervisor | None = None

    async def listen(self):
        self.events.append("listen")
        if not self.sessions:
            self.supervisor.stop()
            return
        for item in self.sessions.pop(0):
            if isinstance(item, Exception):
                raise item
            yield item


def _feedback() -> FeedbackController:
    return FeedbackController.build(
        speech_backend=FakeSpeechBackend(),
        tone_backend=FakeToneBackend(),
        vibration_backend=FakeVibrationMotor(),
        clock=lambda: 0.0,
    )


def _supervisor(sessions: list) -> tuple[VoiceCommandSupervisor, list[str]]:
    events: list[str] = []
    recognizer = _ScriptedRecognizer(sessions, events)
    supervisor = VoiceCommandSupervisor(recognizer, _FakeScheduler(events), _feedback())
    recognizer.supervisor = supervisor
    return supervisor, events


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("start detection", VoiceCommand.START),
        ("please START", VoiceCommand.START),
        ("stop detection", VoiceCommand.STOP),
        ("pause", VoiceCommand.STOP),
        ("stop and start again", VoiceCommand.START),
        ("what time is it", None),
        ("", None),
    ],
)
def test_parse_command(text: str, expected: VoiceCommand | None) -> None:
    assert parse_command(text) is expected


def test_transcripts_dispatch_with_one_restart_between_sessions() -> None:
    supervisor, events = _supervisor([["start detection"], ["stop detection"]])

    asyncio.run(supervisor.run())

    assert events == ["listen", "start", "listen", "stop", "listen"]
    assert supervisor.restart_count == 2
    assert supervisor.feedback.speech.backend.texts == [READY_TEXT]


def test_unrecognised_phrases_are_ignored() -> None:
    supervisor, events = _supervisor([["hello there", "start detection"]])

    asyncio.run(supervisor.run())

    assert events == ["listen", "start", "listen"]


def test_recognition_error_restarts_listening() -> None:
    supervisor, events = _supervisor([[RuntimeError("network down")], ["stop detection"]])

    asyncio.run(supervisor.run())

    assert events == ["listen", "listen", "stop", "listen"]
    assert supervisor.restart_count == 2


def test_missing_recognizer_announces_unsupported_once() -> None:
    supervisor = VoiceCommandSupervisor(None, _FakeScheduler([]), _feedback())

    asyncio.run(supervisor.run())
    asyncio.run(supervisor.run())

    assert supervisor.feedback.speech.backend.texts == [UNSUPPORTED_TEXT]


def test_recognizer_unavailable_mid_session_stops_supervision() -> None:
    supervisor, events = _supervisor([["start detection", RecognizerUnavailableError("mic unplugged")]])

    asyncio.run(supervisor.run())

    assert events == ["listen", "start"]
    assert supervisor.restart_count == 0
    assert supervisor.feedback.speech.backend.texts == [READY_TEXT, UNSUPPORTED_TEXT]


def test_restart_delay_is_applied_between_sessions() -> None:
    supervisor, _ = _supervisor([["start detection"]])
    supervisor.restart_delay_s = 0.01

    asyncio.run(supervisor.run())

    assert supervisor.restart_count == 1


def test_voice_config_from_config() -> None:
    config = VoiceConfig.from_config({"voice": {"enabled": False, "language": "en-US"}})

    assert config.enabled is False
    assert config.language == "en-US"
    assert config.phrase_time_limit_s == 4.0
    assert VoiceConfig.from_config({}) == VoiceConfig()


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
        self.sources: list[_Source] = []

    async def start(self) -> _Source:
        source = _Source()
        self.sources.append(source)
        return source


class _GatedDetector:
    def __init__(self) -> None:
        self.gate = asyncio.Event()

    async def load(self) -> None:
        await self.gate.wait()

    async def detect(self, frame: Frame) -> list:
        return []


def _gated_scheduler() -> tuple[DetectionScheduler, _Camera, _GatedDetector]:
    camera = _Camera()
    detector = _GatedDetector()
    scheduler = DetectionScheduler(
        camera=camera,
        detector=detector,
        perception=PerceptionFilter(),
        arbitrator=AlertArbitrator(),
        feedback=_feedback(),
        config=DetectionConfig(frame_interval_ms=0, idle_yield_ms=0),
    )
    return scheduler, camera, detector


async def _until(predicate) -> None:
    while not predicate():
        await asyncio.sleep(0)


class _StopWhileLoadingRecognizer:
    """Says "start", then "stop" while the model is still loading."""

    def __init__(self, scheduler: DetectionScheduler, detector: _GatedDetector) -> None:
        self.scheduler = scheduler
        self.detector = detector
        self.supervisor: VoiceCommandSupervisor | None = None
        self.sessions = 0

    async def listen(self):
        self.sessions += 1
        if self.sessions > 1:
            self.supervisor.stop()
            return
        yield "start detection"
        await _until(lambda: self.scheduler.state is SessionState.STARTING)
        yield "stop detection"
        self.detector.gate.set()
        await _until(lambda: self.scheduler.state is SessionState.IDLE)


def test_stop_is_heard_while_start_is_still_loading() -> None:
    scheduler, camera, detector = _gated_scheduler()
    recognizer = _StopWhileLoadingRecognizer(scheduler, detector)
    supervisor = VoiceCommandSupervisor(recognizer, scheduler, scheduler.feedback)
    recognizer.supervisor = supervisor

    asyncio.run(supervisor.run())

    assert scheduler.state is SessionState.IDLE
    assert scheduler.feedback.speech.backend.texts == [READY_TEXT, STOPPED_TEXT]
    assert STARTED_TEXT not in scheduler.feedback.speech.backend.texts
    assert len(camera.sources) == 1
    assert camera.sources[0].stop_count == 1


class _LeaveWhileLoadingRecognizer:
    def __init__(self, scheduler: DetectionScheduler) -> None:
        self.scheduler = scheduler
        self.supervisor: VoiceCommandSupervisor | None = None

    async def listen(self):
        yield "start detection"
        await _until(lambda: self.scheduler.state is SessionState.STARTING)
        self.supervisor.stop()


def test_supervisor_stop_cancels_pending_start() -> None:
    scheduler, camera, _ = _gated_scheduler()
    recognizer = _LeaveWhileLoadingRecognizer(scheduler)
    supervisor = VoiceCommandSupervisor(recognizer, scheduler, scheduler.feedback)
    recognizer.supervisor = supervisor

    asyncio.run(supervisor.run())

    assert scheduler.state is SessionState.IDLE
    assert camera.sources == []
    assert STARTED_TEXT not in scheduler.feedback.speech.backend.texts


def test_repeated_start_while_loading_dispatches_once() -> None:
    scheduler, camera, detector = _gated_scheduler()
    loads = []
    original_load = detector.load

    async def counting_load() -> None:
        loads.append(1)
        await original_load()

    detector.load = counting_load

    class _Recognizer:
        async def listen(self):
            yield "start detection"
            await _until(lambda: scheduler.state is SessionState.STARTING)
            yield "start detection"
            detector.gate.set()
            await _until(lambda: scheduler.is_running)
            supervisor.stop()

    supervisor = VoiceCommandSupervisor(_Recognizer(), scheduler, scheduler.feedback)

    async def scenario() -> None:
        await supervisor.run()
        scheduler.stop()
        await scheduler.wait_closed()

    asyncio.run(scenario())

    assert loads == [1]
    assert len(camera.sources) == 1

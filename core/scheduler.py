"""Detection loop scheduler and session lifecycle."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
import time
from typing import Any, Awaitable, Callable, Mapping, Sequence

from core.logging import log_alarm_transition, log_info, log_warning, logger
from hardware.camera import Camera, CameraUnavailableError, FrameSource
from hardware.detector import Detector, DetectorUnavailableError
from hardware.overlay import NullOverlay, Overlay
from interaction.feedback import FeedbackController
from vision.arbitration import AlarmState, AlertArbitrator, ArbitrationDecision
from vision.detections import Detection, Frame, ScoredObject
from vision.perception import PerceptionFilter


STARTED_TEXT = "Detection started"
STOPPED_TEXT = "Detection stopped"
ALREADY_STOPPED_TEXT = "Already stopped"


class SessionState(str, Enum):
    """Lifecycle of the single detection session."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"


@dataclass(frozen=True)
class DetectionConfig:
    """Detector and loop pacing settings."""

    model_path: str = "yolov8n.pt"
    model_threshold: float = 0.3
    frame_interval_ms: int = 350
    idle_yield_ms: int = 50

    @property
    def frame_interval_s(self) -> float:
        return max(0, self.frame_interval_ms) / 1000.0

    @property
    def idle_yield_s(self) -> float:
        return max(0, self.idle_yield_ms) / 1000.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "DetectionConfig":
        detection_cfg = config.get("detection") if isinstance(config, Mapping) else None
        if not isinstance(detection_cfg, Mapping):
            return cls()
        return cls(
            model_path=str(detection_cfg.get("model_path", "yolov8n.pt")),
            model_threshold=float(detection_cfg.get("model_threshold", 0.3)),
            frame_interval_ms=int(detection_cfg.get("frame_interval_ms", 350)),
            idle_yield_ms=int(detection_cfg.get("idle_yield_ms", 50)),
        )


@dataclass
class DetectionSession:
    """A live camera stream bound to the running flag for one start/stop span."""

    source: FrameSource
    running: bool = True
    cycles: int = 0
    last_cycle_started: float | None = None


def _start_failure_message(exc: BaseException) -> str:
    if isinstance(exc, CameraUnavailableError):
        return "Camera not available. Detection not started"
    if isinstance(exc, DetectorUnavailableError):
        return "Detection model not available. Detection not started"
    return "Could not start detection"


class DetectionScheduler:
    """Drives Frame -> Detections -> Filter -> Arbitrator -> Feedback cycles.

    ``start`` and ``stop`` are safe to call redundantly from any caller; only
    one camera stream and one loop task can exist at a time.
    """

    def __init__(
        self,
        camera: Camera,
        detector: Detector,
        perception: PerceptionFilter,
        arbitrator: AlertArbitrator,
        feedback: FeedbackController,
        overlay: Overlay | None = None,
        config: DetectionConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.camera = camera
        self.detector = detector
        self.perception = perception
        self.arbitrator = arbitrator
        self.feedback = feedback
        self.overlay = overlay or NullOverlay()
        self.config = config or DetectionConfig()
        self._clock = clock
        self._sleep = sleep
        self._state = SessionState.IDLE
        self._session: DetectionSession | None = None
        self._loop_task: asyncio.Task[None] | None = None
        self._abort_start = False
        self._alarm = AlarmState.SAFE
        self.last_decision: ArbitrationDecision | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SessionState.RUNNING

    @property
    def session(self) -> DetectionSession | None:
        return self._session

    async def start(self) -> bool:
        """Acquire model and camera, then spawn the loop. No-op unless idle."""

        if self._state is not SessionState.IDLE:
            logger.info("[SCHEDULER] Start ignored (state=%s)", self._state.value)
            return False

        self._state = SessionState.STARTING
        self._abort_start = False
        try:
            await self.detector.load()
            source = await self.camera.start()
        except asyncio.CancelledError:
            self._state = SessionState.IDLE
            raise
        except Exception as exc:
            self._state = SessionState.IDLE
            log_warning(f"[SCHEDULER] Could not start detection: {exc}")
            self.feedback.announce(_start_failure_message(exc))
            return False

        if self._abort_start:
            self._abort_start = False
            self._release_source(source)
            self._state = SessionState.IDLE
            logger.info("[SCHEDULER] Start aborted by stop request")
            self.feedback.announce(STOPPED_TEXT)
            return False

        session = DetectionSession(source=source)
        self._session = session
        self._alarm = AlarmState.SAFE
        self._state = SessionState.RUNNING
        log_info("[SCHEDULER] Detection started", style="bold green")
        self.feedback.announce(STARTED_TEXT)
        self._loop_task = asyncio.create_task(self._run_loop(session), name="detection-loop")
        return True

    def stop(self) -> bool:
        """Tear the session down synchronously. Announces if already stopped."""

        if self._state is SessionState.IDLE:
            logger.info("[SCHEDULER] Stop ignored; already stopped")
            self.feedback.announce(ALREADY_STOPPED_TEXT)
            return False

        if self._state is SessionState.STARTING:
            self._abort_start = True
            return True

        session, self._session = self._session, None
        self._state = SessionState.IDLE
        if session is not None:
            session.running = False
        self.feedback.silence()
        if session is not None:
            self._release_source(session.source)
        self._clear_overlay()
        self._cancel_loop_task()
        if self._alarm is not AlarmState.SAFE:
            log_alarm_transition(self._alarm.value, AlarmState.SAFE.value, 0.0)
            self._alarm = AlarmState.SAFE
        logger.info(
            "[SCHEDULER] Detection stopped after %s cycles",
            session.cycles if session is not None else 0,
        )
        self.feedback.announce(STOPPED_TEXT)
        return True

    async def wait_closed(self) -> None:
        task = self._loop_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def run_cycle(self, session: DetectionSession) -> ArbitrationDecision | None:
        """Run one cycle; returns None if the session stopped mid-cycle."""

        frame: Frame | None = None
        detections: Sequence[Detection]
        try:
            frame = await session.source.read()
            detections = await self.detector.detect(frame)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("[SCHEDULER] Detection failed; treating cycle as empty: %s", exc)
            detections = []

        if not session.running:
            return None

        frame_width = frame.width if frame is not None else session.source.width
        objects = self.perception.filter(detections, frame_width)
        decision = self.arbitrator.arbitrate(objects)
        self._render_overlay(frame, objects)
        self.feedback.render(decision)
        self._track(decision)
        session.cycles += 1
        return decision

    async def _run_loop(self, session: DetectionSession) -> None:
        interval_s = self.config.frame_interval_s
        yield_s = self.config.idle_yield_s
        while session.running:
            now = self._clock()
            if session.last_cycle_started is not None:
                remaining = interval_s - (now - session.last_cycle_started)
                if remaining > 0:
                    await self._sleep(min(yield_s, remaining) if yield_s > 0 else remaining)
                    continue
            session.last_cycle_started = now
            try:
                await self.run_cycle(session)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("[SCHEDULER] Cycle failed; continuing")
            await self._sleep(yield_s)

    def _track(self, decision: ArbitrationDecision) -> None:
        self.last_decision = decision
        if decision.alarm is not self._alarm:
            log_alarm_transition(self._alarm.value, decision.alarm.value, decision.nearest_distance_m)
            self._alarm = decision.alarm
        logger.debug(
            "[SCHEDULER] objects=%s alarm=%s nearest=%.2f",
            decision.object_count,
            decision.alarm.value,
            decision.nearest_distance_m,
        )

    def _render_overlay(self, frame: Frame | None, objects: Sequence[ScoredObject]) -> None:
        if frame is None:
            return
        try:
            self.overlay.render(frame, objects)
        except Exception:
            logger.exception("[SCHEDULER] Overlay render failed")

    def _clear_overlay(self) -> None:
        try:
            self.overlay.clear()
        except Exception:
            logger.exception("[SCHEDULER] Overlay clear failed")

    def _release_source(self, source: FrameSource) -> None:
        try:
            source.stop()
        except Exception:
            logger.exception("[SCHEDULER] Camera release failed")

    def _cancel_loop_task(self) -> None:
        task = self._loop_task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

"""Self-restarting voice command supervisor."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Protocol

from core.logging import log_warning, logger
from interaction.feedback import FeedbackController
from interaction.recognizer import RecognizerUnavailableError, TranscriptSource


READY_TEXT = "Voice ready. Say start detection or stop detection."
UNSUPPORTED_TEXT = "Voice not supported on this device"


class VoiceCommand(str, Enum):
    START = "start"
    STOP = "stop"


class DetectionControl(Protocol):
    async def start(self) -> Any:
        ...

    def stop(self) -> Any:
        ...


def parse_command(text: str) -> VoiceCommand | None:
    """Map a transcript onto a command by substring; "start" wins over "stop"."""

    lowered = text.lower()
    if "start" in lowered:
        return VoiceCommand.START
    if "stop" in lowered or "pause" in lowered:
        return VoiceCommand.STOP
    return None


class VoiceCommandSupervisor:
    """Keeps the recognizer alive and routes commands to the scheduler.

    Starting detection runs as its own task so transcripts, including a
    "stop" for a start still in progress, keep flowing during model load and
    camera open.
    """

    def __init__(
        self,
        recognizer: TranscriptSource | None,
        scheduler: DetectionControl,
        feedback: FeedbackController,
        restart_delay_ms: int = 0,
    ) -> None:
        self.recognizer = recognizer
        self.scheduler = scheduler
        self.feedback = feedback
        self.restart_delay_s = max(0, int(restart_delay_ms)) / 1000.0
        self.restart_count = 0
        self._stopped = False
        self._unsupported_announced = False
        self._start_task: asyncio.Task[Any] | None = None

    def stop(self) -> None:
        self._stopped = True
        task = self._start_task
        if task is not None and not task.done():
            task.cancel()

    async def run(self) -> None:
        try:
            await self._supervise()
        finally:
            await self._settle_start_task()

    async def _supervise(self) -> None:
        if self.recognizer is None:
            self._announce_unsupported("no recognizer configured")
            return

        self._stopped = False
        self.feedback.announce(READY_TEXT)
        while not self._stopped:
            stream = self.recognizer.listen()
            try:
                async for transcript in stream:
                    if self._stopped:
                        break
                    await self.handle_transcript(transcript)
                else:
                    logger.info("[VOICE] Recognition stream ended")
            except asyncio.CancelledError:
                raise
            except RecognizerUnavailableError as exc:
                self._announce_unsupported(str(exc))
                return
            except Exception as exc:
                logger.warning("[VOICE] Recognition stream failed: %s", exc)
            finally:
                aclose = getattr(stream, "aclose", None)
                if aclose is not None:
                    await aclose()

            if self._stopped:
                break
            self.restart_count += 1
            logger.info("[VOICE] Restarting recognizer (restart #%s)", self.restart_count)
            await asyncio.sleep(self.restart_delay_s)

    async def handle_transcript(self, text: str) -> VoiceCommand | None:
        command = parse_command(text)
        logger.info("[VOICE] Heard: %s", text)
        if command is VoiceCommand.START:
            self._dispatch_start()
        elif command is VoiceCommand.STOP:
            self.scheduler.stop()
        return command

    def _dispatch_start(self) -> None:
        if self._start_task is not None and not self._start_task.done():
            logger.info("[VOICE] Start already in progress")
            return
        self._start_task = asyncio.create_task(self.scheduler.start(), name="voice-start")
        self._start_task.add_done_callback(self._on_start_done)

    def _on_start_done(self, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            logger.info("[VOICE] Start cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("[VOICE] Start failed: %s", exc)

    async def _settle_start_task(self) -> None:
        task = self._start_task
        if task is None:
            return
        if self._stopped and not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self._start_task = None

    def _announce_unsupported(self, reason: str) -> None:
        log_warning(f"[VOICE] Voice commands unavailable: {reason}")
        if self._unsupported_announced:
            return
        self._unsupported_announced = True
        self.feedback.announce(UNSUPPORTED_TEXT)

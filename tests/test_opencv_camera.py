"""Tests for the OpenCV camera adapter with a stand-in cv2 module."""

from __future__ import annotations

import asyncio
import threading
from types import SimpleNamespace

import pytest

from hardware.camera import CameraConfig, CameraUnavailableError, OpenCVCamera


def _fake_cv2(capture_cls) -> SimpleNamespace:
    return SimpleNamespace(
        VideoCapture=capture_cls,
        CAP_PROP_FRAME_WIDTH=3,
        CAP_PROP_FRAME_HEIGHT=4,
        CAP_PROP_BUFFERSIZE=38,
    )


class _Capture:
    opened = True

    def __init__(self, index: int) -> None:
        self.index = index
        self.released = False
        self.props: dict[int, float] = {}

    def isOpened(self) -> bool:
        return self.opened

    def set(self, prop: int, value: float) -> bool:
        self.props[prop] = value
        return True

    def get(self, prop: int) -> float:
        return self.props.get(prop, 0)

    def release(self) -> None:
        self.released = True


def test_start_opens_device_with_single_frame_buffer(monkeypatch) -> None:
    monkeypatch.setattr("hardware.camera._require_cv2", lambda: _fake_cv2(_Capture))

    source = asyncio.run(OpenCVCamera(CameraConfig(device_index=2, width=320, height=240)).start())

    assert (source.width, source.height) == (320, 240)
    assert source._capture.index == 2
    assert source._capture.props[38] == 1
    source.stop()
    source.stop()
    assert source.is_open is False


def test_unopened_device_raises_and_releases(monkeypatch) -> None:
    created: list[_Capture] = []

    class _Closed(_Capture):
        opened = False

        def __init__(self, index: int) -> None:
            super().__init__(index)
            created.append(self)

    monkeypatch.setattr("hardware.camera._require_cv2", lambda: _fake_cv2(_Closed))

    with pytest.raises(CameraUnavailableError):
        asyncio.run(OpenCVCamera().start())
    assert created[0].released is True


def test_cancelled_start_releases_capture_opened_afterwards(monkeypatch) -> None:
    entered = threading.Event()
    gate = threading.Event()
    created: list[_Capture] = []

    class _SlowCapture(_Capture):
        def __init__(self, index: int) -> None:
            super().__init__(index)
            created.append(self)
            entered.set()
            gate.wait(timeout=5.0)

    monkeypatch.setattr("hardware.camera._require_cv2", lambda: _fake_cv2(_SlowCapture))

    async def scenario() -> None:
        task = asyncio.create_task(OpenCVCamera().start())
        while not entered.is_set():
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        gate.set()

    asyncio.run(scenario())

    assert created[0].released is True

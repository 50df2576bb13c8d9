# core/capture.py
"""
Camera capture session.

Owns the OpenCV device handle, a frame pump that keeps the latest frame, and
the fixed-period sampling schedule. stop() is the single teardown path: it
cancels the schedule and any tick still in flight, then releases the device.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

import cv2
import numpy as np

from core.config import Settings
from core.errors import CameraAccessDenied
from core.models import CameraState

logger = logging.getLogger(__name__)

SampleCallback = Callable[[Optional[np.ndarray]], Awaitable[Any]]

# How long stop() waits for a blocking read to return before giving up on it
READ_DRAIN_TIMEOUT = 1.0


class CaptureSession:
    """IDLE -> STARTING -> ACTIVE -> IDLE; STARTING -> IDLE when the camera can't be opened."""

    def __init__(self, settings: Settings, on_sample: SampleCallback):
        self.s = settings
        self._on_sample = on_sample
        self.state: CameraState = "IDLE"
        self._cap = None
        self._frame: Optional[np.ndarray] = None
        self._pumping = False
        self._frame_task: Optional[asyncio.Task] = None
        self._sample_task: Optional[asyncio.Task] = None
        self._ticks: Set[asyncio.Task] = set()
        self.frames_read = 0

    # ---- lifecycle ----
    async def start(self) -> None:
        if self.state != "IDLE":
            return
        self.state = "STARTING"
        idx = self.s.CAMERA_INDEX
        try:
            cap, frame = await asyncio.to_thread(self._open)
        except CameraAccessDenied:
            self.state = "IDLE"
            logger.warning(f"[capture] camera index {idx} unavailable")
            raise
        except Exception as e:
            self.state = "IDLE"
            logger.exception(f"[capture] camera index {idx} failed to open")
            raise CameraAccessDenied(idx, str(e)) from e

        if self.state != "STARTING":
            # stop() ran while we were acquiring the device
            cap.release()
            return

        self._cap = cap
        self._publish(frame)
        self.state = "ACTIVE"
        self._pumping = True
        self._frame_task = asyncio.create_task(self._frame_loop())
        self._sample_task = asyncio.create_task(self._sample_loop())
        logger.info(f"[capture] camera {idx} active {self.s.FRAME_WIDTH}x{self.s.FRAME_HEIGHT}@{self.s.TARGET_FPS}")

    async def stop(self) -> None:
        self.state = "IDLE"
        self._pumping = False
        pending = [t for t in (self._sample_task, *self._ticks) if t is not None]
        for t in pending:
            t.cancel()
        try:
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            if self._frame_task is not None:
                # Let the pump finish its current read so release() never races it
                _done, still = await asyncio.wait({self._frame_task}, timeout=READ_DRAIN_TIMEOUT)
                for t in still:
                    t.cancel()
        finally:
            cap, self._cap = self._cap, None
            self._frame_task = None
            self._sample_task = None
            self._ticks.clear()
            self._frame = None
            if cap is not None:
                cap.release()
                logger.info("[capture] camera released")

    async def __aenter__(self) -> "CaptureSession":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    # ---- frames ----
    @property
    def active(self) -> bool:
        return self.state == "ACTIVE"

    @property
    def latest_frame(self) -> Optional[np.ndarray]:
        return self._frame

    def _publish(self, frame) -> None:
        if isinstance(frame, np.ndarray):
            # Shared with the classifier; nobody may write into it
            frame.setflags(write=False)
        self._frame = frame
        self.frames_read += 1

    def _open(self):
        idx = self.s.CAMERA_INDEX
        cap = cv2.VideoCapture(idx)
        if not cap.isOpened():
            cap.release()
            raise CameraAccessDenied(idx, "device could not be opened")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.s.FRAME_WIDTH)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.s.FRAME_HEIGHT)
        cap.set(cv2.CAP_PROP_FPS, self.s.TARGET_FPS)
        ok, frame = cap.read()
        if not ok:
            cap.release()
            raise CameraAccessDenied(idx, "device produced no frames")
        return cap, frame

    # ---- loops ----
    async def _frame_loop(self) -> None:
        loop = asyncio.get_running_loop()
        period = 1.0 / max(1.0, float(self.s.TARGET_FPS))
        cap = self._cap
        while self._pumping:
            t0 = loop.time()
            try:
                ok, frame = await asyncio.to_thread(cap.read)
            except Exception:
                logger.exception("[capture] frame read failed")
                ok, frame = False, None
            if not self._pumping:
                break
            if ok and frame is not None:
                self._publish(frame)
            await asyncio.sleep(max(0.0, period - (loop.time() - t0)))

    async def _sample_loop(self) -> None:
        loop = asyncio.get_running_loop()
        interval = float(self.s.SAMPLE_INTERVAL)
        next_t = loop.time()
        while self.state == "ACTIVE":
            next_t += interval
            await asyncio.sleep(max(0.0, next_t - loop.time()))
            if self.state != "ACTIVE":
                break
            # Not awaited: a slow tick must not delay the schedule
            task = asyncio.create_task(self._on_sample(self._frame))
            self._ticks.add(task)
            task.add_done_callback(self._tick_done)

    def _tick_done(self, task: asyncio.Task) -> None:
        self._ticks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[capture] sampling tick raised: {exc!r}")

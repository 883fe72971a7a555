"""
Per-tick pose sampling loop.

The loop ticks at the display refresh rate and keeps ticking in every
phase. Whether a tick does any detection work is decided by the current
phase's QualityPolicy through SamplingGate, so sampling resumes on the
first tick after the phase returns to PREVIEW without re-opening the camera
or the pose tracker.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional

import numpy as np

from booth.errors import DetectionRuntimeError
from booth.gesture import NO_GESTURE, GestureDetector, GestureState
from booth.mode_controller import ModeController
from booth.pose.base import PoseSource
from booth.pose.types import LandmarkFrame
from booth.quality import SamplingGate

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
	return time.monotonic() * 1000.0


class PoseState:
	"""Latest sampled pose data. Written only by SamplingLoop."""

	def __init__(self) -> None:
		self.frame: Optional[LandmarkFrame] = None
		self.gesture: GestureState = NO_GESTURE
		self.is_tracking: bool = False
		self.last_sample_ms: Optional[float] = None


class SamplingLoop:
	def __init__(
		self,
		frame_source: Callable[[], Optional[np.ndarray]],
		pose_source: Optional[PoseSource],
		detector: GestureDetector,
		controller: ModeController,
		tick_hz: float = 60.0,
		clock: Callable[[], float] = monotonic_ms,
	) -> None:
		self._frame_source = frame_source
		self.pose_source = pose_source
		self._detector = detector
		self._controller = controller
		self._tick_s = 1.0 / float(tick_hz) if tick_hz > 0 else 1.0 / 60.0
		self._clock = clock
		self._gate = SamplingGate()
		self._stop = asyncio.Event()
		self._listeners: List[Callable[[PoseState], None]] = []
		self.state = PoseState()
		self.errors = 0
		self._frozen = False
		controller.add_listener(self._on_phase_change)

	def _on_phase_change(self, controller: ModeController) -> None:
		if controller.quality.freeze_sampling:
			self._freeze()

	def add_listener(self, fn: Callable[[PoseState], None]) -> None:
		self._listeners.append(fn)

	async def tick(self, now_ms: Optional[float] = None) -> bool:
		"""Run one tick. Returns True when detection ran on this tick."""
		now_ms = self._clock() if now_ms is None else float(now_ms)
		policy = self._controller.quality
		if policy.freeze_sampling:
			self._freeze()
			return False
		self._frozen = False
		if not self._gate.should_sample(policy, now_ms):
			return False
		if self.pose_source is None:
			return False
		rgb = self._frame_source()
		if rgb is None:
			return False

		loop = asyncio.get_running_loop()
		try:
			frame = await loop.run_in_executor(None, self.pose_source.infer_rgb, rgb, now_ms)
		except Exception as e:
			self.errors += 1
			err = DetectionRuntimeError(f"pose inference failed: {e!r}")
			logger.warning("[Sampling] %s (tick skipped)", err)
			return False

		# The phase may have frozen sampling while inference was running.
		if self._controller.quality.freeze_sampling:
			self._freeze()
			return False

		prev = self.state.gesture
		was_tracking = self.state.is_tracking
		self.state.frame = frame
		self.state.is_tracking = frame is not None
		self.state.last_sample_ms = now_ms
		self.state.gesture = self._detector.update(frame, now_ms)

		self._controller.on_gesture(self.state.gesture)
		if self.state.gesture != prev or self.state.is_tracking != was_tracking:
			for fn in list(self._listeners):
				try:
					fn(self.state)
				except Exception:
					logger.exception("[Sampling] Listener failed")
		return True

	def _freeze(self) -> None:
		# A hold never spans a frozen phase: after unfreezing it restarts from zero.
		if self._frozen:
			return
		self._frozen = True
		self._detector.reset()
		self.state.gesture = NO_GESTURE

	async def run(self) -> None:
		logger.info("[Sampling] Loop started (%.0f Hz tick)", 1.0 / self._tick_s)
		self._stop.clear()
		while not self._stop.is_set():
			await self.tick()
			try:
				await asyncio.wait_for(self._stop.wait(), timeout=self._tick_s)
			except asyncio.TimeoutError:
				pass
		logger.info("[Sampling] Loop stopped")

	def stop(self) -> None:
		self._stop.set()

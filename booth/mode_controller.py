"""
Interaction state machine for the kiosk.

The controller is the only writer of the current InteractionPhase, the
countdown value and the error message. Every phase change goes through
`_transition`, which rejects edges not listed in `booth.phase.TRANSITIONS`
and cancels every timer owned by the phase being left.

Everything here runs on the asyncio event loop thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from booth.capture.pipeline import CapturePipeline, PipelineOutcome
from booth.config import CountdownConfig, DisplayConfig
from booth.errors import PipelineStageError
from booth.gesture import GestureKind, GestureState
from booth.phase import InteractionPhase, can_transition
from booth.quality import QualityPolicy, policy_for
from booth.timers import PhaseTimers

logger = logging.getLogger(__name__)

P = InteractionPhase

Listener = Callable[["ModeController"], None]


class ModeController:
	def __init__(
		self,
		pipeline: CapturePipeline,
		countdown_cfg: Optional[CountdownConfig] = None,
		display_cfg: Optional[DisplayConfig] = None,
	) -> None:
		self.pipeline = pipeline
		self.countdown_cfg = countdown_cfg or CountdownConfig()
		self.display_cfg = display_cfg or DisplayConfig()

		self.phase: InteractionPhase = P.PREVIEW
		self.countdown_value: int = int(self.countdown_cfg.seconds)
		self.error_message: Optional[str] = None

		self._timers = PhaseTimers()
		self._listeners: List[Listener] = []
		self._capture_task: Optional[asyncio.Task] = None
		# Incremented per capture attempt; outcomes of older attempts are ignored.
		self._attempt = 0

	@property
	def quality(self) -> QualityPolicy:
		return policy_for(self.phase)

	@property
	def active_timers(self):
		return self._timers.active()

	# ---- listeners ----

	def add_listener(self, fn: Listener) -> None:
		self._listeners.append(fn)

	def remove_listener(self, fn: Listener) -> None:
		try:
			self._listeners.remove(fn)
		except ValueError:
			pass

	def _notify(self) -> None:
		for fn in list(self._listeners):
			try:
				fn(self)
			except Exception:
				logger.exception("[Mode] Listener failed")

	# ---- transitions ----

	def _transition(self, dst: InteractionPhase, reason: str) -> bool:
		src = self.phase
		if not can_transition(src, dst):
			logger.debug("[Mode] Rejected %s -> %s (%s)", src.value, dst.value, reason)
			return False
		self._timers.cancel_all()
		self.phase = dst
		logger.info("[Mode] %s -> %s (%s)", src.value, dst.value, reason)
		return True

	def on_gesture(self, gesture: GestureState) -> bool:
		"""Feed a surfaced GestureState. Starts the countdown on a hand-raise trigger in PREVIEW."""
		if self.phase is not P.PREVIEW:
			return False
		if not gesture.detected or gesture.kind is not GestureKind.HAND_RAISE:
			return False
		return self.start_countdown()

	def start_countdown(self) -> bool:
		if not self._transition(P.COUNTDOWN, "hand raised"):
			return False
		self.countdown_value = int(self.countdown_cfg.seconds)
		self._timers.call_every("countdown", float(self.countdown_cfg.tick_interval_s), self._on_countdown_tick)
		self._notify()
		return True

	def _on_countdown_tick(self) -> None:
		if self.phase is not P.COUNTDOWN:
			return
		if self.countdown_value <= 1:
			self.countdown_value = 0
			self._begin_capture()
			return
		self.countdown_value -= 1
		self._notify()

	def cancel_countdown(self) -> bool:
		if self.phase is not P.COUNTDOWN:
			return False
		return self._return_to_preview("countdown cancelled")

	def _begin_capture(self) -> None:
		if self.pipeline.busy:
			self.fail(str(PipelineStageError("capture", "previous capture still in progress")))
			return
		if not self._transition(P.CAPTURING, "countdown finished"):
			return
		self._attempt += 1
		attempt = self._attempt
		self._notify()
		self._capture_task = asyncio.get_running_loop().create_task(self._run_capture(attempt))

	async def _run_capture(self, attempt: int) -> None:
		try:
			outcome: PipelineOutcome = await self.pipeline.run(on_composed=lambda: self._on_composed(attempt))
		except Exception as e:
			logger.exception("[Mode] Capture pipeline crashed")
			outcome = PipelineOutcome(error=PipelineStageError("capture", repr(e)))
		if attempt != self._attempt or self.phase not in (P.CAPTURING, P.UPLOADING):
			logger.info("[Mode] Ignoring outcome of superseded capture attempt %d", attempt)
			if self.phase not in (P.UPLOADING, P.DISPLAY, P.ERROR):
				self.pipeline.discard()
			return
		if outcome.ok:
			self._show_result()
		else:
			self.fail(str(outcome.error))

	def _on_composed(self, attempt: int) -> None:
		if attempt != self._attempt or self.phase is not P.CAPTURING:
			return
		if self._transition(P.UPLOADING, "photo composed"):
			self._notify()

	def _show_result(self) -> None:
		if not self._transition(P.DISPLAY, "share ready"):
			return
		self._timers.call_later(
			"display_timeout",
			float(self.display_cfg.qr_timeout_ms) / 1000.0,
			lambda: self._return_to_preview("display timeout"),
		)
		self._notify()

	def fail(self, message: str) -> bool:
		"""Enter ERROR with a user-facing message; auto-dismisses after error_dismiss_ms."""
		if not self._transition(P.ERROR, "failure"):
			return False
		self.error_message = message
		logger.warning("[Mode] %s", message)
		self._timers.call_later(
			"error_dismiss",
			float(self.display_cfg.error_dismiss_ms) / 1000.0,
			lambda: self._return_to_preview("error auto-dismiss"),
		)
		self._notify()
		return True

	def dismiss(self) -> bool:
		"""User tap. Valid only in DISPLAY and ERROR."""
		if self.phase not in (P.DISPLAY, P.ERROR):
			logger.debug("[Mode] Dismiss ignored in %s", self.phase.value)
			return False
		return self._return_to_preview("user dismissed")

	def _return_to_preview(self, reason: str) -> bool:
		if not self._transition(P.PREVIEW, reason):
			return False
		self.pipeline.discard()
		self.countdown_value = int(self.countdown_cfg.seconds)
		self.error_message = None
		self._notify()
		return True

	async def shutdown(self) -> None:
		self._timers.cancel_all()
		task = self._capture_task
		if task is not None and not task.done():
			task.cancel()
			try:
				await task
			except asyncio.CancelledError:
				pass
		self._capture_task = None

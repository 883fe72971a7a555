from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from booth.config import GestureConfig
from booth.pose.types import Landmark, LandmarkFrame, PoseLandmark

logger = logging.getLogger(__name__)


class GestureKind(str, Enum):
	NONE = "none"
	HAND_RAISE = "hand_raise"


@dataclass(frozen=True)
class GestureState:
	detected: bool = False
	kind: GestureKind = GestureKind.NONE
	confidence: float = 0.0


NO_GESTURE = GestureState()


def _visible(lm: Optional[Landmark], min_visibility: float) -> bool:
	if lm is None:
		return False
	v = float(lm.visibility)
	return math.isfinite(v) and v > min_visibility and math.isfinite(float(lm.y))


def detect_hand_raise(frame: Optional[LandmarkFrame], cfg: Optional[GestureConfig] = None) -> GestureState:
	"""
	Instantaneous hand-raise check for a single frame (no hold or cooldown).

	A side counts only when both its wrist and shoulder are visible. The
	shoulder midpoint is averaged over the visible shoulders, so a person seen
	from one side is evaluated on that side alone. Returns NO_GESTURE when
	nobody is tracked or neither side is visible.
	"""
	cfg = cfg or GestureConfig()
	if frame is None:
		return NO_GESTURE

	min_vis = float(cfg.min_visibility)
	l_wrist = frame.get(PoseLandmark.LEFT_WRIST)
	r_wrist = frame.get(PoseLandmark.RIGHT_WRIST)
	l_shoulder = frame.get(PoseLandmark.LEFT_SHOULDER)
	r_shoulder = frame.get(PoseLandmark.RIGHT_SHOULDER)

	left_visible = _visible(l_wrist, min_vis) and _visible(l_shoulder, min_vis)
	right_visible = _visible(r_wrist, min_vis) and _visible(r_shoulder, min_vis)
	if not left_visible and not right_visible:
		return NO_GESTURE

	shoulders = [s.y for s in (l_shoulder, r_shoulder) if _visible(s, min_vis)]
	shoulder_y = sum(shoulders) / len(shoulders)

	confidence = 0.0
	raised = False
	for visible, wrist in ((left_visible, l_wrist), (right_visible, r_wrist)):
		if not visible:
			continue
		height = shoulder_y - float(wrist.y)
		if height > cfg.raise_margin and height > 0.0:
			raised = True
			confidence = max(confidence, height / float(cfg.confidence_span))

	if not raised:
		return NO_GESTURE
	confidence = min(1.0, max(0.0, confidence))
	return GestureState(detected=True, kind=GestureKind.HAND_RAISE, confidence=confidence)


class GestureDetector:
	"""
	Debounced hand-raise trigger over a stream of sampled landmark frames.

	Per update:
	  - Loss of tracking (None frame, or neither side visible) resets the hold
	    timer and reports NO_GESTURE. An active cooldown is left untouched.
	  - While a raise is in progress the surfaced state carries kind and
	    confidence for UI prompts, but `detected` stays False.
	  - Once the raise has held continuously for `hold_ms`, one update returns
	    `detected=True` and the cooldown starts.
	  - During the cooldown the raise is still evaluated, `detected` is forced
	    False, and the hold timer stays unstarted, so the next trigger needs a
	    fresh full hold after the cooldown ends.

	Timestamps are monotonic milliseconds supplied by the caller.
	"""

	def __init__(self, cfg: Optional[GestureConfig] = None) -> None:
		self.cfg = cfg or GestureConfig()
		self._hold_start_ms: Optional[float] = None
		self._last_trigger_ms: Optional[float] = None
		self.state: GestureState = NO_GESTURE

	@property
	def holding(self) -> bool:
		return self._hold_start_ms is not None

	def in_cooldown(self, now_ms: float) -> bool:
		if self._last_trigger_ms is None:
			return False
		return (float(now_ms) - self._last_trigger_ms) < float(self.cfg.cooldown_ms)

	def update(self, frame: Optional[LandmarkFrame], now_ms: float) -> GestureState:
		now_ms = float(now_ms)
		raw = detect_hand_raise(frame, self.cfg)

		if not raw.detected:
			self._hold_start_ms = None
			self.state = NO_GESTURE
			return self.state

		if self.in_cooldown(now_ms):
			self._hold_start_ms = None
			self.state = GestureState(detected=False, kind=raw.kind, confidence=raw.confidence)
			return self.state

		if self._hold_start_ms is None:
			self._hold_start_ms = now_ms

		if now_ms - self._hold_start_ms >= float(self.cfg.hold_ms):
			self._hold_start_ms = None
			self._last_trigger_ms = now_ms
			self.state = raw
			logger.info("[Gesture] Hand raise triggered (confidence=%.2f)", raw.confidence)
			return self.state

		self.state = GestureState(detected=False, kind=raw.kind, confidence=raw.confidence)
		return self.state

	def reset(self) -> None:
		"""Forget any hold in progress. The cooldown is kept."""
		self._hold_start_ms = None
		self.state = NO_GESTURE

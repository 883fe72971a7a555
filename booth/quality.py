"""
Phase-driven sensor sampling policy.

QualityPolicy is never stored on its own: it is always looked up from the
current InteractionPhase through `policy_for`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from booth.phase import InteractionPhase


@dataclass(frozen=True)
class QualityPolicy:
	sampling_hz: int
	render_scale: float
	freeze_sampling: bool


PREVIEW_POLICY = QualityPolicy(sampling_hz=30, render_scale=1.0, freeze_sampling=False)
COUNTDOWN_POLICY = QualityPolicy(sampling_hz=15, render_scale=1.5, freeze_sampling=False)
FROZEN_POLICY = QualityPolicy(sampling_hz=0, render_scale=2.0, freeze_sampling=True)

QUALITY_TABLE: Dict[InteractionPhase, QualityPolicy] = {
	InteractionPhase.PREVIEW: PREVIEW_POLICY,
	InteractionPhase.COUNTDOWN: COUNTDOWN_POLICY,
	InteractionPhase.CAPTURING: FROZEN_POLICY,
	InteractionPhase.UPLOADING: FROZEN_POLICY,
	InteractionPhase.DISPLAY: FROZEN_POLICY,
	# Frozen, not the preview policy: sampling resumes only on ERROR -> PREVIEW.
	InteractionPhase.ERROR: FROZEN_POLICY,
}


def policy_for(phase: InteractionPhase) -> QualityPolicy:
	return QUALITY_TABLE[InteractionPhase(phase)]


class SamplingGate:
	"""
	Throttles the per-tick sampling loop to the policy's rate.

	A frozen policy never samples and does not touch the last-processed time,
	so sampling resumes on the very next tick after unfreezing.
	"""

	def __init__(self) -> None:
		self._last_processed_ms: Optional[float] = None

	def should_sample(self, policy: QualityPolicy, now_ms: float) -> bool:
		if policy.freeze_sampling or policy.sampling_hz <= 0:
			return False
		interval_ms = 1000.0 / float(policy.sampling_hz)
		if self._last_processed_ms is not None and (float(now_ms) - self._last_processed_ms) < interval_ms:
			return False
		self._last_processed_ms = float(now_ms)
		return True

	def reset(self) -> None:
		self._last_processed_ms = None

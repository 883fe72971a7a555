from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple


class PoseLandmark(IntEnum):
	"""MediaPipe Pose (33-point) landmark indices used by the booth."""

	NOSE = 0
	LEFT_SHOULDER = 11
	RIGHT_SHOULDER = 12
	LEFT_ELBOW = 13
	RIGHT_ELBOW = 14
	LEFT_WRIST = 15
	RIGHT_WRIST = 16
	LEFT_INDEX = 19
	RIGHT_INDEX = 20
	LEFT_HIP = 23
	RIGHT_HIP = 24
	LEFT_KNEE = 25
	RIGHT_KNEE = 26
	LEFT_ANKLE = 27
	RIGHT_ANKLE = 28
	LEFT_FOOT_INDEX = 31
	RIGHT_FOOT_INDEX = 32


@dataclass(frozen=True)
class Landmark:
	"""
	A single body keypoint in normalized image coordinates.

	x/y are in [0..1] for on-screen points (lower y = higher on screen); z is
	relative depth. visibility is the model's confidence in [0..1].
	"""

	x: float
	y: float
	z: float = 0.0
	visibility: float = 0.0


@dataclass(frozen=True)
class LandmarkFrame:
	"""
	Landmarks for the single tracked person on one sampled tick.

	timestamp_ms is the monotonic tick time the frame was sampled at.
	"""

	landmarks: Tuple[Landmark, ...]
	timestamp_ms: float = 0.0

	def get(self, index: int) -> Optional[Landmark]:
		if 0 <= int(index) < len(self.landmarks):
			return self.landmarks[int(index)]
		return None

	def __len__(self) -> int:
		return len(self.landmarks)

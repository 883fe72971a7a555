from __future__ import annotations

import logging
from typing import Optional

from booth.config import PoseConfig
from booth.errors import SensorInitError
from booth.pose.base import PoseSource
from booth.pose.types import Landmark, LandmarkFrame

logger = logging.getLogger(__name__)


class MediaPipePoseSource(PoseSource):
	"""
	MediaPipe Pose source producing the full 33-landmark set for one person.

	Notes:
	- MediaPipe already reports normalized coordinates; we keep them normalized.
	- x is mirrored (1 - x) when `mirror` is set so landmarks line up with the
	  selfie view shown on the kiosk and with the mirrored photo.
	"""

	def __init__(self, cfg: Optional[PoseConfig] = None, mirror: bool = True) -> None:
		cfg = cfg or PoseConfig()
		try:
			import mediapipe as mp  # type: ignore
		except ImportError as e:
			raise SensorInitError(
				"pose tracker",
				"MediaPipe is not installed. Install pose deps with: pip install -e .[pose]",
			) from e

		try:
			self._pose = mp.solutions.pose.Pose(
				static_image_mode=False,
				model_complexity=int(cfg.model_complexity),
				enable_segmentation=False,
				smooth_landmarks=True,
				min_detection_confidence=float(cfg.min_detection_confidence),
				min_tracking_confidence=float(cfg.min_tracking_confidence),
			)
		except Exception as e:
			raise SensorInitError("pose tracker", repr(e)) from e
		self._mirror = bool(mirror)
		logger.info("[Pose] MediaPipe pose tracker ready (complexity=%s)", cfg.model_complexity)

	def name(self) -> str:
		return "mediapipe_pose"

	def infer_rgb(self, rgb, timestamp_ms: float) -> Optional[LandmarkFrame]:
		res = self._pose.process(rgb)
		if not res or not getattr(res, "pose_landmarks", None):
			return None

		points = []
		for p in res.pose_landmarks.landmark:
			x = float(p.x)
			points.append(
				Landmark(
					x=(1.0 - x) if self._mirror else x,
					y=float(p.y),
					z=float(p.z),
					visibility=float(getattr(p, "visibility", 0.0) or 0.0),
				)
			)
		return LandmarkFrame(landmarks=tuple(points), timestamp_ms=float(timestamp_ms))

	def close(self) -> None:
		if self._pose is not None:
			self._pose.close()
			self._pose = None

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from booth.pose.types import LandmarkFrame


class PoseSource(ABC):
	"""
	Model adapter interface.

	Implementations take an RGB image (H,W,3 uint8) and return the landmarks of
	the tracked person, or None when nobody is tracked.
	"""

	@abstractmethod
	def name(self) -> str: ...

	@abstractmethod
	def infer_rgb(self, rgb, timestamp_ms: float) -> Optional[LandmarkFrame]: ...

	@abstractmethod
	def close(self) -> None: ...

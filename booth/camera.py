from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import cv2
import numpy as np

from booth.config import CameraConfig
from booth.errors import SensorInitError

logger = logging.getLogger(__name__)


class OpenCvCamera:
	"""
	Webcam reader with a thread-safe "latest RGB frame" buffer.

	The capture thread owns the cv2.VideoCapture handle; everyone else only
	reads the newest frame. Frames are stored as-is (not mirrored); mirroring
	happens in the pose source and in photo composition.
	"""

	def __init__(self, cfg: Optional[CameraConfig] = None) -> None:
		self.cfg = cfg or CameraConfig()
		self._lock = threading.Lock()
		self._running = False
		self._thread: Optional[threading.Thread] = None
		self._cap = None
		self._latest: Optional[np.ndarray] = None
		self._last_error: Optional[str] = None

	def is_running(self) -> bool:
		with self._lock:
			return bool(self._running)

	def get_status(self) -> dict:
		with self._lock:
			return {
				"running": bool(self._running),
				"has_frame": self._latest is not None,
				"error": self._last_error,
			}

	def latest_rgb(self) -> Optional[np.ndarray]:
		with self._lock:
			return self._latest

	def start(self) -> None:
		"""Open the device. Raises SensorInitError if the camera cannot be opened."""
		with self._lock:
			if self._running:
				return

		cap = cv2.VideoCapture(int(self.cfg.index))
		if not cap.isOpened():
			cap.release()
			with self._lock:
				self._last_error = f"camera index {self.cfg.index} could not be opened"
			raise SensorInitError("camera", f"index {self.cfg.index} could not be opened")
		cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(self.cfg.width))
		cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(self.cfg.height))
		cap.set(cv2.CAP_PROP_FPS, int(self.cfg.fps))

		with self._lock:
			self._cap = cap
			self._running = True
			self._last_error = None
		t = threading.Thread(target=self._run_capture_loop, name="camera-capture", daemon=True)
		self._thread = t
		t.start()
		logger.info("[Camera] Opened index %s (%sx%s @ %s fps)", self.cfg.index, self.cfg.width, self.cfg.height, self.cfg.fps)

	def stop(self) -> None:
		with self._lock:
			self._running = False
		t = self._thread
		if t and t.is_alive():
			t.join(timeout=3.0)
		self._thread = None

	def _run_capture_loop(self) -> None:
		cap = self._cap
		failures = 0
		try:
			while self.is_running():
				ok, bgr = cap.read()
				if not ok or bgr is None:
					failures += 1
					if failures == 30:
						logger.warning("[Camera] No frames from device")
						with self._lock:
							self._last_error = "no frames from device"
					time.sleep(0.01)
					continue
				failures = 0
				rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
				with self._lock:
					self._latest = rgb
					self._last_error = None
		finally:
			cap.release()
			with self._lock:
				self._cap = None
				self._running = False
			logger.info("[Camera] Capture loop stopped")

"""
Runtime wiring for one kiosk: camera, pose source, sampling loop, mode
controller and capture pipeline, built from an AppConfig.

Three stores with a single writer each:
  - ModeController: phase, countdown, error message
  - SamplingLoop.state (PoseState): latest landmarks, gesture, tracking flag
  - CapturePipeline.results (ShareStore): artifact, share result, upload flag

Collaborators can be injected (tests, alternative hardware); anything not
injected is built from config.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from booth.camera import OpenCvCamera
from booth.capture.pipeline import CapturePipeline
from booth.capture.qr import QrCodeEncoder, QrEncoder
from booth.capture.shortener import UrlShortener, get_url_shortener
from booth.capture.storage import LocalObjectStore, ObjectStore, get_object_store
from booth.config import AppConfig
from booth.errors import SensorInitError
from booth.gesture import GestureDetector
from booth.mode_controller import ModeController
from booth.pose.base import PoseSource
from booth.quality import QUALITY_TABLE
from booth.renderer import OverlayRenderer, Renderer
from booth.sampling import PoseState, SamplingLoop

logger = logging.getLogger(__name__)


class Kiosk:
	def __init__(
		self,
		cfg: AppConfig,
		camera: Any = None,
		pose_source: Optional[PoseSource] = None,
		store: Optional[ObjectStore] = None,
		shortener: Optional[UrlShortener] = None,
		qr: Optional[QrEncoder] = None,
		renderer: Optional[Renderer] = None,
	) -> None:
		self.cfg = cfg
		self.camera = camera if camera is not None else OpenCvCamera(cfg.camera)
		self.store = store if store is not None else get_object_store(cfg.storage)
		self.shortener = shortener if shortener is not None else get_url_shortener(cfg.shortener)
		self.qr = qr if qr is not None else QrCodeEncoder(cfg.qr)

		self.renderer = renderer if renderer is not None else OverlayRenderer(
			size=(cfg.capture.width, cfg.capture.height),
			frame=lambda: self.sampling.state.frame,
			render_scale=lambda: self.controller.quality.render_scale,
			overlay_path=cfg.capture.overlay_path,
			min_visibility=cfg.gesture.min_visibility,
		)
		self.pipeline = CapturePipeline(
			camera_frame=self.camera.latest_rgb,
			renderer=self.renderer,
			store=self.store,
			shortener=self.shortener,
			qr=self.qr,
			kiosk_id=cfg.kiosk.kiosk_id,
			capture_cfg=cfg.capture,
			object_prefix=cfg.storage.object_prefix,
		)
		self.controller = ModeController(self.pipeline, cfg.countdown, cfg.display)
		self.detector = GestureDetector(cfg.gesture)
		self.sampling = SamplingLoop(
			frame_source=self.camera.latest_rgb,
			pose_source=pose_source,
			detector=self.detector,
			controller=self.controller,
			tick_hz=cfg.sampling.tick_hz,
		)

		self.camera_ready = False
		self.pose_ready = pose_source is not None
		self.sensor_message: Optional[str] = None
		self._sampling_task: Optional[asyncio.Task] = None
		self._listeners: List[Callable[[Dict[str, Any]], None]] = []

		self.controller.add_listener(lambda _c: self._changed())
		self.sampling.add_listener(lambda _s: self._changed())

	@property
	def pose(self) -> PoseState:
		return self.sampling.state

	@property
	def photo_root(self) -> Optional[Path]:
		return self.store.root if isinstance(self.store, LocalObjectStore) else None

	def add_listener(self, fn: Callable[[Dict[str, Any]], None]) -> None:
		self._listeners.append(fn)

	def _changed(self) -> None:
		if not self._listeners:
			return
		snap = self.snapshot()
		for fn in list(self._listeners):
			try:
				fn(snap)
			except Exception:
				logger.exception("[Kiosk] State listener failed")

	def _sensor_failed(self, err: SensorInitError) -> None:
		# Persistent readiness indicator; the phase machine is not involved.
		logger.error("[Kiosk] %s", err)
		self.sensor_message = str(err) if self.sensor_message is None else f"{self.sensor_message}; {err}"

	async def start(self) -> None:
		try:
			self.camera.start()
			self.camera_ready = True
		except SensorInitError as e:
			self._sensor_failed(e)

		if self.sampling.pose_source is None:
			try:
				from booth.pose.mediapipe_source import MediaPipePoseSource

				self.sampling.pose_source = MediaPipePoseSource(self.cfg.pose, mirror=self.cfg.capture.mirror)
				self.pose_ready = True
			except SensorInitError as e:
				self._sensor_failed(e)

		self._sampling_task = asyncio.create_task(self.sampling.run())
		logger.info(
			"[Kiosk] %s started (camera=%s, pose tracker=%s, storage=%s, shortener=%s)",
			self.cfg.kiosk.kiosk_id,
			self.camera_ready,
			self.pose_ready,
			self.store.name(),
			self.shortener.name(),
		)
		self._changed()

	async def stop(self) -> None:
		self.sampling.stop()
		task = self._sampling_task
		if task is not None:
			task.cancel()
			try:
				await task
			except asyncio.CancelledError:
				pass
		self._sampling_task = None
		await self.controller.shutdown()
		self.camera.stop()
		if self.sampling.pose_source is not None:
			self.sampling.pose_source.close()
		logger.info("[Kiosk] Stopped")

	def _camera_status(self) -> tuple:
		"""(ready, problem) from the live camera status; ready needs a running device with frames."""
		if not self.camera_ready:
			return False, None
		status = self.camera.get_status()
		err = status.get("error")
		if not status.get("running"):
			return False, err or "camera stopped"
		return bool(status.get("has_frame")) and err is None, err

	def snapshot(self) -> Dict[str, Any]:
		"""Read-only view of the kiosk for the UI."""
		c = self.controller
		q = c.quality
		g = self.pose.gesture
		results = self.pipeline.results
		camera_ok, camera_problem = self._camera_status()
		messages = [m for m in (self.sensor_message, camera_problem) if m]
		share = results.share
		return {
			"kiosk_id": self.cfg.kiosk.kiosk_id,
			"phase": c.phase.value,
			"countdown": c.countdown_value,
			"gesture": {"detected": g.detected, "kind": g.kind.value, "confidence": round(g.confidence, 3)},
			"error_message": c.error_message,
			"share": None if share is None else {
				"stored_url": share.stored_url,
				"short_url": share.short_url,
				"qr_data_url": share.qr_image.data_url,
			},
			"has_photo": results.artifact is not None,
			"is_uploading": results.is_uploading,
			"readiness": {
				"camera": camera_ok,
				"pose_tracker": self.pose_ready,
				"tracking": self.pose.is_tracking,
				"message": "; ".join(messages) or None,
			},
			"quality": {"sampling_hz": q.sampling_hz, "render_scale": q.render_scale, "freeze_sampling": q.freeze_sampling},
		}


def quality_table() -> Dict[str, Dict[str, Any]]:
	return {
		phase.value: {"sampling_hz": p.sampling_hz, "render_scale": p.render_scale, "freeze_sampling": p.freeze_sampling}
		for phase, p in QUALITY_TABLE.items()
	}

"""
Error kinds raised across the booth.

Only PipelineStageError and SensorInitError ever reach the kiosk user; the
others are recovered where they are raised.
"""

from __future__ import annotations


class BoothError(Exception):
	"""Base class for booth errors."""


class SensorInitError(BoothError):
	"""Camera or pose-tracking runtime failed to initialize."""

	def __init__(self, component: str, reason: str) -> None:
		super().__init__(f"{component} initialization failed: {reason}")
		self.component = component
		self.reason = reason


class DetectionRuntimeError(BoothError):
	"""A single sampling tick's pose inference failed."""


class PipelineStageError(BoothError):
	"""A mandatory capture pipeline stage failed. The message names the stage."""

	def __init__(self, stage: str, reason: str) -> None:
		super().__init__(f"Capture failed at {stage} stage: {reason}")
		self.stage = stage
		self.reason = reason


class StorageError(BoothError):
	"""Object storage rejected or could not receive an upload."""


class ShortenError(BoothError):
	"""URL shortening failed. Never surfaced; the pipeline falls back to the public URL."""


class QrEncodeError(BoothError):
	"""QR image could not be produced for the share URL."""

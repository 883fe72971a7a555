"""
Sequential capture/share pipeline.

Stages run strictly in order, each one only after the previous completed:

  1. compose  - camera frame (mirrored, cover-cropped) + rendered overlay
  2. encode   - JPEG bytes + inline preview data URL
  3. store    - upload to object storage (mandatory)
  4. shorten  - shorten the public URL (NON-fatal: falls back to the public URL)
  5. qr       - QR image for the share URL (mandatory)

Every stage returns a StageOk / StageFailed value instead of raising. The
shorten stage is the only one whose failure is converted into a fallback
value; every other failure ends the run with a stage-tagged
PipelineStageError.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar, Union

import numpy as np

from booth.capture.compose import compose_photo
from booth.capture.encode import EncodedImage, encode_jpeg
from booth.capture.qr import QrEncoder, QrImage
from booth.capture.shortener import UrlShortener
from booth.capture.storage import ObjectStore, StoredObject, generate_object_name
from booth.config import CaptureConfig
from booth.errors import PipelineStageError, ShortenError
from booth.renderer import Renderer

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Stage(str, Enum):
	COMPOSE = "compose"
	ENCODE = "encode"
	STORE = "store"
	SHORTEN = "shorten"
	QR = "qr"


@dataclass(frozen=True)
class StageOk(Generic[T]):
	value: T


@dataclass(frozen=True)
class StageFailed:
	error: PipelineStageError


StageResult = Union[StageOk[T], StageFailed]


@dataclass(frozen=True)
class CaptureArtifact:
	jpeg: bytes
	data_url: str
	width: int
	height: int
	timestamp: float


@dataclass(frozen=True)
class ShareResult:
	stored_url: str
	short_url: str
	qr_image: QrImage
	object_path: str

	@property
	def shortened(self) -> bool:
		return self.short_url != self.stored_url


@dataclass(frozen=True)
class PipelineOutcome:
	share: Optional[ShareResult] = None
	error: Optional[PipelineStageError] = None

	@property
	def ok(self) -> bool:
		return self.share is not None and self.error is None

	@property
	def stage(self) -> Optional[str]:
		return self.error.stage if self.error is not None else None


class ShareStore:
	"""
	Photo/share results of the current capture. Written only by
	CapturePipeline; everyone else reads.
	"""

	def __init__(self) -> None:
		self.artifact: Optional[CaptureArtifact] = None
		self.share: Optional[ShareResult] = None
		self.is_uploading: bool = False

	def clear(self) -> None:
		self.artifact = None
		self.share = None
		self.is_uploading = False


class CapturePipeline:
	"""
	Runs one capture attempt per CAPTURING entry.

	`camera_frame` returns the latest RGB camera frame (or None); `renderer`
	exposes the overlay surface. Only one run may be in flight at a time.
	"""

	def __init__(
		self,
		camera_frame: Callable[[], Optional[np.ndarray]],
		renderer: Renderer,
		store: ObjectStore,
		shortener: UrlShortener,
		qr: QrEncoder,
		kiosk_id: str,
		capture_cfg: Optional[CaptureConfig] = None,
		object_prefix: str = "photos",
		clock: Callable[[], float] = time.time,
	) -> None:
		self._camera_frame = camera_frame
		self._renderer = renderer
		self._store = store
		self._shortener = shortener
		self._qr = qr
		self._kiosk_id = kiosk_id
		self._cfg = capture_cfg or CaptureConfig()
		self._prefix = object_prefix
		self._clock = clock
		self._running = False
		self.results = ShareStore()

	@property
	def busy(self) -> bool:
		return self._running

	def discard(self) -> None:
		"""Release the artifact and share result (kiosk is back to preview)."""
		self.results.clear()

	async def run(self, on_composed: Optional[Callable[[], None]] = None) -> PipelineOutcome:
		if self._running:
			raise RuntimeError("capture pipeline already running")
		self._running = True
		self.results.clear()
		try:
			return await self._run(on_composed)
		finally:
			self._running = False
			self.results.is_uploading = False

	async def _run(self, on_composed: Optional[Callable[[], None]]) -> PipelineOutcome:
		t0 = time.monotonic()
		timestamp = float(self._clock())

		composed = await self._compose()
		if isinstance(composed, StageFailed):
			return self._failed(composed)
		if on_composed is not None:
			on_composed()
		self.results.is_uploading = True

		encoded = await self._encode(composed.value)
		if isinstance(encoded, StageFailed):
			return self._failed(encoded)
		enc: EncodedImage = encoded.value
		self.results.artifact = CaptureArtifact(
			jpeg=enc.data,
			data_url=enc.data_url,
			width=enc.width,
			height=enc.height,
			timestamp=timestamp,
		)

		stored = await self._store_photo(enc, timestamp)
		if isinstance(stored, StageFailed):
			return self._failed(stored)
		obj: StoredObject = stored.value

		short_url = await self._shorten(obj.public_url)

		qr = await self._encode_qr(short_url)
		if isinstance(qr, StageFailed):
			return self._failed(qr)

		share = ShareResult(stored_url=obj.public_url, short_url=short_url, qr_image=qr.value, object_path=obj.object_path)
		self.results.share = share
		logger.info(
			"[Pipeline] Capture shared in %.2fs: %s%s",
			time.monotonic() - t0,
			share.short_url,
			"" if share.shortened else " (unshortened)",
		)
		return PipelineOutcome(share=share)

	def _failed(self, result: StageFailed) -> PipelineOutcome:
		logger.error("[Pipeline] %s", result.error)
		return PipelineOutcome(error=result.error)

	@staticmethod
	async def _guard(stage: Stage, fn: Callable[[], Any]) -> StageResult:
		try:
			value = fn()
			if inspect.isawaitable(value):
				value = await value
		except Exception as e:
			return StageFailed(PipelineStageError(stage.value, str(e) or repr(e)))
		return StageOk(value)

	async def _compose(self) -> StageResult:
		loop = asyncio.get_running_loop()

		async def _do():
			# Both surfaces are read synchronously at capture time.
			frame = self._camera_frame()
			overlay = self._renderer.snapshot()
			return await loop.run_in_executor(
				None,
				compose_photo,
				frame,
				overlay,
				(int(self._cfg.width), int(self._cfg.height)),
				bool(self._cfg.mirror),
			)

		return await self._guard(Stage.COMPOSE, _do)

	async def _encode(self, image) -> StageResult:
		loop = asyncio.get_running_loop()
		return await self._guard(
			Stage.ENCODE,
			lambda: loop.run_in_executor(None, encode_jpeg, image, float(self._cfg.jpeg_quality)),
		)

	async def _store_photo(self, enc: EncodedImage, timestamp: float) -> StageResult:
		name = generate_object_name(timestamp, self._kiosk_id, prefix=self._prefix)
		return await self._guard(Stage.STORE, lambda: self._store.store(enc.data, name, enc.content_type))

	async def _shorten(self, public_url: str) -> str:
		# Any failure here means "share the long URL".
		try:
			short = await self._shortener.shorten(public_url)
		except ShortenError as e:
			logger.warning("[Pipeline] URL shortening failed, using full URL: %s", e)
			return public_url
		except Exception as e:
			logger.warning("[Pipeline] URL shortener error, using full URL: %r", e)
			return public_url
		return short or public_url

	async def _encode_qr(self, url: str) -> StageResult:
		return await self._guard(Stage.QR, lambda: self._qr.encode(url))

import asyncio
import sys
from pathlib import Path
from typing import Optional

import numpy as np
import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
	sys.path.insert(0, str(ROOT))

from booth.capture.qr import QrEncoder, QrImage  # noqa: E402
from booth.capture.shortener import UrlShortener  # noqa: E402
from booth.capture.storage import ObjectStore, StoredObject  # noqa: E402
from booth.config import (  # noqa: E402
	AppConfig,
	CaptureConfig,
	CountdownConfig,
	DisplayConfig,
	GestureConfig,
	SamplingConfig,
)
from booth.errors import QrEncodeError, SensorInitError, ShortenError, StorageError  # noqa: E402
from booth.pose.base import PoseSource  # noqa: E402
from booth.pose.types import Landmark, LandmarkFrame, PoseLandmark  # noqa: E402
from booth.renderer import Renderer  # noqa: E402


def make_frame(
	left_wrist_y: float = 0.7,
	right_wrist_y: float = 0.7,
	shoulder_y: float = 0.5,
	left_visibility: float = 0.9,
	right_visibility: float = 0.9,
) -> LandmarkFrame:
	"""33-point frame with only shoulders and wrists placed; everything else invisible."""
	points = [Landmark(x=0.5, y=0.5, visibility=0.0) for _ in range(33)]
	points[PoseLandmark.LEFT_SHOULDER] = Landmark(x=0.6, y=shoulder_y, visibility=left_visibility)
	points[PoseLandmark.RIGHT_SHOULDER] = Landmark(x=0.4, y=shoulder_y, visibility=right_visibility)
	points[PoseLandmark.LEFT_WRIST] = Landmark(x=0.7, y=left_wrist_y, visibility=left_visibility)
	points[PoseLandmark.RIGHT_WRIST] = Landmark(x=0.3, y=right_wrist_y, visibility=right_visibility)
	return LandmarkFrame(landmarks=tuple(points))


RAISED = make_frame(left_wrist_y=0.2)
LOWERED = make_frame()


class FakeCamera:
	def __init__(self, frame: Optional[np.ndarray] = None, fail: bool = False) -> None:
		self.frame = frame if frame is not None else np.full((72, 128, 3), 128, dtype=np.uint8)
		self.fail = fail
		self.started = False
		self.error: Optional[str] = None

	def start(self) -> None:
		if self.fail:
			raise SensorInitError("camera", "no device")
		self.started = True

	def stop(self) -> None:
		self.started = False

	def latest_rgb(self):
		return self.frame

	def get_status(self) -> dict:
		return {"running": self.started, "has_frame": self.frame is not None, "error": self.error}


class FakePoseSource(PoseSource):
	def __init__(self, frame: Optional[LandmarkFrame] = None) -> None:
		self.frame = frame
		self.error: Optional[Exception] = None
		self.calls = 0
		self.closed = False

	def name(self) -> str:
		return "fake"

	def infer_rgb(self, rgb, timestamp_ms: float) -> Optional[LandmarkFrame]:
		self.calls += 1
		if self.error is not None:
			raise self.error
		return self.frame

	def close(self) -> None:
		self.closed = True


class FakeRenderer(Renderer):
	def __init__(self, size=(108, 192), missing: bool = False) -> None:
		self.size = size
		self.missing = missing

	def snapshot(self):
		if self.missing:
			return None
		return Image.new("RGBA", self.size, (0, 0, 0, 0))


class MemoryStore(ObjectStore):
	def __init__(self, fail: bool = False, base: str = "https://cdn.example.com") -> None:
		self.fail = fail
		self.base = base
		self.objects = {}

	def name(self) -> str:
		return "memory"

	async def store(self, data: bytes, object_name: str, content_type: str = "image/jpeg") -> StoredObject:
		if self.fail:
			raise StorageError("network unreachable")
		self.objects[object_name] = (data, content_type)
		return StoredObject(object_path=object_name, public_url=f"{self.base}/{object_name}")


class FakeShortener(UrlShortener):
	def __init__(self, fail: bool = False) -> None:
		self.fail = fail
		self.calls = []

	def name(self) -> str:
		return "fake"

	async def shorten(self, url: str) -> str:
		self.calls.append(url)
		if self.fail:
			raise ShortenError("service unavailable")
		return "https://sho.rt/abc123"


class FakeQr(QrEncoder):
	def __init__(self, fail: bool = False) -> None:
		self.fail = fail
		self.texts = []

	async def encode(self, text: str) -> QrImage:
		self.texts.append(text)
		if self.fail:
			raise QrEncodeError("encoder crashed")
		return QrImage(text=text, png=b"\x89PNG fake", data_url="data:image/png;base64,AAAA", size_px=10)


@pytest.fixture
def fast_cfg() -> AppConfig:
	"""Millisecond-scale timings and a small canvas."""
	return AppConfig(
		gesture=GestureConfig(hold_ms=0.0, cooldown_ms=60000.0),
		countdown=CountdownConfig(seconds=3, tick_interval_s=0.01),
		display=DisplayConfig(qr_timeout_ms=5000.0, error_dismiss_ms=5000.0),
		capture=CaptureConfig(width=108, height=192),
		sampling=SamplingConfig(tick_hz=200.0),
	)


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> bool:
	loop = asyncio.get_running_loop()
	deadline = loop.time() + timeout
	while loop.time() < deadline:
		if predicate():
			return True
		await asyncio.sleep(interval)
	return predicate()

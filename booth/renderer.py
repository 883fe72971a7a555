"""
2D overlay surface composited over the camera frame at capture time.

The overlay is an optional branded PNG frame plus a stick-figure skeleton
of the most recently sampled landmarks. It is drawn at `render_scale` times
the canvas size and downsampled, so higher-detail phases get smoother lines.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional, Tuple

from PIL import Image, ImageDraw

from booth.pose.types import LandmarkFrame, PoseLandmark

logger = logging.getLogger(__name__)

L = PoseLandmark

SKELETON_CONNECTIONS: Tuple[Tuple[int, int], ...] = (
	# torso
	(L.LEFT_SHOULDER, L.RIGHT_SHOULDER),
	(L.LEFT_SHOULDER, L.LEFT_HIP),
	(L.RIGHT_SHOULDER, L.RIGHT_HIP),
	(L.LEFT_HIP, L.RIGHT_HIP),
	# arms
	(L.LEFT_SHOULDER, L.LEFT_ELBOW),
	(L.LEFT_ELBOW, L.LEFT_WRIST),
	(L.LEFT_WRIST, L.LEFT_INDEX),
	(L.RIGHT_SHOULDER, L.RIGHT_ELBOW),
	(L.RIGHT_ELBOW, L.RIGHT_WRIST),
	(L.RIGHT_WRIST, L.RIGHT_INDEX),
	# legs
	(L.LEFT_HIP, L.LEFT_KNEE),
	(L.LEFT_KNEE, L.LEFT_ANKLE),
	(L.LEFT_ANKLE, L.LEFT_FOOT_INDEX),
	(L.RIGHT_HIP, L.RIGHT_KNEE),
	(L.RIGHT_KNEE, L.RIGHT_ANKLE),
	(L.RIGHT_ANKLE, L.RIGHT_FOOT_INDEX),
	# neck
	(L.NOSE, L.LEFT_SHOULDER),
	(L.NOSE, L.RIGHT_SHOULDER),
)


class Renderer(ABC):
	@abstractmethod
	def snapshot(self) -> Optional[Image.Image]:
		"""Current overlay as an RGBA image, or None when no surface is available."""


class OverlayRenderer(Renderer):
	def __init__(
		self,
		size: Tuple[int, int],
		frame: Callable[[], Optional[LandmarkFrame]],
		render_scale: Callable[[], float],
		overlay_path: str = "",
		min_visibility: float = 0.5,
		color: Tuple[int, int, int, int] = (255, 255, 255, 220),
	) -> None:
		self.size = (int(size[0]), int(size[1]))
		self._frame = frame
		self._render_scale = render_scale
		self._min_visibility = float(min_visibility)
		self._color = color
		self._branding: Optional[Image.Image] = None
		if overlay_path:
			self._branding = self._load_branding(Path(overlay_path))

	def _load_branding(self, path: Path) -> Optional[Image.Image]:
		try:
			with Image.open(path) as im:
				return im.convert("RGBA").resize(self.size, Image.Resampling.LANCZOS)
		except OSError as e:
			logger.warning("[Renderer] Overlay image %s not loaded: %r", path, e)
			return None

	def snapshot(self) -> Optional[Image.Image]:
		scale = max(1.0, float(self._render_scale()))
		w, h = self.size
		sw, sh = int(round(w * scale)), int(round(h * scale))
		canvas = Image.new("RGBA", (sw, sh), (0, 0, 0, 0))
		frame = self._frame()
		if frame is not None:
			self._draw_skeleton(ImageDraw.Draw(canvas), frame, sw, sh, scale)
		if (sw, sh) != (w, h):
			canvas = canvas.resize((w, h), Image.Resampling.LANCZOS)
		if self._branding is not None:
			canvas = Image.alpha_composite(canvas, self._branding)
		return canvas

	def _draw_skeleton(self, draw: ImageDraw.ImageDraw, frame: LandmarkFrame, w: int, h: int, scale: float) -> None:
		def point(idx: int):
			lm = frame.get(idx)
			if lm is None or not (lm.visibility >= self._min_visibility) or not (math.isfinite(lm.x) and math.isfinite(lm.y)):
				return None
			return (lm.x * w, lm.y * h)

		width = max(1, int(round(6 * scale)))
		for a, b in SKELETON_CONNECTIONS:
			pa, pb = point(a), point(b)
			if pa is not None and pb is not None:
				draw.line([pa, pb], fill=self._color, width=width)
		r = width
		for idx in {i for pair in SKELETON_CONNECTIONS for i in pair}:
			p = point(idx)
			if p is not None:
				draw.ellipse([p[0] - r, p[1] - r, p[0] + r, p[1] + r], fill=self._color)

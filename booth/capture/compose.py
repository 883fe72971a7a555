from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from PIL import Image


def cover_crop_box(src_w: int, src_h: int, dst_w: int, dst_h: int) -> Tuple[int, int, int, int]:
	"""
	Centered crop of the source that matches the target aspect ratio
	(object-fit: cover). Returns (left, top, right, bottom).
	"""
	src_aspect = float(src_w) / float(src_h)
	dst_aspect = float(dst_w) / float(dst_h)
	if src_aspect > dst_aspect:
		# Source is wider: crop the sides.
		crop_w = int(round(src_h * dst_aspect))
		left = (src_w - crop_w) // 2
		return left, 0, left + crop_w, src_h
	# Source is taller (or equal): crop top and bottom.
	crop_h = int(round(src_w / dst_aspect))
	top = (src_h - crop_h) // 2
	return 0, top, src_w, top + crop_h


def compose_photo(
	camera_rgb: Optional[np.ndarray],
	overlay: Optional[Image.Image],
	size: Tuple[int, int] = (1080, 1920),
	mirror: bool = True,
) -> Image.Image:
	"""
	Merge the live camera frame with the rendered overlay into one RGB image.

	The camera frame is mirrored to match the selfie view and cover-cropped to
	fill the canvas without distortion; the overlay is alpha-composited on top.
	Raises ValueError when either source surface is missing.
	"""
	if camera_rgb is None:
		raise ValueError("camera frame not available")
	if overlay is None:
		raise ValueError("overlay surface not available")

	arr = np.asarray(camera_rgb)
	if arr.ndim != 3 or arr.shape[2] < 3 or arr.shape[0] <= 0 or arr.shape[1] <= 0:
		raise ValueError(f"unexpected camera frame shape {arr.shape!r}")

	w, h = int(size[0]), int(size[1])
	frame = Image.fromarray(np.ascontiguousarray(arr[:, :, :3]).astype(np.uint8))
	if mirror:
		frame = frame.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
	frame = frame.crop(cover_crop_box(frame.width, frame.height, w, h)).resize((w, h), Image.Resampling.LANCZOS)

	canvas = frame.convert("RGBA")
	layer = overlay.convert("RGBA")
	if layer.size != (w, h):
		layer = layer.resize((w, h), Image.Resampling.LANCZOS)
	canvas.alpha_composite(layer)
	return canvas.convert("RGB")

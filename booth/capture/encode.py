from __future__ import annotations

import base64
from dataclasses import dataclass
from io import BytesIO

from PIL import Image


@dataclass(frozen=True)
class EncodedImage:
	data: bytes
	content_type: str
	data_url: str
	width: int
	height: int


def to_data_url(data: bytes, content_type: str) -> str:
	return f"data:{content_type};base64," + base64.b64encode(data).decode("ascii")


def encode_jpeg(image: Image.Image, quality: float = 0.95) -> EncodedImage:
	"""
	JPEG-encode a composed photo. `quality` is a 0..1 factor.
	Also returns an inline data URL for previews.
	"""
	q = int(round(max(0.01, min(1.0, float(quality))) * 100))
	buf = BytesIO()
	image.convert("RGB").save(buf, format="JPEG", quality=q, optimize=True)
	data = buf.getvalue()
	if not data:
		raise ValueError("JPEG encoder produced no data")
	return EncodedImage(
		data=data,
		content_type="image/jpeg",
		data_url=to_data_url(data, "image/jpeg"),
		width=int(image.width),
		height=int(image.height),
	)

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from io import BytesIO

import qrcode
from qrcode.exceptions import DataOverflowError
from PIL import Image

from booth.capture.encode import to_data_url
from booth.config import QrConfig
from booth.errors import QrEncodeError

_ERROR_CORRECTION = {
	"L": qrcode.constants.ERROR_CORRECT_L,
	"M": qrcode.constants.ERROR_CORRECT_M,
	"Q": qrcode.constants.ERROR_CORRECT_Q,
	"H": qrcode.constants.ERROR_CORRECT_H,
}


@dataclass(frozen=True)
class QrImage:
	text: str
	png: bytes
	data_url: str
	size_px: int


class QrEncoder(ABC):
	@abstractmethod
	async def encode(self, text: str) -> QrImage: ...


class QrCodeEncoder(QrEncoder):
	"""Black-on-white PNG QR codes via the `qrcode` library."""

	def __init__(self, cfg: QrConfig | None = None) -> None:
		self._cfg = cfg or QrConfig()

	def render(self, text: str) -> QrImage:
		if not text:
			raise QrEncodeError("nothing to encode")
		qr = qrcode.QRCode(
			version=None,
			error_correction=_ERROR_CORRECTION.get(self._cfg.error_correction, qrcode.constants.ERROR_CORRECT_M),
			box_size=int(self._cfg.box_size),
			border=int(self._cfg.border),
		)
		qr.add_data(text)
		try:
			qr.make(fit=True)
		except DataOverflowError as e:
			raise QrEncodeError(f"text too long for a QR code: {e}") from e
		img = qr.make_image(fill_color="black", back_color="white").get_image().convert("RGB")
		size = int(self._cfg.size_px)
		img = img.resize((size, size), Image.Resampling.NEAREST)
		buf = BytesIO()
		img.save(buf, format="PNG")
		png = buf.getvalue()
		return QrImage(text=text, png=png, data_url=to_data_url(png, "image/png"), size_px=size)

	async def encode(self, text: str) -> QrImage:
		loop = asyncio.get_running_loop()
		return await loop.run_in_executor(None, self.render, text)

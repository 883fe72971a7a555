from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod

from booth.config import ShortenerConfig
from booth.errors import ShortenError

TINYURL_API = "https://tinyurl.com/api-create.php"
BITLY_API = "https://api-ssl.bitly.com/v4/shorten"


class UrlShortener(ABC):
	"""Shorteners raise ShortenError on any failure; callers decide the fallback."""

	@abstractmethod
	def name(self) -> str: ...

	def is_available(self) -> bool:
		return True

	@abstractmethod
	async def shorten(self, url: str) -> str: ...


async def _fetch(req: urllib.request.Request, timeout: float) -> bytes:
	def _do() -> bytes:
		with urllib.request.urlopen(req, timeout=timeout) as resp:
			return resp.read()

	loop = asyncio.get_running_loop()
	try:
		return await loop.run_in_executor(None, _do)
	except urllib.error.HTTPError as e:
		raise ShortenError(f"HTTP {e.code} {e.reason}") from e
	except (urllib.error.URLError, OSError) as e:
		raise ShortenError(repr(e)) from e


class TinyUrlShortener(UrlShortener):
	"""TinyURL create API: no key, plain-text reply."""

	def __init__(self, timeout_seconds: float = 5.0) -> None:
		self._timeout = float(timeout_seconds)

	def name(self) -> str:
		return "tinyurl"

	async def shorten(self, url: str) -> str:
		req = urllib.request.Request(f"{TINYURL_API}?url={urllib.parse.quote(url, safe='')}")
		body = (await _fetch(req, self._timeout)).decode("utf-8", errors="replace").strip()
		if not body.startswith("http"):
			raise ShortenError(f"TinyURL returned unexpected body: {body[:80]!r}")
		return body


class BitlyShortener(UrlShortener):
	def __init__(self, api_key: str, timeout_seconds: float = 5.0) -> None:
		self._key = api_key
		self._timeout = float(timeout_seconds)

	def name(self) -> str:
		return "bitly"

	def is_available(self) -> bool:
		return bool(self._key)

	async def shorten(self, url: str) -> str:
		if not self._key:
			raise ShortenError("Bitly API key not configured")
		payload = json.dumps({"long_url": url, "domain": "bit.ly"}).encode("utf-8")
		req = urllib.request.Request(
			BITLY_API,
			data=payload,
			method="POST",
			headers={"Authorization": f"Bearer {self._key}", "Content-Type": "application/json"},
		)
		raw = await _fetch(req, self._timeout)
		try:
			link = json.loads(raw.decode("utf-8")).get("link")
		except (ValueError, AttributeError) as e:
			raise ShortenError(f"Bitly returned malformed JSON: {e!r}") from e
		if not isinstance(link, str) or not link:
			raise ShortenError("Bitly response has no link")
		return link


class DisabledShortener(UrlShortener):
	def name(self) -> str:
		return "none"

	def is_available(self) -> bool:
		return False

	async def shorten(self, url: str) -> str:
		raise ShortenError("URL shortening disabled")


def get_url_shortener(cfg: ShortenerConfig) -> UrlShortener:
	provider = (cfg.provider or "tinyurl").strip().lower()
	if provider == "bitly":
		return BitlyShortener(cfg.bitly_api_key, timeout_seconds=cfg.timeout_seconds)
	if provider in ("none", "off", "disabled"):
		return DisabledShortener()
	return TinyUrlShortener(timeout_seconds=cfg.timeout_seconds)

from __future__ import annotations

import asyncio
import logging
import urllib.error
import urllib.parse
import urllib.request
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from booth.config import StorageConfig
from booth.errors import StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredObject:
	object_path: str
	public_url: str


def generate_object_name(timestamp_s: float, kiosk_id: str, prefix: str = "photos", token: Optional[str] = None) -> str:
	"""
	Unique object name for one capture:
	  <prefix>/YYYY-MM-DD/<kiosk_id>-HH-MM-SS-<8 hex>.jpg  (UTC)
	"""
	dt = datetime.fromtimestamp(float(timestamp_s), tz=timezone.utc)
	tok = (token or uuid.uuid4().hex)[:8]
	kiosk = (kiosk_id or "kiosk").strip().replace("/", "-") or "kiosk"
	name = f"{dt.strftime('%Y-%m-%d')}/{kiosk}-{dt.strftime('%H-%M-%S')}-{tok}.jpg"
	prefix = (prefix or "").strip("/")
	return f"{prefix}/{name}" if prefix else name


def _join_url(base: str, object_path: str) -> str:
	return base.rstrip("/") + "/" + urllib.parse.quote(object_path.lstrip("/"))


class ObjectStore(ABC):
	@abstractmethod
	def name(self) -> str: ...

	@abstractmethod
	async def store(self, data: bytes, object_name: str, content_type: str = "image/jpeg") -> StoredObject: ...


class LocalObjectStore(ObjectStore):
	"""
	Writes photos under a local directory that is served (by this app or a
	reverse proxy) at `public_url_base`.
	"""

	def __init__(self, root: str | Path, public_url_base: str) -> None:
		self._root = Path(root)
		self._public = public_url_base.rstrip("/")

	def name(self) -> str:
		return "local"

	@property
	def root(self) -> Path:
		return self._root

	async def store(self, data: bytes, object_name: str, content_type: str = "image/jpeg") -> StoredObject:
		target = (self._root / object_name).resolve()
		if self._root.resolve() not in target.parents:
			raise StorageError(f"object name escapes storage root: {object_name!r}")

		def _write() -> None:
			target.parent.mkdir(parents=True, exist_ok=True)
			target.write_bytes(data)

		loop = asyncio.get_running_loop()
		try:
			await loop.run_in_executor(None, _write)
		except OSError as e:
			raise StorageError(f"local write failed: {e!r}") from e
		logger.info("[Storage] Wrote %s (%d bytes)", object_name, len(data))
		return StoredObject(object_path=object_name, public_url=_join_url(self._public, object_name))


class HttpObjectStore(ObjectStore):
	"""
	Uploads with a single HTTP PUT to <upload_url_base>/<object_path>.

	This matches bucket XML-style endpoints and pre-authorized upload
	gateways. The public URL is <public_url_base>/<object_path>.
	"""

	def __init__(self, upload_url_base: str, public_url_base: str, bearer_token: str = "", timeout_seconds: float = 30.0) -> None:
		if not upload_url_base:
			raise ValueError("storage.upload_url_base is required for the http backend")
		self._upload = upload_url_base.rstrip("/")
		self._public = (public_url_base or upload_url_base).rstrip("/")
		self._token = bearer_token
		self._timeout = float(timeout_seconds)

	def name(self) -> str:
		return "http"

	async def store(self, data: bytes, object_name: str, content_type: str = "image/jpeg") -> StoredObject:
		url = _join_url(self._upload, object_name)
		headers = {"Content-Type": content_type, "Content-Length": str(len(data))}
		if self._token:
			headers["Authorization"] = f"Bearer {self._token}"

		def _put() -> int:
			req = urllib.request.Request(url, data=data, method="PUT", headers=headers)
			with urllib.request.urlopen(req, timeout=self._timeout) as resp:
				return int(resp.status)

		loop = asyncio.get_running_loop()
		try:
			status = await loop.run_in_executor(None, _put)
		except urllib.error.HTTPError as e:
			raise StorageError(f"upload rejected: HTTP {e.code} {e.reason}") from e
		except (urllib.error.URLError, OSError) as e:
			raise StorageError(f"upload failed: {e!r}") from e
		if status >= 300:
			raise StorageError(f"upload rejected: HTTP {status}")
		logger.info("[Storage] Uploaded %s (%d bytes)", object_name, len(data))
		return StoredObject(object_path=object_name, public_url=_join_url(self._public, object_name))


def get_object_store(cfg: StorageConfig) -> ObjectStore:
	backend = (cfg.backend or "local").strip().lower()
	if backend == "http":
		return HttpObjectStore(
			upload_url_base=cfg.upload_url_base,
			public_url_base=cfg.public_url_base,
			bearer_token=cfg.bearer_token,
			timeout_seconds=cfg.timeout_seconds,
		)
	if backend != "local":
		logger.warning("[Storage] Unknown backend %r; using local storage", backend)
	return LocalObjectStore(cfg.local_dir, cfg.public_url_base)

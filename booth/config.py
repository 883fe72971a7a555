from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class KioskConfig:
	# Used in generated object names so photos from several kiosks never collide.
	kiosk_id: str = "kiosk-1"


@dataclass(frozen=True)
class GestureConfig:
	# Wrist must sit this far above the shoulder midpoint (normalized, lower y = higher).
	raise_margin: float = 0.15
	min_visibility: float = 0.5
	# Height above the shoulders that maps to confidence 1.0.
	confidence_span: float = 0.3
	hold_ms: float = 500.0
	cooldown_ms: float = 3000.0


@dataclass(frozen=True)
class CountdownConfig:
	seconds: int = 3
	tick_interval_s: float = 1.0


@dataclass(frozen=True)
class DisplayConfig:
	qr_timeout_ms: float = 25000.0
	error_dismiss_ms: float = 10000.0


@dataclass(frozen=True)
class CaptureConfig:
	# Portrait canvas; the camera frame is cover-cropped into it.
	width: int = 1080
	height: int = 1920
	jpeg_quality: float = 0.95
	mirror: bool = True
	# Optional RGBA frame graphic drawn over the photo.
	overlay_path: str = ""


@dataclass(frozen=True)
class StorageConfig:
	backend: str = "local"  # local / http
	local_dir: str = str(Path("data") / "photos")
	public_url_base: str = "http://localhost:8000/media"
	# http backend: objects are PUT to <upload_url_base>/<object_path>
	upload_url_base: str = ""
	bearer_token: str = ""
	timeout_seconds: float = 30.0
	object_prefix: str = "photos"


@dataclass(frozen=True)
class ShortenerConfig:
	provider: str = "tinyurl"  # tinyurl / bitly / none
	bitly_api_key: str = ""
	timeout_seconds: float = 5.0


@dataclass(frozen=True)
class QrConfig:
	box_size: int = 10
	border: int = 2
	error_correction: str = "M"
	size_px: int = 400


@dataclass(frozen=True)
class CameraConfig:
	index: int = 0
	width: int = 1280
	height: int = 720
	fps: int = 30


@dataclass(frozen=True)
class PoseConfig:
	model_complexity: int = 1
	min_detection_confidence: float = 0.5
	min_tracking_confidence: float = 0.5


@dataclass(frozen=True)
class SamplingConfig:
	# Rate of the display-refresh tick that drives pose sampling.
	tick_hz: float = 60.0


@dataclass(frozen=True)
class ServerConfig:
	host: str = "0.0.0.0"
	port: int = 8000
	log_level: str = "INFO"


@dataclass(frozen=True)
class AppConfig:
	kiosk: KioskConfig = field(default_factory=KioskConfig)
	gesture: GestureConfig = field(default_factory=GestureConfig)
	countdown: CountdownConfig = field(default_factory=CountdownConfig)
	display: DisplayConfig = field(default_factory=DisplayConfig)
	capture: CaptureConfig = field(default_factory=CaptureConfig)
	storage: StorageConfig = field(default_factory=StorageConfig)
	shortener: ShortenerConfig = field(default_factory=ShortenerConfig)
	qr: QrConfig = field(default_factory=QrConfig)
	camera: CameraConfig = field(default_factory=CameraConfig)
	pose: PoseConfig = field(default_factory=PoseConfig)
	sampling: SamplingConfig = field(default_factory=SamplingConfig)
	server: ServerConfig = field(default_factory=ServerConfig)


_CONFIG_PATH: Optional[Path] = None
_CONFIG_CACHE: Optional[AppConfig] = None


def _repo_root() -> Path:
	# booth/config.py -> repo root is one level up.
	return Path(__file__).resolve().parents[1]


def get_default_config_path() -> Path:
	return _repo_root() / "config.json"


def set_config_path(path: str | Path) -> None:
	"""
	Override the config path (must be called before first get_config()).
	Intended for the CLI entry point; the server normally uses the default path.
	"""
	global _CONFIG_PATH
	global _CONFIG_CACHE
	_CONFIG_PATH = Path(path).expanduser().resolve()
	_CONFIG_CACHE = None


def _deep_get(d: Dict[str, Any], keys: list[str], default: Any = None) -> Any:
	cur: Any = d
	for k in keys:
		if not isinstance(cur, dict):
			return default
		cur = cur.get(k)
	return cur if cur is not None else default


def _as_int(v: Any, default: int) -> int:
	try:
		return int(v)
	except (TypeError, ValueError):
		return int(default)


def _as_bool(v: Any, default: bool) -> bool:
	if isinstance(v, bool):
		return v
	if isinstance(v, (int, float)):
		return bool(v)
	if isinstance(v, str):
		return v.strip().lower() in ("1", "true", "yes", "on")
	return bool(default)


def _as_str(v: Any, default: str = "") -> str:
	return str(v) if v is not None else str(default)


def _as_float(v: Any, default: float) -> float:
	try:
		return float(v)
	except (TypeError, ValueError):
		return float(default)


def _positive(v: float, default: float) -> float:
	return v if v > 0 else default


def load_config(path: Optional[str | Path] = None) -> AppConfig:
	p = Path(path).expanduser().resolve() if path else (_CONFIG_PATH or get_default_config_path())
	if not p.exists():
		# Defaults-only config; kiosk can still run.
		return AppConfig()
	try:
		raw = json.loads(p.read_text(encoding="utf-8"))
	except (OSError, ValueError):
		# If config is malformed, fail safe to defaults (but keep kiosk running).
		return AppConfig()

	if not isinstance(raw, dict):
		return AppConfig()

	d = AppConfig()

	kiosk_id = _as_str(_deep_get(raw, ["kiosk", "kiosk_id"], d.kiosk.kiosk_id)).strip() or d.kiosk.kiosk_id

	g = d.gesture
	raise_margin = _as_float(_deep_get(raw, ["gesture", "raise_margin"], g.raise_margin), g.raise_margin)
	min_visibility = _as_float(_deep_get(raw, ["gesture", "min_visibility"], g.min_visibility), g.min_visibility)
	min_visibility = min(1.0, max(0.0, min_visibility))
	confidence_span = _as_float(_deep_get(raw, ["gesture", "confidence_span"], g.confidence_span), g.confidence_span)
	hold_ms = _as_float(_deep_get(raw, ["gesture", "hold_ms"], g.hold_ms), g.hold_ms)
	cooldown_ms = _as_float(_deep_get(raw, ["gesture", "cooldown_ms"], g.cooldown_ms), g.cooldown_ms)

	cd_seconds = _as_int(_deep_get(raw, ["countdown", "seconds"], d.countdown.seconds), d.countdown.seconds)
	cd_tick = _as_float(_deep_get(raw, ["countdown", "tick_interval_s"], d.countdown.tick_interval_s), d.countdown.tick_interval_s)

	qr_timeout = _as_float(_deep_get(raw, ["display", "qr_timeout_ms"], d.display.qr_timeout_ms), d.display.qr_timeout_ms)
	err_dismiss = _as_float(_deep_get(raw, ["display", "error_dismiss_ms"], d.display.error_dismiss_ms), d.display.error_dismiss_ms)

	c = d.capture
	cap_w = _as_int(_deep_get(raw, ["capture", "width"], c.width), c.width)
	cap_h = _as_int(_deep_get(raw, ["capture", "height"], c.height), c.height)
	jpeg_q = _as_float(_deep_get(raw, ["capture", "jpeg_quality"], c.jpeg_quality), c.jpeg_quality)
	if not (0.0 < jpeg_q <= 1.0):
		jpeg_q = c.jpeg_quality
	mirror = _as_bool(_deep_get(raw, ["capture", "mirror"], c.mirror), c.mirror)
	overlay_path = _as_str(_deep_get(raw, ["capture", "overlay_path"], ""), "").strip()

	s = d.storage
	storage_backend = _as_str(_deep_get(raw, ["storage", "backend"], s.backend), s.backend).strip().lower() or s.backend
	local_dir = _as_str(_deep_get(raw, ["storage", "local_dir"], s.local_dir), s.local_dir).strip() or s.local_dir
	public_base = _as_str(_deep_get(raw, ["storage", "public_url_base"], s.public_url_base), s.public_url_base).strip()
	upload_base = _as_str(_deep_get(raw, ["storage", "upload_url_base"], ""), "").strip()
	bearer = _as_str(_deep_get(raw, ["storage", "bearer_token"], ""), "").strip()
	storage_timeout = _as_float(_deep_get(raw, ["storage", "timeout_seconds"], s.timeout_seconds), s.timeout_seconds)
	object_prefix = _as_str(_deep_get(raw, ["storage", "object_prefix"], s.object_prefix), s.object_prefix).strip("/ ")

	sh = d.shortener
	provider = _as_str(_deep_get(raw, ["shortener", "provider"], sh.provider), sh.provider).strip().lower() or sh.provider
	bitly_key = _as_str(_deep_get(raw, ["shortener", "bitly_api_key"], ""), "").strip()
	shortener_timeout = _as_float(_deep_get(raw, ["shortener", "timeout_seconds"], sh.timeout_seconds), sh.timeout_seconds)

	q = d.qr
	qr_box = _as_int(_deep_get(raw, ["qr", "box_size"], q.box_size), q.box_size)
	qr_border = _as_int(_deep_get(raw, ["qr", "border"], q.border), q.border)
	qr_ec = _as_str(_deep_get(raw, ["qr", "error_correction"], q.error_correction), q.error_correction).strip().upper()
	if qr_ec not in ("L", "M", "Q", "H"):
		qr_ec = q.error_correction
	qr_size = _as_int(_deep_get(raw, ["qr", "size_px"], q.size_px), q.size_px)

	cam = d.camera
	cam_index = _as_int(_deep_get(raw, ["camera", "index"], cam.index), cam.index)
	cam_w = _as_int(_deep_get(raw, ["camera", "width"], cam.width), cam.width)
	cam_h = _as_int(_deep_get(raw, ["camera", "height"], cam.height), cam.height)
	cam_fps = _as_int(_deep_get(raw, ["camera", "fps"], cam.fps), cam.fps)

	pc = d.pose
	model_complexity = _as_int(_deep_get(raw, ["pose", "model_complexity"], pc.model_complexity), pc.model_complexity)
	min_det = _as_float(_deep_get(raw, ["pose", "min_detection_confidence"], pc.min_detection_confidence), pc.min_detection_confidence)
	min_trk = _as_float(_deep_get(raw, ["pose", "min_tracking_confidence"], pc.min_tracking_confidence), pc.min_tracking_confidence)

	tick_hz = _as_float(_deep_get(raw, ["sampling", "tick_hz"], d.sampling.tick_hz), d.sampling.tick_hz)

	srv = d.server
	host = _as_str(_deep_get(raw, ["server", "host"], srv.host), srv.host).strip() or srv.host
	port = _as_int(_deep_get(raw, ["server", "port"], srv.port), srv.port)
	log_level = _as_str(_deep_get(raw, ["server", "log_level"], srv.log_level), srv.log_level).strip().upper() or srv.log_level

	return AppConfig(
		kiosk=KioskConfig(kiosk_id=kiosk_id),
		gesture=GestureConfig(
			raise_margin=max(0.0, raise_margin),
			min_visibility=min_visibility,
			confidence_span=_positive(confidence_span, g.confidence_span),
			hold_ms=max(0.0, hold_ms),
			cooldown_ms=max(0.0, cooldown_ms),
		),
		countdown=CountdownConfig(
			seconds=cd_seconds if cd_seconds > 0 else d.countdown.seconds,
			tick_interval_s=_positive(cd_tick, d.countdown.tick_interval_s),
		),
		display=DisplayConfig(
			qr_timeout_ms=_positive(qr_timeout, d.display.qr_timeout_ms),
			error_dismiss_ms=_positive(err_dismiss, d.display.error_dismiss_ms),
		),
		capture=CaptureConfig(
			width=cap_w if cap_w > 0 else c.width,
			height=cap_h if cap_h > 0 else c.height,
			jpeg_quality=jpeg_q,
			mirror=mirror,
			overlay_path=overlay_path,
		),
		storage=StorageConfig(
			backend=storage_backend,
			local_dir=local_dir,
			public_url_base=public_base.rstrip("/"),
			upload_url_base=upload_base.rstrip("/"),
			bearer_token=bearer,
			timeout_seconds=_positive(storage_timeout, s.timeout_seconds),
			object_prefix=object_prefix,
		),
		shortener=ShortenerConfig(
			provider=provider,
			bitly_api_key=bitly_key,
			timeout_seconds=_positive(shortener_timeout, sh.timeout_seconds),
		),
		qr=QrConfig(
			box_size=qr_box if qr_box > 0 else q.box_size,
			border=qr_border if qr_border >= 0 else q.border,
			error_correction=qr_ec,
			size_px=qr_size if qr_size > 0 else q.size_px,
		),
		camera=CameraConfig(
			index=cam_index,
			width=cam_w if cam_w > 0 else cam.width,
			height=cam_h if cam_h > 0 else cam.height,
			fps=cam_fps if cam_fps > 0 else cam.fps,
		),
		pose=PoseConfig(
			model_complexity=min(2, max(0, model_complexity)),
			min_detection_confidence=min_det,
			min_tracking_confidence=min_trk,
		),
		sampling=SamplingConfig(tick_hz=_positive(tick_hz, d.sampling.tick_hz)),
		server=ServerConfig(host=host, port=port if port > 0 else srv.port, log_level=log_level),
	)


def get_config() -> AppConfig:
	global _CONFIG_CACHE
	if _CONFIG_CACHE is None:
		_CONFIG_CACHE = load_config()
	return _CONFIG_CACHE

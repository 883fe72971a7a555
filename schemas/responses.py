"""Pydantic response models for the kiosk UI API."""
from typing import Dict, Optional

from pydantic import BaseModel


class GestureOut(BaseModel):
	detected: bool
	kind: str
	confidence: float


class ShareOut(BaseModel):
	stored_url: str
	short_url: str
	qr_data_url: str


class ReadinessOut(BaseModel):
	"""Camera/pose-tracker readiness; `message` holds the sensor init failure, if any."""

	camera: bool
	pose_tracker: bool
	tracking: bool
	message: Optional[str] = None


class QualityOut(BaseModel):
	sampling_hz: int
	render_scale: float
	freeze_sampling: bool


class KioskStateResponse(BaseModel):
	"""Response from GET /api/state (also pushed over /ws as type=state)."""

	kiosk_id: str
	phase: str
	countdown: int
	gesture: GestureOut
	error_message: Optional[str] = None
	share: Optional[ShareOut] = None
	has_photo: bool
	is_uploading: bool
	readiness: ReadinessOut
	quality: QualityOut


class DismissResponse(BaseModel):
	"""Response from POST /api/dismiss."""

	detail: str
	phase: str


class QualityTableResponse(BaseModel):
	"""Response from GET /api/quality: policy per phase."""

	policies: Dict[str, QualityOut]

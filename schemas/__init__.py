"""Pydantic response models for API validation and docs."""
from schemas.responses import (
	DismissResponse,
	KioskStateResponse,
	QualityTableResponse,
)

__all__ = [
	"DismissResponse",
	"KioskStateResponse",
	"QualityTableResponse",
]

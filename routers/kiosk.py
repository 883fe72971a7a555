"""Kiosk UI routes. Routes: /api/state, /api/dismiss, /api/quality, /api/share/*, /media/*."""
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse, Response

from booth.kiosk import Kiosk, quality_table
from booth.phase import InteractionPhase
from deps import get_kiosk
from schemas.responses import DismissResponse, KioskStateResponse, QualityTableResponse

router = APIRouter(tags=["kiosk"])


@router.get("/api/state", response_model=KioskStateResponse)
async def kiosk_state(kiosk: Kiosk = Depends(get_kiosk)):
	return kiosk.snapshot()


@router.post("/api/dismiss", response_model=DismissResponse)
async def kiosk_dismiss(kiosk: Kiosk = Depends(get_kiosk)):
	"""User tap. Only valid while the share result or an error is on screen."""
	phase = kiosk.controller.phase
	if not kiosk.controller.dismiss():
		raise HTTPException(status_code=409, detail=f"Nothing to dismiss in phase '{phase.value}'")
	return {"detail": f"Dismissed {phase.value}.", "phase": kiosk.controller.phase.value}


@router.get("/api/quality", response_model=QualityTableResponse)
async def kiosk_quality():
	return {"policies": quality_table()}


@router.get("/api/share/qr.png")
async def share_qr(kiosk: Kiosk = Depends(get_kiosk)):
	share = kiosk.pipeline.results.share
	if kiosk.controller.phase is not InteractionPhase.DISPLAY or share is None:
		raise HTTPException(status_code=404, detail="No share result")
	return Response(content=share.qr_image.png, media_type="image/png", headers={"Cache-Control": "no-store"})


@router.get("/api/share/photo.jpg")
async def share_photo(kiosk: Kiosk = Depends(get_kiosk)):
	artifact = kiosk.pipeline.results.artifact
	if artifact is None:
		raise HTTPException(status_code=404, detail="No captured photo")
	return Response(content=artifact.jpeg, media_type="image/jpeg", headers={"Cache-Control": "no-store"})


@router.get("/media/{object_path:path}")
async def stored_photo(object_path: str, kiosk: Kiosk = Depends(get_kiosk)):
	"""Serve photos written by the local storage backend (its public URL base points here)."""
	root = kiosk.photo_root
	if root is None:
		raise HTTPException(status_code=404, detail="Local photo storage not enabled")
	root = root.resolve()
	# Public URLs carry the full object path, including the object prefix.
	path = (root / object_path).resolve()
	if root not in path.parents or not path.is_file():
		raise HTTPException(status_code=404, detail="Photo not found")
	return FileResponse(Path(path), media_type="image/jpeg")

"""
FastAPI dependencies. Use Depends(get_state) / Depends(get_kiosk) in route handlers.
"""
from fastapi import HTTPException, Request

from app_state import AppState
from booth.kiosk import Kiosk


def get_state(request: Request) -> AppState:
	"""Return the app state instance attached in lifespan."""
	return request.app.state.state


def get_kiosk(request: Request) -> Kiosk:
	"""Return the running kiosk; 503 before lifespan has started it."""
	kiosk = get_state(request).kiosk
	if kiosk is None:
		raise HTTPException(status_code=503, detail="Kiosk not ready")
	return kiosk

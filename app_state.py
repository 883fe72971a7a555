"""
Explicit app state: single source of truth for runtime lifecycle.
Created in lifespan, attached to app.state.state; injected into routes via Depends(get_state).
"""
from typing import Any, Callable, Optional

from booth.config import AppConfig
from booth.kiosk import Kiosk


class AppState:
	"""
	Holds all runtime state for the app. Populated in server lifespan.
	"""
	# WebSocket manager (routers.ws.manager)
	manager: Any = None

	# Config and the kiosk runtime
	cfg: Optional[AppConfig] = None
	kiosk: Optional[Kiosk] = None

	# Fire-and-forget log line broadcast (set in server after creation)
	log_to_clients: Optional[Callable[[str], None]] = None

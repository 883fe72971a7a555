import argparse
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app_state import AppState
from booth import __version__
from booth.config import AppConfig, get_config, set_config_path
from booth.kiosk import Kiosk
from routers import kiosk as kiosk_router
from routers import ws as ws_router
from routers.ws import manager

logger = logging.getLogger("booth.server")

KioskFactory = Callable[[AppConfig], Kiosk]


def _log_to_clients(message: str) -> None:
	"""
	Send a log line to all connected WebSocket clients.
	Fire-and-forget; safe to call from non-async code.
	"""
	try:
		asyncio.get_running_loop().create_task(manager.broadcast_json({"type": "log", "msg": message}))
	except RuntimeError:
		# No running loop in this thread (e.g. camera capture thread); ignore
		pass


def _state_to_clients(snapshot: Dict[str, Any]) -> None:
	try:
		asyncio.get_running_loop().create_task(manager.broadcast_json({"type": "state", **snapshot}))
	except RuntimeError:
		pass


class _ClientLogHandler(logging.Handler):
	"""Forwards booth.* log lines to the kiosk UI over /ws."""

	def emit(self, record: logging.LogRecord) -> None:
		try:
			_log_to_clients(self.format(record))
		except Exception:
			self.handleError(record)


def create_app(cfg: Optional[AppConfig] = None, kiosk_factory: Optional[KioskFactory] = None) -> FastAPI:
	@asynccontextmanager
	async def lifespan(app: FastAPI):
		state = AppState()
		state.cfg = cfg or get_config()
		state.manager = manager
		state.log_to_clients = _log_to_clients
		state.kiosk = (kiosk_factory or Kiosk)(state.cfg)
		state.kiosk.add_listener(_state_to_clients)
		app.state.state = state

		handler = _ClientLogHandler(level=logging.INFO)
		handler.setFormatter(logging.Formatter("%(message)s"))
		booth_logger = logging.getLogger("booth")
		booth_logger.addHandler(handler)
		try:
			await state.kiosk.start()
			yield
		finally:
			await state.kiosk.stop()
			booth_logger.removeHandler(handler)

	app = FastAPI(title="Booth kiosk", version=__version__, lifespan=lifespan)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=["*"],
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	app.include_router(kiosk_router.router)
	app.include_router(ws_router.router)
	return app


def main(argv: Optional[list[str]] = None) -> int:
	import uvicorn

	p = argparse.ArgumentParser(description="Hand-raise photo booth kiosk server")
	p.add_argument("--config", help="Path to config.json (default: repo root config.json)")
	p.add_argument("--host", help="Bind host (overrides server.host)")
	p.add_argument("--port", type=int, help="Bind port (overrides server.port)")
	p.add_argument("--debug", action="store_true", help="Enable debug logging")
	args = p.parse_args(argv)

	if args.config:
		set_config_path(args.config)
	cfg = get_config()

	level = logging.DEBUG if args.debug else getattr(logging, cfg.server.log_level, logging.INFO)
	logging.basicConfig(level=level, format="%(levelname)s:%(name)s:%(message)s")

	uvicorn.run(
		create_app(cfg),
		host=args.host or cfg.server.host,
		port=int(args.port or cfg.server.port),
		log_level="debug" if args.debug else "info",
	)
	return 0


if __name__ == "__main__":
	raise SystemExit(main())

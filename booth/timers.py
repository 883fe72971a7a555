from __future__ import annotations

import asyncio
from typing import Callable, Dict, Set


class PhaseTimers:
	"""
	Named, cancellable timer handles owned by the current phase.

	One handle per name: re-arming a name cancels its previous handle.
	`cancel_all` is called on every phase exit so no timer can fire into a
	phase that did not start it.
	"""

	def __init__(self) -> None:
		self._handles: Dict[str, asyncio.TimerHandle] = {}

	def call_later(self, name: str, delay_s: float, callback: Callable[[], None]) -> None:
		loop = asyncio.get_running_loop()
		self.cancel(name)

		def _fire() -> None:
			self._handles.pop(name, None)
			callback()

		self._handles[name] = loop.call_later(max(0.0, float(delay_s)), _fire)

	def call_every(self, name: str, interval_s: float, callback: Callable[[], None]) -> None:
		"""Recurring timer; re-armed before each callback so the callback may cancel it."""
		loop = asyncio.get_running_loop()
		self.cancel(name)
		interval_s = max(0.0, float(interval_s))

		def _fire() -> None:
			self._handles[name] = loop.call_later(interval_s, _fire)
			callback()

		self._handles[name] = loop.call_later(interval_s, _fire)

	def cancel(self, name: str) -> None:
		handle = self._handles.pop(name, None)
		if handle is not None:
			handle.cancel()

	def cancel_all(self) -> None:
		for name in list(self._handles):
			self.cancel(name)

	def active(self) -> Set[str]:
		return set(self._handles)

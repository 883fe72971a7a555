from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet


class InteractionPhase(str, Enum):
	PREVIEW = "preview"
	COUNTDOWN = "countdown"
	CAPTURING = "capturing"
	UPLOADING = "uploading"
	DISPLAY = "display"
	ERROR = "error"


P = InteractionPhase

# Every legal edge of the kiosk state machine. Anything else is rejected.
TRANSITIONS: Dict[InteractionPhase, FrozenSet[InteractionPhase]] = {
	P.PREVIEW: frozenset({P.COUNTDOWN, P.ERROR}),
	P.COUNTDOWN: frozenset({P.CAPTURING, P.PREVIEW, P.ERROR}),
	P.CAPTURING: frozenset({P.UPLOADING, P.ERROR}),
	P.UPLOADING: frozenset({P.DISPLAY, P.ERROR}),
	P.DISPLAY: frozenset({P.PREVIEW, P.ERROR}),
	P.ERROR: frozenset({P.PREVIEW}),
}


def can_transition(src: InteractionPhase, dst: InteractionPhase) -> bool:
	return dst in TRANSITIONS.get(src, frozenset())

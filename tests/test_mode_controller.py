import asyncio
import itertools

from booth.capture.pipeline import CapturePipeline
from booth.config import CaptureConfig, CountdownConfig, DisplayConfig
from booth.gesture import NO_GESTURE, GestureKind, GestureState
from booth.mode_controller import ModeController
from booth.phase import TRANSITIONS, InteractionPhase
from booth.quality import policy_for
from conftest import FakeCamera, FakeQr, FakeRenderer, FakeShortener, MemoryStore, wait_until

P = InteractionPhase
TRIGGER = GestureState(detected=True, kind=GestureKind.HAND_RAISE, confidence=1.0)


def make_controller(
	store=None,
	shortener=None,
	qr=None,
	camera=None,
	tick_s=0.01,
	qr_timeout_ms=5000.0,
	error_dismiss_ms=5000.0,
):
	camera = camera or FakeCamera()
	pipeline = CapturePipeline(
		camera_frame=camera.latest_rgb,
		renderer=FakeRenderer(),
		store=store or MemoryStore(),
		shortener=shortener or FakeShortener(),
		qr=qr or FakeQr(),
		kiosk_id="kiosk-test",
		capture_cfg=CaptureConfig(width=108, height=192),
	)
	return ModeController(
		pipeline,
		CountdownConfig(seconds=3, tick_interval_s=tick_s),
		DisplayConfig(qr_timeout_ms=qr_timeout_ms, error_dismiss_ms=error_dismiss_ms),
	)


def record(ctl):
	seen = []

	def listener(c):
		entry = (c.phase, c.quality.freeze_sampling)
		if not seen or seen[-1] != entry:
			seen.append(entry)

	ctl.add_listener(listener)
	return seen


def test_initial_state():
	ctl = make_controller()
	assert ctl.phase is P.PREVIEW
	assert ctl.countdown_value == 3
	assert ctl.error_message is None
	assert ctl.quality == policy_for(P.PREVIEW)


def test_hand_raise_starts_countdown_only_in_preview():
	async def scenario():
		ctl = make_controller(tick_s=10.0)
		assert not ctl.on_gesture(NO_GESTURE)
		assert not ctl.on_gesture(GestureState(detected=False, kind=GestureKind.HAND_RAISE, confidence=0.9))
		assert ctl.on_gesture(TRIGGER)
		assert ctl.phase is P.COUNTDOWN
		assert ctl.quality.sampling_hz == 15
		assert ctl.active_timers == {"countdown"}
		assert not ctl.on_gesture(TRIGGER)
		assert ctl.cancel_countdown()
		assert ctl.phase is P.PREVIEW
		assert ctl.active_timers == set()
		await ctl.shutdown()

	asyncio.run(scenario())


def test_countdown_to_display_freezes_sampling():
	async def scenario():
		ctl = make_controller()
		seen = record(ctl)
		counts = []
		ctl.add_listener(lambda c: counts.append(c.countdown_value) if c.phase is P.COUNTDOWN else None)
		ctl.on_gesture(TRIGGER)
		assert await wait_until(lambda: ctl.phase is P.DISPLAY)
		await ctl.shutdown()
		return ctl, seen, counts

	ctl, seen, counts = asyncio.run(scenario())
	assert seen == [
		(P.COUNTDOWN, False),
		(P.CAPTURING, True),
		(P.UPLOADING, True),
		(P.DISPLAY, True),
	]
	assert counts == [3, 2, 1]
	assert ctl.countdown_value == 0
	share = ctl.pipeline.results.share
	assert share is not None and share.short_url == "https://sho.rt/abc123"


def test_store_failure_enters_error_then_auto_dismisses():
	async def scenario():
		ctl = make_controller(store=MemoryStore(fail=True), error_dismiss_ms=80.0)
		seen = record(ctl)
		ctl.on_gesture(TRIGGER)
		assert await wait_until(lambda: ctl.phase is P.ERROR)
		message = ctl.error_message
		assert ctl.pipeline.results.share is None
		assert ctl.active_timers == {"error_dismiss"}
		assert await wait_until(lambda: ctl.phase is P.PREVIEW)
		return ctl, seen, message

	ctl, seen, message = asyncio.run(scenario())
	assert "store" in message
	assert [p for p, _ in seen] == [P.COUNTDOWN, P.CAPTURING, P.UPLOADING, P.ERROR, P.PREVIEW]
	assert not ctl.quality.freeze_sampling
	assert ctl.error_message is None
	assert ctl.countdown_value == 3
	assert ctl.pipeline.results.artifact is None


def test_shorten_failure_still_displays_and_tap_dismisses():
	async def scenario():
		ctl = make_controller(shortener=FakeShortener(fail=True))
		ctl.on_gesture(TRIGGER)
		assert await wait_until(lambda: ctl.phase is P.DISPLAY)
		share = ctl.pipeline.results.share
		assert share.short_url == share.stored_url
		assert ctl.active_timers == {"display_timeout"}
		assert ctl.dismiss()
		assert not ctl.dismiss()
		return ctl

	ctl = asyncio.run(scenario())
	assert ctl.phase is P.PREVIEW
	assert ctl.pipeline.results.share is None
	assert ctl.pipeline.results.artifact is None
	assert not ctl.quality.freeze_sampling


def test_display_times_out_to_preview():
	async def scenario():
		ctl = make_controller(qr_timeout_ms=60.0)
		ctl.on_gesture(TRIGGER)
		assert await wait_until(lambda: ctl.phase is P.DISPLAY)
		assert await wait_until(lambda: ctl.phase is P.PREVIEW)
		return ctl

	ctl = asyncio.run(scenario())
	assert ctl.pipeline.results.share is None


def test_stale_display_timeout_never_fires_after_tap():
	async def scenario():
		ctl = make_controller(qr_timeout_ms=60.0)
		ctl.on_gesture(TRIGGER)
		assert await wait_until(lambda: ctl.phase is P.DISPLAY)
		ctl.dismiss()
		# Slow countdown; the old display timer would have fired well before it ends.
		ctl.countdown_cfg = CountdownConfig(seconds=3, tick_interval_s=5.0)
		ctl.on_gesture(TRIGGER)
		await asyncio.sleep(0.15)
		phase = ctl.phase
		await ctl.shutdown()
		return phase

	assert asyncio.run(scenario()) is P.COUNTDOWN


def test_compose_failure_skips_uploading():
	class NoFrame(FakeCamera):
		def latest_rgb(self):
			return None

	async def scenario():
		ctl = make_controller(camera=NoFrame())
		seen = record(ctl)
		ctl.on_gesture(TRIGGER)
		assert await wait_until(lambda: ctl.phase is P.ERROR)
		await ctl.shutdown()
		return ctl, seen

	ctl, seen = asyncio.run(scenario())
	assert [p for p, _ in seen] == [P.COUNTDOWN, P.CAPTURING, P.ERROR]
	assert "compose" in ctl.error_message
	assert ctl.pipeline.results.artifact is None


def test_dismiss_rejected_outside_display_and_error():
	ctl = make_controller()
	for phase in (P.PREVIEW, P.COUNTDOWN, P.CAPTURING, P.UPLOADING):
		ctl.phase = phase
		assert not ctl.dismiss()
		assert ctl.phase is phase


def test_illegal_transitions_are_rejected():
	ctl = make_controller()
	for src, dst in itertools.product(P, P):
		ctl.phase = src
		accepted = ctl._transition(dst, "test")
		assert accepted == (dst in TRANSITIONS[src])
		assert ctl.phase is (dst if accepted else src)


def test_fail_from_error_is_ignored():
	async def scenario():
		ctl = make_controller()
		assert ctl.fail("Capture failed at store stage: boom")
		assert not ctl.fail("second")
		msg = ctl.error_message
		await ctl.shutdown()
		return msg

	assert asyncio.run(scenario()) == "Capture failed at store stage: boom"


def test_countdown_end_with_capture_in_flight_reports_capture_stage():
	async def scenario():
		ctl = make_controller()
		ctl.pipeline._running = True
		ctl.start_countdown()
		reached = await wait_until(lambda: ctl.phase is P.ERROR)
		await ctl.shutdown()
		return ctl, reached

	ctl, reached = asyncio.run(scenario())
	assert reached
	assert ctl.error_message == "Capture failed at capture stage: previous capture still in progress"

import pytest

from booth.config import GestureConfig
from booth.gesture import NO_GESTURE, GestureDetector, GestureKind, detect_hand_raise
from conftest import LOWERED, RAISED, make_frame


def test_wrist_well_above_shoulders_is_full_confidence_raise():
	state = detect_hand_raise(make_frame(left_wrist_y=0.20, shoulder_y=0.50))
	assert state.detected
	assert state.kind is GestureKind.HAND_RAISE
	assert state.confidence == pytest.approx(1.0)


def test_wrist_below_margin_is_not_a_raise():
	assert detect_hand_raise(make_frame(left_wrist_y=0.40, shoulder_y=0.50)) == NO_GESTURE


def test_best_side_sets_confidence():
	state = detect_hand_raise(make_frame(left_wrist_y=0.30, right_wrist_y=0.25, shoulder_y=0.50))
	assert state.confidence == pytest.approx(0.25 / 0.3)


def test_single_visible_side_is_evaluated_alone():
	frame = make_frame(left_wrist_y=0.30, right_wrist_y=0.0, shoulder_y=0.50, right_visibility=0.1)
	state = detect_hand_raise(frame)
	assert state.detected
	assert state.confidence == pytest.approx(0.2 / 0.3)


def test_no_visible_side_is_no_gesture():
	frame = make_frame(left_wrist_y=0.1, left_visibility=0.2, right_visibility=0.2)
	assert detect_hand_raise(frame) == NO_GESTURE
	assert detect_hand_raise(None) == NO_GESTURE


@pytest.mark.parametrize("wrist_y", [-50.0, -1e9, -0.5, 0.0, 0.34, 0.5, 3.0, 1e9, float("nan"), float("inf"), float("-inf")])
def test_confidence_stays_in_unit_range(wrist_y):
	state = detect_hand_raise(make_frame(left_wrist_y=wrist_y, shoulder_y=0.5))
	assert 0.0 <= state.confidence <= 1.0
	if state.detected:
		assert state.confidence > 0.0


def test_non_finite_visibility_counts_as_invisible():
	frame = make_frame(left_wrist_y=0.1, left_visibility=float("nan"), right_visibility=float("inf"))
	assert detect_hand_raise(frame) == NO_GESTURE


def test_trigger_needs_full_hold():
	det = GestureDetector(GestureConfig())
	for t in range(0, 500, 100):
		s = det.update(RAISED, t)
		assert not s.detected
		assert s.kind is GestureKind.HAND_RAISE
		assert s.confidence > 0
	assert det.update(RAISED, 500).detected


def test_loss_of_tracking_restarts_hold():
	det = GestureDetector(GestureConfig())
	for t in (0, 100, 200, 300):
		det.update(RAISED, t)
	assert det.update(None, 350) == NO_GESTURE
	assert not det.holding
	for t in (400, 600, 800):
		assert not det.update(RAISED, t).detected
	assert det.update(RAISED, 900).detected


def test_lowered_frame_restarts_hold():
	det = GestureDetector(GestureConfig())
	det.update(RAISED, 0)
	det.update(LOWERED, 450)
	assert not det.update(RAISED, 500).detected
	assert det.update(RAISED, 1000).detected


def test_cooldown_suppresses_but_still_reports_raise():
	det = GestureDetector(GestureConfig())
	det.update(RAISED, 0)
	assert det.update(RAISED, 500).detected
	for t in range(600, 3500, 100):
		s = det.update(RAISED, t)
		assert not s.detected
		assert s.kind is GestureKind.HAND_RAISE
		assert det.in_cooldown(t)
	# Cooldown over at 3500; a fresh full hold is needed.
	assert not det.update(RAISED, 3500).detected
	assert not det.update(RAISED, 3900).detected
	assert det.update(RAISED, 4000).detected


def test_tracking_loss_does_not_touch_cooldown():
	det = GestureDetector(GestureConfig())
	det.update(RAISED, 0)
	assert det.update(RAISED, 500).detected
	det.update(None, 1000)
	assert det.in_cooldown(3499)
	assert not det.in_cooldown(3500)
	det.update(RAISED, 3500)
	assert det.update(RAISED, 4000).detected


def test_triggers_at_most_once_per_cooldown_window():
	det = GestureDetector(GestureConfig())
	triggers = [t for t in range(0, 20000, 50) if det.update(RAISED, t).detected]
	assert triggers[0] == 500
	gaps = [b - a for a, b in zip(triggers, triggers[1:])]
	assert gaps and all(g >= 3000 for g in gaps)


def test_reset_keeps_cooldown():
	det = GestureDetector(GestureConfig())
	det.update(RAISED, 0)
	det.update(RAISED, 500)
	det.reset()
	assert det.state == NO_GESTURE
	assert det.in_cooldown(1000)

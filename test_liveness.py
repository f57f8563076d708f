"""
Tests for the blink / head-move liveness state machine
"""

import numpy as np
import pytest

from conftest import CLOSED_EAR, OPEN_EAR, live_sequence, make_landmarks, make_observation
from core.liveness import LivenessPhase, LivenessState, LivenessTracker


def feed(tracker, landmarks_list, state=None):
    state = state or tracker.initial_state()
    for landmarks in landmarks_list:
        state = tracker.update(state, landmarks).state
    return state


class TestBlinkDetection:
    def test_falling_edge_counts_once(self):
        tracker = LivenessTracker()
        ears = [0.3, 0.3, 0.3, 0.3, 0.15]
        state = feed(tracker, [make_landmarks(ear=e) for e in ears])
        assert state.blink_count == 1

    def test_held_closed_eyes_count_once(self):
        tracker = LivenessTracker()
        ears = [0.3, 0.3, 0.3, 0.3, 0.15, 0.15, 0.15]
        state = feed(tracker, [make_landmarks(ear=e) for e in ears])
        assert state.blink_count == 1

    def test_open_eyes_never_blink(self):
        tracker = LivenessTracker()
        state = feed(tracker, [make_landmarks(ear=0.3) for _ in range(20)])
        assert state.blink_count == 0

    def test_no_blink_during_warmup(self):
        tracker = LivenessTracker()
        # Falling edge on the 3rd value: history length is not yet above 3
        state = feed(tracker, [make_landmarks(ear=e) for e in [0.3, 0.3, 0.15]])
        assert state.blink_count == 0

    def test_fourth_value_can_blink(self):
        tracker = LivenessTracker()
        state = feed(tracker, [make_landmarks(ear=e) for e in [0.3, 0.3, 0.3]])
        step = tracker.update(state, make_landmarks(ear=0.15))
        assert len(step.state.ear_history) == 4
        assert step.blinked is True
        assert step.state.blink_count == 1

    def test_threshold_is_inclusive_for_previous_value(self):
        tracker = LivenessTracker()
        state = LivenessState(ear_history=(0.3, 0.3, 0.3, 0.21))
        step = tracker.update(state, make_landmarks(ear=0.15))
        assert step.blinked is True
        assert step.state.blink_count == 1


class TestHeadMoveDetection:
    def test_no_moves_counted_while_history_short(self):
        tracker = LivenessTracker()
        offsets = [(0, 0), (200, 0), (0, 0), (0, 200), (0, 0)]
        state = feed(tracker, [make_landmarks(offset=o) for o in offsets])
        assert len(state.ear_history) == 5
        assert state.head_move_count == 0

    def test_move_counted_once_per_qualifying_pair(self):
        tracker = LivenessTracker()
        state = feed(tracker, [make_landmarks() for _ in range(6)])

        step = tracker.update(state, make_landmarks(offset=(30, 0)))
        assert step.head_moved is True
        assert step.state.head_move_count == 1

        step = tracker.update(step.state, make_landmarks(offset=(30, 0)))
        assert step.head_moved is False
        assert step.state.head_move_count == 1

    def test_sixth_frame_can_count(self):
        tracker = LivenessTracker()
        state = feed(tracker, [make_landmarks() for _ in range(5)])
        state = feed(tracker, [make_landmarks(offset=(0, 30))], state)
        assert state.head_move_count == 1

    def test_small_displacement_ignored(self):
        tracker = LivenessTracker()
        offsets = [(0, 0)] * 6 + [(25, 25), (0, 0)]
        state = feed(tracker, [make_landmarks(offset=o) for o in offsets])
        assert state.head_move_count == 0

    def test_nose_position_updated_every_frame(self):
        tracker = LivenessTracker()
        state = feed(tracker, [make_landmarks(offset=(12, -4))])
        assert state.last_nose_position == pytest.approx((332.0, 236.0))


class TestConfirmation:
    def test_live_sequence_confirms_one_sample(self):
        tracker = LivenessTracker()
        encoding = np.full(128, 0.05)
        state = tracker.initial_state()
        steps = []
        for observation in live_sequence(encoding):
            step = tracker.step(state, observation)
            state = step.state
            steps.append(step)

        assert [s.confirmed for s in steps] == [False] * 8 + [True]
        sample = steps[-1].sample
        assert sample is not None
        assert np.array_equal(sample.encoding, encoding)
        assert sample.has_glasses is False
        assert sample.has_facial_hair is False

    def test_state_resets_after_confirmation(self):
        tracker = LivenessTracker()
        state = tracker.initial_state()
        for observation in live_sequence():
            state = tracker.step(state, observation).state

        assert state == LivenessState()
        assert state.phase is LivenessPhase.IDLE

    def test_blinks_alone_do_not_confirm(self):
        tracker = LivenessTracker()
        ears = [OPEN_EAR, OPEN_EAR, OPEN_EAR, OPEN_EAR] + [CLOSED_EAR, OPEN_EAR] * 4
        state = tracker.initial_state()
        for ear in ears:
            step = tracker.step(state, make_observation(ear=ear))
            state = step.state
            assert step.sample is None
        assert state.blink_count == 4
        assert state.phase is LivenessPhase.TRACKING

    def test_input_state_is_not_mutated(self):
        tracker = LivenessTracker()
        state = feed(tracker, [make_landmarks() for _ in range(4)])
        before = state
        tracker.update(state, make_landmarks(ear=CLOSED_EAR))
        assert state == before
        assert len(state.ear_history) == 4


def test_history_is_bounded():
    tracker = LivenessTracker({'liveness': {'ear_history_size': 8}})
    state = feed(tracker, [make_landmarks() for _ in range(20)])
    assert len(state.ear_history) == 8


def test_history_size_must_cover_warmup():
    with pytest.raises(ValueError):
        LivenessTracker({'liveness': {'ear_history_size': 5}})


def test_thresholds_from_config():
    tracker = LivenessTracker({'liveness': {'required_blinks': 1, 'required_head_moves': 0}})
    ears = [OPEN_EAR] * 4 + [CLOSED_EAR]
    state = tracker.initial_state()
    for ear in ears:
        step = tracker.step(state, make_observation(ear=ear))
        state = step.state
    assert step.confirmed is True

"""
FaceScan-Auth - Liveness Tracking
Blink and head-movement challenge state machine for one capture session

The tracker itself holds only thresholds. All progress lives in an immutable
LivenessState value that each transition takes in and hands back, so the
capture loop owns exactly one copy of the session state.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from core.appearance import EAR_THRESHOLD, classify_appearance
from core.geometry import NOSE_BRIDGE_TIP, average_ear
from core.models import CapturedSample, FaceObservation, LandmarkSet, Point

logger = logging.getLogger(__name__)

REQUIRED_BLINKS = 3
REQUIRED_HEAD_MOVES = 2
HEAD_MOVE_THRESHOLD = 25.0
EAR_HISTORY_SIZE = 32

# A blink needs more than this many EAR values, head moves more than HEAD_MOVE_WARMUP
BLINK_WARMUP = 3
HEAD_MOVE_WARMUP = 5


class LivenessPhase(Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class LivenessState:
    """Accumulated liveness evidence for the sample currently being captured"""
    blink_count: int = 0
    head_move_count: int = 0
    ear_history: Tuple[float, ...] = ()
    last_nose_position: Optional[Point] = None

    @property
    def phase(self) -> LivenessPhase:
        if not self.ear_history and self.last_nose_position is None:
            return LivenessPhase.IDLE
        return LivenessPhase.TRACKING


@dataclass(frozen=True)
class LivenessStep:
    """Outcome of feeding one observation to the tracker"""
    state: LivenessState
    phase: LivenessPhase
    sample: Optional[CapturedSample] = None
    blinked: bool = False
    head_moved: bool = False

    @property
    def confirmed(self) -> bool:
        return self.phase is LivenessPhase.CONFIRMED


class LivenessTracker:
    """
    Decides when a live subject has been observed long enough to capture a sample

    Per observation:
        1. average EAR of both eyes is appended to the history
        2. a falling edge across the EAR threshold counts as a blink
        3. nose displacement past the movement threshold counts as a head move,
           but only once the EAR history has warmed up
        4. the nose position is remembered for the next frame

    Once both counters reach their targets the observation becomes a
    CapturedSample and the state starts over for the next sample.
    """

    def __init__(self, config: Optional[Dict] = None):
        settings = (config or {}).get('liveness', {})
        self.ear_threshold = settings.get('ear_threshold', EAR_THRESHOLD)
        self.required_blinks = settings.get('required_blinks', REQUIRED_BLINKS)
        self.required_head_moves = settings.get('required_head_moves', REQUIRED_HEAD_MOVES)
        self.head_move_threshold = settings.get('head_move_threshold', HEAD_MOVE_THRESHOLD)
        self.ear_history_size = settings.get('ear_history_size', EAR_HISTORY_SIZE)

        if self.ear_history_size <= HEAD_MOVE_WARMUP:
            raise ValueError(
                f"ear_history_size must exceed {HEAD_MOVE_WARMUP}, got {self.ear_history_size}"
            )

    def initial_state(self) -> LivenessState:
        return LivenessState()

    def update(self, state: LivenessState, landmarks: LandmarkSet) -> LivenessStep:
        """
        Advance the counters with one frame's landmarks

        Args:
            state: state before this frame
            landmarks: landmarks of a face that passed the position gate

        Returns:
            LivenessStep in the TRACKING phase carrying the new state
        """
        avg_ear = average_ear(landmarks)
        history = (state.ear_history + (avg_ear,))[-self.ear_history_size:]

        blink_count = state.blink_count
        blinked = (
            len(history) > BLINK_WARMUP
            and avg_ear < self.ear_threshold
            and history[-2] >= self.ear_threshold
        )
        if blinked:
            blink_count += 1
            logger.debug(f"Blink detected ({blink_count}/{self.required_blinks}), EAR={avg_ear:.3f}")

        head_move_count = state.head_move_count
        nose = landmarks[NOSE_BRIDGE_TIP]
        head_moved = False
        if state.last_nose_position is not None and len(history) > HEAD_MOVE_WARMUP:
            dx = abs(nose[0] - state.last_nose_position[0])
            dy = abs(nose[1] - state.last_nose_position[1])
            head_moved = dx > self.head_move_threshold or dy > self.head_move_threshold
        if head_moved:
            head_move_count += 1
            logger.debug(f"Head move detected ({head_move_count}/{self.required_head_moves})")

        new_state = LivenessState(
            blink_count=blink_count,
            head_move_count=head_move_count,
            ear_history=history,
            last_nose_position=nose,
        )
        return LivenessStep(
            state=new_state,
            phase=LivenessPhase.TRACKING,
            blinked=blinked,
            head_moved=head_moved,
        )

    def is_confirmed(self, state: LivenessState) -> bool:
        return (
            state.blink_count >= self.required_blinks
            and state.head_move_count >= self.required_head_moves
        )

    def step(self, state: LivenessState, observation: FaceObservation) -> LivenessStep:
        """
        Feed one in-position observation and capture a sample when liveness is confirmed

        The returned state is reset whenever a sample is emitted.
        """
        result = self.update(state, observation.landmarks)
        if not self.is_confirmed(result.state):
            return result

        has_glasses, has_facial_hair = classify_appearance(observation.landmarks, self.ear_threshold)
        sample = CapturedSample(
            encoding=observation.encoding,
            has_glasses=has_glasses,
            has_facial_hair=has_facial_hair,
        )
        logger.info(
            f"Liveness confirmed: blinks={result.state.blink_count}, "
            f"head_moves={result.state.head_move_count}, glasses={has_glasses}, "
            f"facial_hair={has_facial_hair}"
        )
        return LivenessStep(
            state=self.initial_state(),
            phase=LivenessPhase.CONFIRMED,
            sample=sample,
            blinked=result.blinked,
            head_moved=result.head_moved,
        )

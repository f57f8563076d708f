"""
FaceScan-Auth - Sample Capture
Drives frame acquisition, position gating and liveness tracking until enough
live samples are captured or the time budget runs out.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from core.errors import CaptureFailure
from core.liveness import LivenessState, LivenessTracker
from core.models import CapturedSample, FaceBox, FaceObservation

logger = logging.getLogger(__name__)

MIN_FACE_SIZE = 100
MAX_CAPTURE_SECONDS = 30
REQUIRED_SAMPLES = 3
CENTER_TOLERANCE = 0.2
SIZE_TOLERANCE = 0.3

# Face size bounds as a fraction of the frame, widened by SIZE_TOLERANCE on each side
MIN_FACE_FRACTION = 0.2
MAX_FACE_FRACTION = 0.4

DEFAULT_INSTRUCTION = "Please look directly at the camera"


class FacePosition(Enum):
    NO_FACE = "no_face"
    TOO_SMALL = "too_small"
    OFF_CENTER = "off_center"
    IN_POSITION = "in_position"


@dataclass(frozen=True)
class CaptureStatus:
    """Everything a capture overlay needs to render for one frame"""
    instruction: str
    position: FacePosition
    face_box: Optional[FaceBox]
    blink_count: int
    required_blinks: int
    head_move_count: int
    required_head_moves: int
    samples_captured: int
    required_samples: int

    @property
    def face_in_position(self) -> bool:
        return self.position is FacePosition.IN_POSITION


@dataclass(frozen=True)
class CaptureSuccess:
    samples: Tuple[CapturedSample, ...]

    succeeded = True


@dataclass(frozen=True)
class CaptureTimedOut:
    samples: Tuple[CapturedSample, ...]
    required: int

    succeeded = False


CaptureResult = Union[CaptureSuccess, CaptureTimedOut]


def require_samples(result: CaptureResult) -> List[CapturedSample]:
    """Unwrap a capture result, raising CaptureFailure on timeout"""
    if isinstance(result, CaptureTimedOut):
        raise CaptureFailure(len(result.samples), result.required)
    return list(result.samples)


def is_face_in_good_position(
    frame_width: int,
    frame_height: int,
    box: FaceBox,
    center_tolerance: float = CENTER_TOLERANCE,
    size_tolerance: float = SIZE_TOLERANCE
) -> bool:
    """
    Check that a face is centered and reasonably sized in the frame

    The face center must lie within ``center_tolerance`` of the frame size from
    the frame center on both axes, and each face dimension must fall strictly
    between (0.2 - size_tolerance) and (0.4 + size_tolerance) of the frame.
    """
    center_x, center_y = box.center

    x_centered = abs(center_x - frame_width / 2.0) < frame_width * center_tolerance
    y_centered = abs(center_y - frame_height / 2.0) < frame_height * center_tolerance

    min_fraction = MIN_FACE_FRACTION - size_tolerance
    max_fraction = MAX_FACE_FRACTION + size_tolerance
    good_width = frame_width * min_fraction < box.width < frame_width * max_fraction
    good_height = frame_height * min_fraction < box.height < frame_height * max_fraction

    return x_centered and y_centered and good_width and good_height


def choose_instruction(
    position: FacePosition,
    samples_captured: int,
    required_samples: int,
    state: LivenessState,
    tracker: LivenessTracker,
    previous: str = DEFAULT_INSTRUCTION
) -> str:
    """Pick the instruction to show, highest priority first"""
    if samples_captured > 0:
        return f"Captured {samples_captured}/{required_samples} samples"
    if position is FacePosition.NO_FACE:
        return "Please position your face in the frame"
    if position is FacePosition.TOO_SMALL:
        return "Move closer to the camera"
    if position is FacePosition.OFF_CENTER:
        return "Move slightly to center your face"
    if state.blink_count < tracker.required_blinks:
        return f"Blink naturally {tracker.required_blinks} times"
    if state.head_move_count < tracker.required_head_moves:
        return "Slowly turn your head side to side"
    return previous


class CaptureOrchestrator:
    """
    Runs one capture session at a time

    Collaborators:
        frame_source: object with ``read()`` returning an image array or None
        detector: object with ``detect(image)`` returning a FaceObservation or None
        voice: optional object with ``speak_async(text)``; never blocks the loop
        on_status: optional callback receiving a CaptureStatus every frame
        clock: monotonic seconds source, injectable for tests
    """

    def __init__(
        self,
        frame_source,
        detector,
        tracker: LivenessTracker,
        config: Optional[Dict] = None,
        voice=None,
        on_status: Optional[Callable[[CaptureStatus], None]] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        settings = (config or {}).get('capture', {})
        self.frame_source = frame_source
        self.detector = detector
        self.tracker = tracker
        self.voice = voice
        self.on_status = on_status
        self.clock = clock

        self.required_samples = settings.get('required_samples', REQUIRED_SAMPLES)
        self.max_capture_seconds = settings.get('max_capture_seconds', MAX_CAPTURE_SECONDS)
        self.min_face_size = settings.get('min_face_size', MIN_FACE_SIZE)
        self.center_tolerance = settings.get('center_tolerance', CENTER_TOLERANCE)
        self.size_tolerance = settings.get('size_tolerance', SIZE_TOLERANCE)

    def evaluate_position(
        self,
        frame_width: int,
        frame_height: int,
        observation: Optional[FaceObservation]
    ) -> FacePosition:
        """Classify a frame's face against the size and position gates"""
        if observation is None:
            return FacePosition.NO_FACE

        box = observation.box
        if box.width < self.min_face_size or box.height < self.min_face_size:
            return FacePosition.TOO_SMALL

        if not is_face_in_good_position(
            frame_width, frame_height, box, self.center_tolerance, self.size_tolerance
        ):
            return FacePosition.OFF_CENTER

        return FacePosition.IN_POSITION

    def capture_samples(
        self,
        required_count: Optional[int] = None,
        max_duration_seconds: Optional[float] = None
    ) -> CaptureResult:
        """
        Capture liveness-confirmed samples

        Args:
            required_count: number of samples to capture (config default if None)
            max_duration_seconds: time budget (config default if None)

        Returns:
            CaptureSuccess with exactly ``required_count`` samples, or
            CaptureTimedOut with whatever was captured before the budget ran out

        Raises:
            ValueError: fewer than one sample requested
        """
        required = required_count if required_count is not None else self.required_samples
        if required < 1:
            raise ValueError(f"required_count must be at least 1, got {required}")
        budget = max_duration_seconds if max_duration_seconds is not None else self.max_capture_seconds

        samples: List[CapturedSample] = []
        state = self.tracker.initial_state()
        instruction = DEFAULT_INSTRUCTION
        start = self.clock()

        logger.info(f"Starting capture: {required} samples within {budget}s")

        while len(samples) < required and (self.clock() - start) < budget:
            frame = self.frame_source.read()
            if frame is None:
                continue

            frame_height, frame_width = frame.shape[:2]
            observation = self.detector.detect(frame)
            position = self.evaluate_position(frame_width, frame_height, observation)

            if position is FacePosition.IN_POSITION:
                step = self.tracker.step(state, observation)
                state = step.state
                if step.sample is not None:
                    samples.append(step.sample)
                    logger.info(f"Captured sample {len(samples)}/{required}")
                    self._announce(f"Captured sample {len(samples)}")

            instruction = choose_instruction(
                position, len(samples), required, state, self.tracker, instruction
            )
            self._emit_status(CaptureStatus(
                instruction=instruction,
                position=position,
                face_box=observation.box if observation is not None else None,
                blink_count=state.blink_count,
                required_blinks=self.tracker.required_blinks,
                head_move_count=state.head_move_count,
                required_head_moves=self.tracker.required_head_moves,
                samples_captured=len(samples),
                required_samples=required,
            ))

        if len(samples) >= required:
            logger.info(f"Capture complete: {len(samples)} samples")
            return CaptureSuccess(samples=tuple(samples))

        logger.warning(f"Capture timed out after {budget}s with {len(samples)}/{required} samples")
        return CaptureTimedOut(samples=tuple(samples), required=required)

    def _emit_status(self, status: CaptureStatus):
        if self.on_status is not None:
            self.on_status(status)

    def _announce(self, text: str):
        if self.voice is None:
            return
        try:
            self.voice.speak_async(text)
        except Exception as e:
            logger.error(f"Voice feedback failed: {e}")

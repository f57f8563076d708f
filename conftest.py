"""
Shared test fixtures and fakes for FaceScan-Auth
"""

import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent))

from core.models import CapturedSample, FaceBox, FaceObservation, LandmarkSet

FRAME_WIDTH = 640
FRAME_HEIGHT = 480
OPEN_EAR = 0.3
CLOSED_EAR = 0.15
CENTERED_BOX = FaceBox(left=220, top=140, width=200, height=200)


def _eye(x, y, ear, width=30.0):
    h = 15.0 * ear * width / 30.0
    return [
        (x, y),
        (x + width / 3, y - h),
        (x + 2 * width / 3, y - h),
        (x + width, y),
        (x + 2 * width / 3, y + h),
        (x + width / 3, y + h),
    ]


def make_landmarks(
    ear=OPEN_EAR,
    offset=(0.0, 0.0),
    left_ear=None,
    right_ear=None,
    jaw_width=140.0,
    chin_to_nose=50.0
):
    """Build a 68-point face around (320, 240) shifted by ``offset``"""
    cx = 320.0 + offset[0]
    cy = 240.0 + offset[1]
    points = [(cx, cy)] * 68

    for i in range(17):
        points[i] = (cx - jaw_width / 2 + jaw_width * i / 16, cy + 20)
    points[8] = (cx, cy + 80)
    points[30] = (cx, cy)
    points[33] = (cx, cy + 80 - chin_to_nose)

    points[36:42] = _eye(cx - 50, cy - 30, ear if left_ear is None else left_ear)
    points[42:48] = _eye(cx + 20, cy - 30, ear if right_ear is None else right_ear)

    return LandmarkSet(points)


def encoding_with_similarity(sim, base=None, dim=0):
    """Encoding whose similarity to ``base`` (zeros by default) is ``sim``"""
    enc = np.zeros(128) if base is None else np.array(base, dtype=np.float64)
    enc[dim] += 1.0 - sim
    return enc


def make_observation(ear=OPEN_EAR, offset=(0.0, 0.0), box=CENTERED_BOX, encoding=None):
    if encoding is None:
        encoding = np.zeros(128)
    return FaceObservation(landmarks=make_landmarks(ear, offset), encoding=encoding, box=box)


def live_sequence(encoding=None):
    """
    Nine observations that complete exactly one liveness confirmation:
    three blinks (frames 5, 7, 9) and two head moves (frames 7, 9)
    """
    script = [
        (OPEN_EAR, 0), (OPEN_EAR, 0), (OPEN_EAR, 0), (OPEN_EAR, 0),
        (CLOSED_EAR, 0), (OPEN_EAR, 0), (CLOSED_EAR, 30), (OPEN_EAR, 30),
        (CLOSED_EAR, 0),
    ]
    return [make_observation(ear, (dx, 0.0), encoding=encoding) for ear, dx in script]


class FakeFrameSource:
    """Yields blank frames; ``None`` entries in ``pattern`` simulate dropped frames"""

    def __init__(self, pattern=None):
        self.pattern = list(pattern or [])
        self.reads = 0

    def read(self):
        self.reads += 1
        if self.pattern:
            if self.pattern.pop(0) is None:
                return None
        return np.zeros((FRAME_HEIGHT, FRAME_WIDTH, 3), dtype=np.uint8)


class FakeDetector:
    """Returns scripted observations in order, then no face"""

    def __init__(self, observations=None):
        self.observations = list(observations or [])
        self.calls = 0

    def detect(self, image):
        self.calls += 1
        if self.observations:
            return self.observations.pop(0)
        return None


class FakeClock:
    def __init__(self, step=0.1):
        self.now = 0.0
        self.step = step

    def __call__(self):
        current = self.now
        self.now += self.step
        return current


class RecordingVoice:
    def __init__(self):
        self.async_phrases = []
        self.sync_phrases = []

    def speak_async(self, text):
        self.async_phrases.append(text)

    def speak_sync(self, text):
        self.sync_phrases.append(text)


class BrokenVoice:
    def speak_async(self, text):
        raise RuntimeError("audio device missing")

    def speak_sync(self, text):
        raise RuntimeError("audio device missing")


def make_sample(encoding=None, glasses=False, hair=False):
    return CapturedSample(
        encoding=np.zeros(128) if encoding is None else encoding,
        has_glasses=glasses,
        has_facial_hair=hair,
    )


@pytest.fixture
def voice():
    return RecordingVoice()


@pytest.fixture
def clock():
    return FakeClock()

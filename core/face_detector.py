"""
FaceScan-Auth - Face Detector
Face detection, 68-point landmarks and 128-d encodings via face_recognition (dlib)
"""

import logging
from typing import Dict, List, Optional, Sequence

import cv2
import numpy as np

from core.errors import DetectorUnavailableError
from core.geometry import LANDMARK_COUNT
from core.models import FaceBox, FaceObservation, LandmarkSet

logger = logging.getLogger(__name__)

_REGIONS_IN_ORDER = (
    'chin',           # 0-16
    'left_eyebrow',   # 17-21
    'right_eyebrow',  # 22-26
    'nose_bridge',    # 27-30
    'nose_tip',       # 31-35
    'left_eye',       # 36-41
    'right_eye',      # 42-47
)


def landmarks_from_regions(regions: Dict[str, Sequence]) -> LandmarkSet:
    """
    Rebuild the canonical 68-point order from face_recognition's named regions

    face_recognition reports the lips as two 12-point loops that share corner
    and inner points, so the mouth (48-67) is unpacked from them explicitly.
    """
    points: List = []
    for name in _REGIONS_IN_ORDER:
        points.extend(regions[name])

    top_lip = regions['top_lip']
    bottom_lip = regions['bottom_lip']
    points.extend(top_lip[0:7])                                       # 48-54
    points.extend(bottom_lip[1:6])                                    # 55-59
    points.extend([top_lip[11], top_lip[10], top_lip[9], top_lip[8], top_lip[7]])  # 60-64
    points.extend([bottom_lip[10], bottom_lip[9], bottom_lip[8]])     # 65-67

    if len(points) != LANDMARK_COUNT:
        raise ValueError(f"Expected {LANDMARK_COUNT} landmarks, got {len(points)}")
    return LandmarkSet(points)


def box_from_location(location) -> FaceBox:
    """Convert a face_recognition (top, right, bottom, left) location"""
    top, right, bottom, left = location
    return FaceBox(left=left, top=top, width=right - left, height=bottom - top)


class FaceDetector:
    """
    Returns at most one face per frame: the largest detected one

    Frames are expected in OpenCV BGR order, as read from the camera.
    """

    def __init__(self, config: Optional[Dict] = None):
        settings = (config or {}).get('detector', {})
        self.model = settings.get('model', 'hog')
        self.upsample = settings.get('upsample', 1)
        self.num_jitters = settings.get('num_jitters', 1)
        self._fr = None

        self._init_face_recognition()

    def _init_face_recognition(self):
        """Load face_recognition and its dlib models"""
        try:
            import face_recognition
            self._fr = face_recognition
            logger.info(f"face_recognition detector initialized (model={self.model})")
        except ImportError as e:
            logger.error(f"face_recognition not available: {e}")
            raise DetectorUnavailableError(
                "face_recognition is required for detection: pip install face_recognition"
            ) from e

    def detect(self, image: np.ndarray) -> Optional[FaceObservation]:
        """
        Detect the primary face in a frame

        Args:
            image: BGR frame

        Returns:
            FaceObservation for the largest face, or None if no face is found
        """
        if image is None or not isinstance(image, np.ndarray) or image.size == 0:
            return None

        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        locations = self._fr.face_locations(rgb, number_of_times_to_upsample=self.upsample, model=self.model)
        if not locations:
            return None

        location = max(locations, key=lambda loc: (loc[1] - loc[3]) * (loc[2] - loc[0]))

        regions = self._fr.face_landmarks(rgb, face_locations=[location], model='large')
        if not regions:
            return None

        encodings = self._fr.face_encodings(rgb, known_face_locations=[location], num_jitters=self.num_jitters)
        encoding = encodings[0] if encodings else None

        return FaceObservation(
            landmarks=landmarks_from_regions(regions[0]),
            encoding=encoding,
            box=box_from_location(location),
        )

"""
FaceScan-Auth - Appearance Classification
Glasses and facial-hair flags derived from landmark geometry
"""

import logging

from core.geometry import (
    CHIN,
    JAW_LEFT,
    JAW_RIGHT,
    NOSE_TIP,
    euclidean_distance,
    left_eye_ear,
    right_eye_ear,
)
from core.models import LandmarkSet

logger = logging.getLogger(__name__)

EAR_THRESHOLD = 0.21
GLASSES_EAR_FACTOR = 0.7
FACIAL_HAIR_RATIO = 4.2


def detect_glasses(landmarks: LandmarkSet, ear_threshold: float = EAR_THRESHOLD) -> bool:
    """
    Glasses frames distort the eye contour and drag the apparent EAR down,
    so either eye falling under 70% of the blink threshold flags glasses.
    """
    cutoff = ear_threshold * GLASSES_EAR_FACTOR
    return left_eye_ear(landmarks) < cutoff or right_eye_ear(landmarks) < cutoff


def detect_facial_hair(landmarks: LandmarkSet) -> bool:
    """
    Flag facial hair from the jaw-width to chin-nose ratio

    A beard widens the detected jaw and shortens the chin-to-nose span, so a
    ratio above 4.2 flags facial hair. A zero chin-to-nose span is degenerate
    geometry and reads as no facial hair.
    """
    jaw_width = euclidean_distance(landmarks[JAW_LEFT], landmarks[JAW_RIGHT])
    chin_to_nose = euclidean_distance(landmarks[CHIN], landmarks[NOSE_TIP])
    if chin_to_nose == 0:
        logger.debug("Degenerate chin-to-nose distance, skipping facial hair check")
        return False

    return (jaw_width / chin_to_nose) > FACIAL_HAIR_RATIO


def classify_appearance(landmarks: LandmarkSet, ear_threshold: float = EAR_THRESHOLD):
    """Return ``(has_glasses, has_facial_hair)`` for one face"""
    return detect_glasses(landmarks, ear_threshold), detect_facial_hair(landmarks)

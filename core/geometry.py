"""
FaceScan-Auth - Landmark Geometry
Eye aspect ratio and point distances over the canonical 68-point landmark scheme
"""

import math
from typing import Sequence

from core.models import LandmarkSet, Point

# Canonical 68-point indices
JAW_LEFT = 0
CHIN = 8
JAW_RIGHT = 16
NOSE_BRIDGE_TIP = 30
NOSE_TIP = 33
LEFT_EYE = tuple(range(36, 42))
RIGHT_EYE = tuple(range(42, 48))

LANDMARK_COUNT = 68


def euclidean_distance(a: Point, b: Point) -> float:
    """Standard 2D distance between two points"""
    return math.hypot(a[0] - b[0], a[1] - b[1])


def eye_aspect_ratio(eye_points: Sequence[Point]) -> float:
    """
    Compute the Eye Aspect Ratio of one eye contour

    EAR = (|p1-p5| + |p2-p4|) / (2 * |p0-p3|)
    p0 and p3 are the eye corners, p1/p2 the upper lid, p4/p5 the lower lid.

    Args:
        eye_points: exactly 6 ordered eye-contour points

    Returns:
        The ratio, or ``math.inf`` when the eye corners coincide. An infinite
        EAR reads as a wide-open eye, so a collapsed contour can never count as
        a blink or as glasses.
    """
    if len(eye_points) != 6:
        raise ValueError(f"Expected 6 eye points, got {len(eye_points)}")

    p0, p1, p2, p3, p4, p5 = eye_points
    width = euclidean_distance(p0, p3)
    if width == 0:
        return math.inf

    return (euclidean_distance(p1, p5) + euclidean_distance(p2, p4)) / (2.0 * width)


def left_eye_ear(landmarks: LandmarkSet) -> float:
    return eye_aspect_ratio(landmarks.select(LEFT_EYE))


def right_eye_ear(landmarks: LandmarkSet) -> float:
    return eye_aspect_ratio(landmarks.select(RIGHT_EYE))


def average_ear(landmarks: LandmarkSet) -> float:
    """Mean EAR of both eyes"""
    return (left_eye_ear(landmarks) + right_eye_ear(landmarks)) / 2.0

"""
FaceScan-Auth - Data Model
Landmarks, per-frame observations, captured samples and enrolled user profiles
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

Point = Tuple[float, float]


class LandmarkSet:
    """
    Immutable ordered set of 2D facial landmark points

    Indexed with the canonical 68-point numbering (jaw 0-16, nose 27-35,
    eyes 36-47). Detectors built on another landmark model must remap
    into this order before constructing the set.
    """

    __slots__ = ("_points",)

    def __init__(self, points: Sequence[Sequence[float]]):
        self._points: Tuple[Point, ...] = tuple(
            (float(p[0]), float(p[1])) for p in points
        )

    def __getitem__(self, index: int) -> Point:
        return self._points[index]

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self):
        return iter(self._points)

    def __eq__(self, other) -> bool:
        if not isinstance(other, LandmarkSet):
            return NotImplemented
        return self._points == other._points

    def __hash__(self) -> int:
        return hash(self._points)

    def __repr__(self) -> str:
        return f"LandmarkSet({len(self._points)} points)"

    def select(self, indices: Sequence[int]) -> List[Point]:
        """Return the points at the given indices, in order"""
        return [self._points[i] for i in indices]


@dataclass(frozen=True)
class FaceBox:
    """Face bounding box in frame pixel coordinates"""
    left: float
    top: float
    width: float
    height: float

    @property
    def center(self) -> Point:
        return (self.left + self.width / 2.0, self.top + self.height / 2.0)


@dataclass(frozen=True)
class FaceObservation:
    """One detected face in one processed frame"""
    landmarks: LandmarkSet
    encoding: Optional[np.ndarray]
    box: FaceBox


@dataclass(frozen=True)
class CapturedSample:
    """A liveness-confirmed encoding with the appearance flags seen at capture time"""
    encoding: Optional[np.ndarray]
    has_glasses: bool
    has_facial_hair: bool


@dataclass
class UserProfile:
    """
    Enrolled user record

    ``embeddings``, ``has_glasses`` and ``has_facial_hair`` are parallel lists:
    entry ``i`` of each describes stored sample ``i``.
    """
    name: str
    embeddings: List[List[float]] = field(default_factory=list)
    has_glasses: List[bool] = field(default_factory=list)
    has_facial_hair: List[bool] = field(default_factory=list)
    last_updated: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not (len(self.embeddings) == len(self.has_glasses) == len(self.has_facial_hair)):
            raise ValueError(
                f"Profile '{self.name}' has mismatched sample lists: "
                f"{len(self.embeddings)} embeddings, {len(self.has_glasses)} glasses flags, "
                f"{len(self.has_facial_hair)} facial hair flags"
            )

    @classmethod
    def from_samples(
        cls,
        name: str,
        samples: Sequence[CapturedSample],
        last_updated: Optional[datetime] = None
    ) -> "UserProfile":
        """Build a profile from freshly captured samples"""
        return cls(
            name=name,
            embeddings=[_encoding_to_list(s.encoding) for s in samples],
            has_glasses=[bool(s.has_glasses) for s in samples],
            has_facial_hair=[bool(s.has_facial_hair) for s in samples],
            last_updated=last_updated or datetime.now(),
        )

    @property
    def sample_count(self) -> int:
        return len(self.embeddings)

    @property
    def glasses_count(self) -> int:
        return sum(1 for g in self.has_glasses if g)

    @property
    def facial_hair_count(self) -> int:
        return sum(1 for h in self.has_facial_hair if h)

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'embeddings': [list(e) for e in self.embeddings],
            'has_glasses': list(self.has_glasses),
            'has_facial_hair': list(self.has_facial_hair),
            'last_updated': self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "UserProfile":
        return cls(
            name=data['name'],
            embeddings=[list(e) for e in data.get('embeddings', [])],
            has_glasses=[bool(g) for g in data.get('has_glasses', [])],
            has_facial_hair=[bool(h) for h in data.get('has_facial_hair', [])],
            last_updated=datetime.fromisoformat(data['last_updated']),
        )


def _encoding_to_list(encoding) -> List[float]:
    if encoding is None:
        return []
    return [float(v) for v in np.asarray(encoding, dtype=np.float64).reshape(-1)]

"""
FaceScan-Auth - Similarity Matching
Appearance-aware comparison of captured samples against enrolled profiles
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from core.models import CapturedSample, UserProfile

logger = logging.getLogger(__name__)

BASE_THRESHOLD = 0.65
FLOOR_FACTOR = 0.9
ENCODING_SIZE = 128

# Distance reported for missing or malformed encodings; never matches anything
MAX_DISTANCE = sys.float_info.max


def face_distance(enc_a, enc_b, encoding_size: int = ENCODING_SIZE) -> float:
    """
    Euclidean distance between two face encodings

    Returns MAX_DISTANCE if either encoding is missing, not numeric, or not
    a flat vector of exactly ``encoding_size`` values.
    """
    if enc_a is None or enc_b is None:
        return MAX_DISTANCE

    try:
        a = np.asarray(enc_a, dtype=np.float64)
        b = np.asarray(enc_b, dtype=np.float64)
    except (TypeError, ValueError):
        return MAX_DISTANCE

    if a.shape != (encoding_size,) or b.shape != (encoding_size,):
        return MAX_DISTANCE

    return float(np.sqrt(np.sum((a - b) ** 2)))


def similarity(enc_a, enc_b, encoding_size: int = ENCODING_SIZE) -> float:
    """``1 - distance``; unbounded below, not a probability"""
    return 1.0 - face_distance(enc_a, enc_b, encoding_size)


def dynamic_threshold(
    auth_glasses: bool,
    auth_hair: bool,
    reg_glasses: bool,
    reg_hair: bool,
    base_threshold: float = BASE_THRESHOLD
) -> float:
    """
    Acceptance bar for one (captured, stored) sample pair

    Appearance changes legitimately shift encodings, so the bar drops by 5%
    when one of the glasses / facial-hair flags differs and by 10% when both do.
    """
    glasses_match = auth_glasses == reg_glasses
    hair_match = auth_hair == reg_hair

    if glasses_match and hair_match:
        return base_threshold
    if glasses_match or hair_match:
        return base_threshold * 0.95
    return base_threshold * 0.9


@dataclass(frozen=True)
class SampleSimilarity:
    sample_index: int
    user_name: str
    similarity: float

    def __str__(self) -> str:
        return f"Sample {self.sample_index + 1} vs {self.user_name}: {self.similarity:.1%}"


@dataclass
class UserScore:
    """Aggregate of all captured samples against one enrolled user"""
    user_name: str
    accepted: bool
    confidence: float
    similarities: List[SampleSimilarity] = field(default_factory=list)


@dataclass
class MatchResult:
    """Result of one authentication attempt"""
    matched_user_name: Optional[str] = None
    confidence: float = 0.0
    per_sample_similarities: List[SampleSimilarity] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.matched_user_name is not None

    def to_dict(self) -> dict:
        return {
            'matched_user_name': self.matched_user_name,
            'confidence': round(self.confidence, 3),
            'per_sample_similarities': [
                (s.sample_index, s.user_name, s.similarity) for s in self.per_sample_similarities
            ],
        }


class FaceMatcher:
    """
    Compares captured samples against enrolled user profiles

    A user is accepted only if every captured sample has a best similarity at or
    above the hard floor (``base_threshold * floor_factor``). The user's
    confidence is the weakest sample's best similarity, and the highest
    confidence across users wins; equal confidences keep the earlier user.
    """

    def __init__(self, config: Optional[Dict] = None):
        settings = (config or {}).get('matching', {})
        self.base_threshold = settings.get('base_threshold', BASE_THRESHOLD)
        self.floor_factor = settings.get('floor_factor', FLOOR_FACTOR)
        self.encoding_size = settings.get('encoding_size', ENCODING_SIZE)

    @property
    def floor(self) -> float:
        return self.base_threshold * self.floor_factor

    def similarity(self, enc_a, enc_b) -> float:
        return similarity(enc_a, enc_b, self.encoding_size)

    def best_similarity(self, sample: CapturedSample, profile: UserProfile) -> float:
        """
        Best similarity of one captured sample against a user's stored embeddings

        Scans stored embeddings in order and stops at the first one that clears
        its own pair's dynamic threshold. The running best is updated before the
        exit check, so the result is the maximum seen up to the exit point.
        """
        best = 0.0
        for j, stored in enumerate(profile.embeddings):
            sim = self.similarity(stored, sample.encoding)
            threshold = dynamic_threshold(
                sample.has_glasses, sample.has_facial_hair,
                profile.has_glasses[j], profile.has_facial_hair[j],
                self.base_threshold,
            )

            if sim > best:
                best = sim

            if sim >= threshold:
                break

        return best

    def score_user(self, samples: Sequence[CapturedSample], profile: UserProfile) -> UserScore:
        """
        Score all captured samples against one user

        Stops at the first sample under the floor; that user is rejected.
        """
        confidence = 1.0
        similarities: List[SampleSimilarity] = []

        for i, sample in enumerate(samples):
            best = self.best_similarity(sample, profile)
            similarities.append(SampleSimilarity(i, profile.name, best))

            if best < self.floor:
                return UserScore(profile.name, False, best, similarities)

            confidence = min(confidence, best)

        accepted = len(samples) > 0
        return UserScore(profile.name, accepted, confidence if accepted else 0.0, similarities)

    def match(self, samples: Sequence[CapturedSample], profiles: Sequence[UserProfile]) -> MatchResult:
        """
        Decide which enrolled user, if any, the captured samples belong to

        Returns:
            MatchResult naming the winning user, or an unmatched result when no
            user passes the floor or nobody is enrolled
        """
        result = MatchResult()

        for profile in profiles:
            score = self.score_user(samples, profile)
            result.per_sample_similarities.extend(score.similarities)

            for line in score.similarities:
                logger.info(str(line))

            if score.accepted and score.confidence > result.confidence:
                result.confidence = score.confidence
                result.matched_user_name = profile.name

        if result.matched:
            logger.info(f"Matched {result.matched_user_name} (confidence {result.confidence:.1%})")
        else:
            logger.info(f"No match among {len(profiles)} enrolled users")
        return result

    def find_duplicate(
        self,
        encoding,
        profiles: Sequence[UserProfile],
        current_name: Optional[str] = None
    ) -> Optional[Tuple[str, float]]:
        """
        Look for another user who already owns this face

        Args:
            encoding: first captured encoding of the registration
            profiles: enrolled users
            current_name: name being registered; that profile is skipped

        Returns:
            (existing_name, similarity) of the first stored embedding whose
            similarity exceeds the base threshold, or None
        """
        for profile in profiles:
            if profile.name == current_name:
                continue

            for stored in profile.embeddings:
                sim = self.similarity(stored, encoding)
                if sim > self.base_threshold:
                    logger.warning(f"Face already registered as: {profile.name} (similarity {sim:.0%})")
                    return profile.name, sim

        return None

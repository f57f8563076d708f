"""
FaceScan-Auth - Face Authentication Flows
Registration, authentication and user management on top of capture,
matching and storage
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from core.capture import CaptureOrchestrator, CaptureTimedOut, require_samples
from core.database import Database
from core.errors import DuplicateIdentityError, FaceAuthError, UserAlreadyExistsError
from core.matcher import FaceMatcher, MatchResult
from core.models import UserProfile

logger = logging.getLogger(__name__)


class FaceAuthenticator:
    """
    Coordinates one registration or authentication at a time

    Voice announcements inside the capture loop are fire-and-forget; the final
    outcome of each flow is spoken synchronously once capture has finished.
    """

    def __init__(
        self,
        config: Dict,
        database: Database,
        capture: CaptureOrchestrator,
        matcher: Optional[FaceMatcher] = None,
        voice=None
    ):
        self.config = config
        self.db = database
        self.capture = capture
        self.matcher = matcher or FaceMatcher(config)
        self.voice = voice
        self.required_samples = config.get('capture', {}).get('required_samples', 3)

    def register(self, name: str) -> UserProfile:
        """
        Enroll a new user

        Args:
            name: unique user name

        Returns:
            The stored profile

        Raises:
            ValueError: empty name
            UserAlreadyExistsError: name already enrolled
            CaptureFailure: not enough live samples before timeout
            DuplicateIdentityError: the face belongs to another enrolled user
            FaceAuthError: the profile could not be stored
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("Name cannot be empty")

        if self.db.user_exists(name):
            self._announce("Username already exists")
            raise UserAlreadyExistsError(name)

        logger.info(f"Starting registration for {name}")
        result = self.capture.capture_samples(self.required_samples)
        if isinstance(result, CaptureTimedOut):
            self.db.log_audit(name, "registration", "capture timed out", status="failed")
            self._announce("Registration failed, couldn't capture face properly")
        samples = require_samples(result)

        duplicate = self.matcher.find_duplicate(samples[0].encoding, self.db.load_profiles(), name)
        if duplicate is not None:
            existing_name, sim = duplicate
            self.db.log_audit(name, "registration", f"duplicate of {existing_name}", status="failed")
            self._announce("This face is already registered")
            raise DuplicateIdentityError(existing_name, sim)

        profile = UserProfile.from_samples(name, samples, last_updated=datetime.now())
        if self.db.save_profile(profile) is None:
            raise FaceAuthError(f"Failed to store profile for {name}")

        logger.info(f"Registration successful: {name}")
        self._announce("Registration successful")
        return profile

    def authenticate(self) -> MatchResult:
        """
        Capture live samples and identify the user among enrolled profiles

        Returns:
            MatchResult; unmatched when nobody is enrolled or nobody passes

        Raises:
            CaptureFailure: not enough live samples before timeout
        """
        logger.info("Starting authentication")
        result = self.capture.capture_samples(self.required_samples)
        if isinstance(result, CaptureTimedOut):
            self.db.log_audit(None, "authentication", "capture timed out", status="failed")
            self._announce("Authentication failed, couldn't capture face properly")
        samples = require_samples(result)

        profiles = self.db.load_profiles()
        match = self.matcher.match(samples, profiles)

        if match.matched:
            self.db.log_audit(match.matched_user_name, "authentication", f"confidence {match.confidence:.3f}")
            self._announce(f"Welcome back {match.matched_user_name}")
        else:
            self.db.log_audit(None, "authentication", "no match", status="failed")
            self._announce("Authentication failed")

        return match

    def list_users(self) -> List[UserProfile]:
        return self.db.load_profiles()

    def delete_user(self, name: str) -> bool:
        deleted = self.db.delete_user(name)
        if deleted:
            self._announce("User deleted")
        return deleted

    def _announce(self, text: str):
        if self.voice is None:
            return
        try:
            self.voice.speak_sync(text)
        except Exception as e:
            logger.error(f"Voice feedback failed: {e}")

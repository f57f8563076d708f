"""
Tests for the registration and authentication flows
"""

import numpy as np
import pytest

from conftest import BrokenVoice, encoding_with_similarity, make_sample
from core.capture import CaptureSuccess, CaptureTimedOut
from core.database import Database
from core.errors import (
    CaptureFailure,
    DuplicateIdentityError,
    FaceAuthError,
    UserAlreadyExistsError,
)
from core.face_auth import FaceAuthenticator


class ScriptedCapture:
    """Hands out prepared capture results in order"""

    def __init__(self, *results):
        self.results = list(results)
        self.requested = []

    def capture_samples(self, required_count=None, max_duration_seconds=None):
        self.requested.append(required_count)
        return self.results.pop(0)


def success(*encodings, glasses=False):
    return CaptureSuccess(tuple(make_sample(e, glasses=glasses) for e in encodings))


@pytest.fixture
def db():
    database = Database(":memory:")
    database.connect()
    database.initialize_schema()
    yield database
    database.close()


def make_auth(db, *results, voice=None):
    return FaceAuthenticator({}, db, ScriptedCapture(*results), voice=voice)


ALICE = np.zeros(128)
BOB = np.full(128, 0.5)


class TestRegister:
    def test_stores_profile(self, db, voice):
        auth = make_auth(db, success(ALICE, ALICE, ALICE, glasses=True), voice=voice)

        profile = auth.register("alice")

        assert profile.sample_count == 3
        assert profile.glasses_count == 3
        assert db.get_profile("alice") == profile
        assert auth.capture.requested == [3]
        assert voice.sync_phrases == ["Registration successful"]

    def test_name_is_trimmed(self, db):
        auth = make_auth(db, success(ALICE))
        assert auth.register("  alice ").name == "alice"

    def test_empty_name_rejected(self, db):
        auth = make_auth(db)
        with pytest.raises(ValueError):
            auth.register("   ")

    def test_existing_name_rejected_before_capture(self, db, voice):
        auth = make_auth(db, success(ALICE), voice=voice)
        auth.register("alice")

        with pytest.raises(UserAlreadyExistsError) as excinfo:
            auth.register("alice")

        assert excinfo.value.name == "alice"
        assert auth.capture.requested == [3]
        assert voice.sync_phrases[-1] == "Username already exists"

    def test_timeout_stores_nothing(self, db, voice):
        auth = make_auth(db, CaptureTimedOut((make_sample(),), 3), voice=voice)

        with pytest.raises(CaptureFailure) as excinfo:
            auth.register("alice")

        assert excinfo.value.captured == 1
        assert db.user_exists("alice") is False
        assert voice.sync_phrases == ["Registration failed, couldn't capture face properly"]

    def test_duplicate_face_rejected(self, db, voice):
        auth = make_auth(
            db,
            success(ALICE),
            success(encoding_with_similarity(0.8)),
            voice=voice,
        )
        auth.register("alice")

        with pytest.raises(DuplicateIdentityError) as excinfo:
            auth.register("mallory")

        assert excinfo.value.existing_name == "alice"
        assert excinfo.value.similarity == pytest.approx(0.8)
        assert db.user_exists("mallory") is False
        assert voice.sync_phrases[-1] == "This face is already registered"

    def test_different_face_accepted(self, db):
        auth = make_auth(db, success(ALICE), success(BOB))
        auth.register("alice")
        auth.register("bob")
        assert [p.name for p in auth.list_users()] == ["alice", "bob"]

    def test_storage_failure_raises(self, db, monkeypatch):
        auth = make_auth(db, success(ALICE))
        monkeypatch.setattr(db, "save_profile", lambda profile: None)
        with pytest.raises(FaceAuthError):
            auth.register("alice")

    def test_broken_voice_is_tolerated(self, db):
        auth = make_auth(db, success(ALICE), voice=BrokenVoice())
        assert auth.register("alice").name == "alice"


class TestAuthenticate:
    def test_known_face_matches(self, db, voice):
        auth = make_auth(db, success(ALICE), success(ALICE, ALICE, ALICE), voice=voice)
        auth.register("alice")

        result = auth.authenticate()

        assert result.matched is True
        assert result.matched_user_name == "alice"
        assert result.confidence == pytest.approx(1.0)
        assert voice.sync_phrases[-1] == "Welcome back alice"

    def test_unknown_face_rejected(self, db, voice):
        auth = make_auth(db, success(ALICE), success(BOB), voice=voice)
        auth.register("alice")

        result = auth.authenticate()

        assert result.matched is False
        assert voice.sync_phrases[-1] == "Authentication failed"

    def test_no_enrolled_users(self, db):
        auth = make_auth(db, success(ALICE))
        result = auth.authenticate()
        assert result.matched is False
        assert result.per_sample_similarities == []

    def test_timeout_raises(self, db, voice):
        auth = make_auth(db, CaptureTimedOut((), 3), voice=voice)
        with pytest.raises(CaptureFailure):
            auth.authenticate()
        assert voice.sync_phrases == ["Authentication failed, couldn't capture face properly"]

    def test_outcomes_are_audited(self, db):
        auth = make_auth(db, success(ALICE), success(ALICE))
        auth.register("alice")
        auth.authenticate()

        latest = db.get_audit_logs("alice")[0]
        assert latest['action'] == "authentication"
        assert latest['status'] == "success"


def test_delete_user(db, voice):
    auth = make_auth(db, success(ALICE), voice=voice)
    auth.register("alice")

    assert auth.delete_user("alice") is True
    assert auth.delete_user("alice") is False
    assert auth.list_users() == []
    assert voice.sync_phrases[-1] == "User deleted"

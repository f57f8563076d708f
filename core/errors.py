"""
FaceScan-Auth - Error Types
"""


class FaceAuthError(Exception):
    """Base class for registration and authentication failures"""


class CaptureFailure(FaceAuthError):
    """Not enough liveness-confirmed samples were captured before the time budget ran out"""

    def __init__(self, captured: int, required: int):
        self.captured = captured
        self.required = required
        super().__init__(f"Captured {captured}/{required} samples before timeout")


class DuplicateIdentityError(FaceAuthError):
    """The face being registered already belongs to another enrolled user"""

    def __init__(self, existing_name: str, similarity: float):
        self.existing_name = existing_name
        self.similarity = similarity
        super().__init__(
            f"Face already registered as '{existing_name}' (similarity {similarity:.0%})"
        )


class UserAlreadyExistsError(FaceAuthError):
    """A profile with this name is already enrolled"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Username already exists: {name}")


class DetectorUnavailableError(FaceAuthError):
    """Face detection models could not be loaded"""

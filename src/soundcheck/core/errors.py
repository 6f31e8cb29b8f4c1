"""
SoundCheck Error Taxonomy
Domain errors raised by the core and mapped to HTTP responses by the API layer
"""

GENERIC_FAILURE_MESSAGE = "Cannot complete this action"


class SoundCheckError(Exception):
    """Base error for all core operations"""

    status_code: int = 500
    expose_message: bool = False

    def __init__(self, message: str = GENERIC_FAILURE_MESSAGE):
        super().__init__(message)
        self.message = message

    @property
    def user_message(self) -> str:
        """Message safe to show to the end user"""
        return self.message if self.expose_message else GENERIC_FAILURE_MESSAGE


class ValidationError(SoundCheckError):
    """Bad input shape or range, rejected before any mutation"""

    status_code = 400
    expose_message = True


class InsufficientCredits(SoundCheckError):
    """Guarded deduction matched no rows"""

    status_code = 402
    expose_message = True

    def __init__(self, message: str = "Insufficient credits"):
        super().__init__(message)


class NotFoundOrForbidden(SoundCheckError):
    """Entity missing, soft-deleted, or not owned by the caller"""

    status_code = 404


class UploadNotClaimable(NotFoundOrForbidden):
    """Upload missing, foreign, or already consumed"""

    expose_message = True

    def __init__(
        self,
        message: str = "Audio file not found. Please upload the file before creating a track."
    ):
        super().__init__(message)


class RateLimitExceeded(SoundCheckError):
    """Per-user quota exhausted for the current window"""

    status_code = 429
    expose_message = True


class AlreadyExists(SoundCheckError):
    """Duplicate write; the effect has already been recorded"""

    status_code = 409
    expose_message = True


class StateConflict(SoundCheckError):
    """Guarded transition matched zero rows because of a concurrent change"""

    status_code = 409


class FatalError(SoundCheckError):
    """Not recoverable locally"""

    status_code = 500


class ProfileNotFound(FatalError):
    """Profile missing after initialization"""


class RepositoryError(FatalError):
    """Storage layer failure"""

"""
Error taxonomy for the advisory/diagnosis pipeline.

Every error carries a ``user_message`` that is safe to show as-is. Adapters
raise these (wrapping backend exceptions), the pipeline and the deletion
coordinator catch them, and nothing below the routers lets them escape.
"""
from typing import Iterable, Optional


class FarmAdvisoryError(Exception):
    """Base class for all pipeline errors"""
    user_message = "Something went wrong. Please try again."

    def __init__(self, detail: str = "", user_message: Optional[str] = None):
        super().__init__(detail or self.user_message)
        self.detail = detail
        if user_message:
            self.user_message = user_message

    @property
    def code(self) -> str:
        return type(self).__name__


class ConfigurationError(FarmAdvisoryError):
    """A required credential is missing; detected before any network call"""
    user_message = "The service is not configured. Please contact the administrator."


class GenerationServiceError(FarmAdvisoryError):
    user_message = "The AI service is unavailable right now. Please try again later."


class MalformedResponse(FarmAdvisoryError):
    user_message = "Received an invalid response from the AI service."


class BlobWriteError(FarmAdvisoryError):
    user_message = "The image could not be uploaded."


class BlobDeleteError(FarmAdvisoryError):
    user_message = "Some images could not be removed."

    def __init__(self, failed_keys: Iterable[str], detail: str = ""):
        self.failed_keys = sorted(set(failed_keys))
        super().__init__(detail or f"Failed to remove {len(self.failed_keys)} blob(s): {self.failed_keys}")


class StoreReadError(FarmAdvisoryError):
    user_message = "Your history could not be loaded."


class StoreWriteError(FarmAdvisoryError):
    user_message = "The result could not be saved."


class RenderDepthExceeded(ValueError):
    """Advice nesting is deeper than the renderer accepts"""

    def __init__(self, limit: int):
        super().__init__(f"Advice nesting exceeds {limit} levels")
        self.limit = limit

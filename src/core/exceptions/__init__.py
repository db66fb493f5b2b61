from src.core.exceptions.base import (
    AppException,
    BackendError,
    ComposerStateError,
    NotFoundError,
    ValidationError,
    PdfGenerationUnavailableError,
)

__all__ = [
    "AppException",
    "BackendError",
    "ComposerStateError",
    "NotFoundError",
    "ValidationError",
    "PdfGenerationUnavailableError",
]

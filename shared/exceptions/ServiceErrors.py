"""Typed failures raised by the service layer.

The API layer maps these onto HTTP status codes. Background CV processing
catches them and records the message on the affected record instead.
"""


class ServiceError(Exception):
    """Base class for all expected service-level failures."""


class InputValidationError(ServiceError):
    """A required field is missing or a value is outside its allowed set."""


class DuplicateIdentifierError(InputValidationError):
    """A mnemonic or taxonomy key already exists in the target collection."""


class RecordNotFoundError(ServiceError):
    """The requested record does not exist for the given owner."""


class UnsupportedFileTypeError(ServiceError):
    """The declared file type has no text extractor."""


class UpstreamServiceError(ServiceError):
    """An external backend (e.g. the analyzer API) was not ready or answered with an error status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

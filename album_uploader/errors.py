"""Exceptions raised by album_uploader."""


class UploaderError(Exception):
    """Base class for album_uploader errors."""


class SessionAbort(UploaderError):
    """A structural precondition of a session operation is not met."""


class SessionBusy(SessionAbort):
    """The session is running a transfer and rejects mutation."""

    def __init__(self, operation: str):
        super().__init__(f"session busy: cannot {operation} while a transfer run is active")
        self.operation = operation


class APIError(UploaderError):
    """The album backend answered with an error status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class TransferError(UploaderError):
    """A single candidate could not be committed to the destination store."""


class PreviewReleasedError(UploaderError):
    """A preview handle was released twice or used after release."""


class InvalidTransition(UploaderError):
    """A progress record was driven through an illegal state transition."""

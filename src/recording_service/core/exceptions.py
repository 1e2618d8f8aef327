"""
Recording Service Exceptions

Caller-facing error taxonomy plus the persistence-level signals the core
translates into it.
"""


class RecordingServiceError(Exception):
    """Base class for errors surfaced to callers.

    ``str(error)`` is the short, stable, user-facing message. Backend error
    text never ends up here.
    """

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(RecordingServiceError):
    code = "not_found"
    status_code = 404


class ForbiddenError(RecordingServiceError):
    code = "forbidden"
    status_code = 403


class BadRequestError(RecordingServiceError):
    code = "bad_request"
    status_code = 400


class ConflictError(RecordingServiceError):
    code = "conflict"
    status_code = 409


class InternalError(RecordingServiceError):
    code = "internal_error"
    status_code = 500


# Persistence-level signals raised by the repository


class RepositoryError(Exception):
    """Base class for repository failures with a known meaning"""


class RecordNotFoundError(RepositoryError):
    """No row matched the lookup or update"""


class DuplicateRecordError(RepositoryError):
    """A unique constraint rejected the write"""


class StaleRecordError(RepositoryError):
    """The row changed since it was read (version mismatch)"""

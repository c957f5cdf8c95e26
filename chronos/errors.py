"""Typed failures raised by the time entry core."""


class TimeEntryError(Exception):
    """Base class for time entry failures."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConflictError(TimeEntryError):
    """The owner already has a running timer."""

    status_code = 409


class InvalidStateError(TimeEntryError):
    """The entry is not in a state that allows the transition."""

    status_code = 409


class NotFoundError(TimeEntryError):
    """Unknown id, malformed id, or an entry owned by someone else."""

    status_code = 404


class ValidationError(TimeEntryError):
    """Malformed input or a time range where end is not after start."""

    status_code = 400

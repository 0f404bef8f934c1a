"""Error taxonomy shared by every component.

Remote failures are normalised into these types by :mod:`api`; controllers
catch :class:`ClinicQueueError` at their boundary and expose ``message`` as a
display-ready string.
"""


class ClinicQueueError(Exception):
    """Base class.  ``message`` is always safe to show to a user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ClinicQueueError):
    """Rejected locally before any network call."""


class NotFound(ClinicQueueError):
    """The service has no booking with the requested id."""


class AuthFailed(ClinicQueueError):
    """Login credentials were rejected."""


class Unauthorized(ClinicQueueError):
    """An authenticated call was refused because the session is no longer valid."""


class ServiceError(ClinicQueueError):
    """The service rejected the call and explained why."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class TransportError(ClinicQueueError):
    """Network failure, timeout or an unusable response."""


# Caller errors: the operation was invalid in the current local state.

class InvalidOperation(ClinicQueueError):
    pass


class MutationInProgress(ClinicQueueError):
    def __init__(self, message: str, internal_id: str):
        super().__init__(message)
        self.internal_id = internal_id


class PollerError(ClinicQueueError):
    pass

"""Error taxonomy shared by the scheduling engine, repositories and routes."""


class SchedulingError(Exception):
    """Base class for every error raised by the availability engine."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(SchedulingError):
    """Malformed input. Never retried."""

    status_code = 400


class TenantNotFound(SchedulingError):
    status_code = 404


class AppointmentNotFound(SchedulingError):
    status_code = 404


class ServiceNotFound(SchedulingError):
    status_code = 404


class ConfigurationError(SchedulingError):
    """Tenant configuration cannot produce a valid operating window."""

    status_code = 422


class SlotUnavailable(SchedulingError):
    """The proposed interval overlaps an active booking.

    This is an expected outcome under concurrent booking; callers may retry
    with a different slot.
    """

    status_code = 409


class RepositoryError(SchedulingError):
    """The backing store failed or timed out. No partial writes are visible."""

    status_code = 500

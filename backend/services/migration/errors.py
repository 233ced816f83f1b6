"""
Exceptions raised by the migration engine.

AccountAccessError and its subclasses are job-fatal. RecordRejectedError and
RetryExhaustedError only fail the record they were raised for.
"""

from typing import Optional


class MigrationError(Exception):
    """Base migration engine error"""
    pass


class AccountAccessError(MigrationError):
    """Credentials rejected or account no longer usable (401/403)"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PlatformUnreachableError(AccountAccessError):
    """Platform could not be reached even after retrying"""
    pass


class TransientPlatformError(MigrationError):
    """Rate limit, server error, timeout or dropped connection; safe to retry"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        unreachable: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after
        self.unreachable = unreachable


class RecordRejectedError(MigrationError):
    """Platform refused a single record (validation, 4xx)"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RecordNotFoundError(RecordRejectedError):
    """Resource not found (404)"""
    pass


class RecordConflictError(RecordRejectedError):
    """Record already exists in the destination (409 or duplicate message)"""

    def __init__(self, message: str, existing_id: Optional[str] = None, status_code: Optional[int] = 409):
        super().__init__(message, status_code)
        self.existing_id = existing_id


class RetryExhaustedError(MigrationError):
    """Transient failure persisted past the attempt ceiling"""

    def __init__(self, message: str, attempts: int, last_error: Optional[Exception] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class PlanningError(MigrationError):
    """Category selection cannot be planned"""
    pass


class JobConflictError(MigrationError):
    """Another job is already writing to the same destination tenant"""

    def __init__(self, message: str, active_job_id: Optional[str] = None):
        super().__init__(message)
        self.active_job_id = active_job_id

"""Error hierarchy for evsrc.

Error layers:
- EvsrcError: Base class for all evsrc errors
- DomainError: Missing objects, invalid state, version conflicts
- InfrastructureError: Failures talking to Docker, Zendesk, the database or the secret store
- PermanentError: Wrapper telling the reconcile queue not to retry an observation

Everything except PermanentError is retried with backoff by the reconcile queue.
"""

from http import HTTPStatus


class EvsrcError(Exception):
    """Base class for all evsrc errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(message)


# =============================================================================
# Domain Errors
# =============================================================================


class DomainError(EvsrcError):
    """Base class for domain errors."""


class NotFoundError(DomainError):
    """Resource not found."""


class ValidationError(DomainError):
    """Input validation failed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


class InvalidStateError(DomainError):
    """Operation not allowed in current state."""


class ConflictError(DomainError):
    """Resource already exists or version conflict."""


class AuthorizationError(DomainError):
    """Credentials were rejected."""


# =============================================================================
# Infrastructure Errors
# =============================================================================


class InfrastructureError(EvsrcError):
    """Base class for infrastructure/system errors."""


class StorageUnavailableError(InfrastructureError):
    """Storage backend (database, secret store) is unavailable."""


class ExternalServiceError(InfrastructureError):
    """External service (Docker daemon, Zendesk API) is unavailable or failed."""

    def __init__(
        self, message: str, code: str | None = None, status_code: int | None = None
    ) -> None:
        super().__init__(message, code=code)
        self.status_code = status_code


class ConfigurationError(InfrastructureError):
    """System or source misconfiguration detected."""


class SecretKeyMissingError(ConfigurationError):
    """The secret exists but does not contain the requested key."""

    def __init__(self, key: str, secret: str) -> None:
        super().__init__(f'key "{key}" not found in secret "{secret}"', code="SECRET_KEY_MISSING")
        self.key = key
        self.secret = secret


# =============================================================================
# Retry classification
# =============================================================================


class PermanentError(EvsrcError):
    """Marks a failure that retrying the same observation cannot fix."""

    def __init__(self, cause: Exception) -> None:
        super().__init__(str(cause), code="PERMANENT")
        self.cause = cause
        self.__cause__ = cause


def is_permanent(error: BaseException) -> bool:
    """Whether the reconcile queue should drop the key instead of retrying."""
    return isinstance(error, PermanentError)


def is_denied(error: BaseException) -> bool:
    """Whether an external service rejected our credentials (401/403)."""
    if isinstance(error, AuthorizationError):
        return True
    if isinstance(error, ExternalServiceError):
        return error.status_code in (HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN)
    return False


def is_conflict(error: BaseException) -> bool:
    """Whether an external create failed because the object already exists."""
    if isinstance(error, ConflictError):
        return True
    if isinstance(error, ExternalServiceError):
        return error.status_code in (HTTPStatus.CONFLICT, HTTPStatus.UNPROCESSABLE_ENTITY)
    return False

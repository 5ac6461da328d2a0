"""
Error taxonomy shared by the payroll services.

Every error carries a ``kind`` (returned to API callers next to the message)
and the HTTP status the blueprints answer with.
"""
from sqlalchemy.exc import OperationalError, SQLAlchemyError


class ServiceError(Exception):
    kind = 'ServiceError'
    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message, 'kind': self.kind}


class ValidationError(ServiceError):
    kind = 'ValidationError'
    status_code = 400

    def __init__(self, message, fields=None):
        super().__init__(message)
        self.fields = fields or {}

    def to_dict(self):
        payload = super().to_dict()
        if self.fields:
            payload['fields'] = self.fields
        return payload


class NotFoundError(ServiceError):
    kind = 'NotFound'
    status_code = 404


class ConcurrentModificationError(ServiceError):
    kind = 'ConcurrentModification'
    status_code = 409


class UpstreamUnavailableError(ServiceError):
    kind = 'UpstreamUnavailable'
    status_code = 503


class ServiceTimeoutError(ServiceError):
    kind = 'Timeout'
    status_code = 504


_TIMEOUT_MARKERS = (
    'timeout',
    'timed out',
    'database is locked',
    'canceling statement due to statement timeout',
    'lock_timeout',
)

_SERIALIZATION_MARKERS = (
    'could not serialize access',
    'deadlock detected',
)


def translate_db_error(exc: SQLAlchemyError, action: str) -> ServiceError:
    """
    Map a SQLAlchemy error raised while performing ``action`` onto the taxonomy.

    Lock waits and statement timeouts become Timeout. Serialization failures
    become ConcurrentModification. Everything else is UpstreamUnavailable.
    """
    detail = str(getattr(exc, 'orig', None) or exc).lower()
    if any(marker in detail for marker in _SERIALIZATION_MARKERS):
        return ConcurrentModificationError(f"Concurrent update while trying to {action}. Please retry.")
    if isinstance(exc, OperationalError) and any(marker in detail for marker in _TIMEOUT_MARKERS):
        return ServiceTimeoutError(f"Timed out while trying to {action}.")
    return UpstreamUnavailableError(f"Could not {action}. Please try again later.")

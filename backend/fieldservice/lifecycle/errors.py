"""Error taxonomy for ticket lifecycle operations.

Every error carries an HTTP-ish ``status`` and a short ``title`` so the Flask
error handler can render them in the standard error shape without a mapping
table of its own.
"""
from __future__ import annotations


class LifecycleError(Exception):
    status = 500
    title = 'Lifecycle Error'
    retryable = False

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(LifecycleError):
    """Caller-supplied input violates a precondition. Never retried."""
    status = 400
    title = 'Validation Error'


class AuthenticationError(LifecycleError):
    """No active profile behind the session; mutations are refused."""
    status = 401
    title = 'Unauthenticated'


class NotFoundError(LifecycleError):
    status = 404
    title = 'Not Found'


class PersistenceError(LifecycleError):
    """Durable write failed. The optimistic local change has been rolled back."""
    status = 503
    title = 'Persistence Error'
    retryable = True


class LoadError(LifecycleError):
    """Initial or refresh load failed. Prior in-memory state is retained."""
    status = 503
    title = 'Load Error'
    retryable = True


__all__ = [
    'LifecycleError', 'ValidationError', 'AuthenticationError', 'NotFoundError',
    'PersistenceError', 'LoadError',
]

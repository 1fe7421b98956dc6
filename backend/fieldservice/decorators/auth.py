import inspect
from functools import wraps
from flask import abort
from flask_jwt_extended import verify_jwt_in_request
from fieldservice.services.policy import has_permissions


def _check(codes):
    verify_jwt_in_request()
    if not has_permissions(*codes):
        abort(403, description='Missing permission')


def require_permissions(*codes: str):
    def outer(fn):
        if inspect.iscoroutinefunction(fn):
            @wraps(fn)
            async def async_wrapper(*args, **kwargs):
                _check(codes)
                return await fn(*args, **kwargs)
            return async_wrapper

        @wraps(fn)
        def wrapper(*args, **kwargs):
            _check(codes)
            return fn(*args, **kwargs)
        return wrapper
    return outer

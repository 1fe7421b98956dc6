from __future__ import annotations
from fieldservice.lifecycle.errors import ValidationError
from fieldservice.lifecycle.records import (
    ALL_STATUSES, STATUS_OPEN, STATUS_IN_PROGRESS, STATUS_RESOLVED, STATUS_VERIFIED, STATUS_CLOSED,
)
from fieldservice.utils.fsm import TransitionValidator

GUARD_PERMISSIVE = 'permissive'
GUARD_STRICT = 'strict'

# closed -> open is the manual reopen path
STRICT_TRANSITIONS = {
    STATUS_OPEN: {STATUS_IN_PROGRESS, STATUS_RESOLVED, STATUS_CLOSED},
    STATUS_IN_PROGRESS: {STATUS_OPEN, STATUS_RESOLVED, STATUS_CLOSED},
    STATUS_RESOLVED: {STATUS_IN_PROGRESS, STATUS_VERIFIED, STATUS_CLOSED},
    STATUS_VERIFIED: {STATUS_IN_PROGRESS, STATUS_CLOSED},
    STATUS_CLOSED: {STATUS_OPEN},
}


def status_guard(mode: str = GUARD_PERMISSIVE) -> TransitionValidator:
    """Build the ticket status guard for a configured mode."""
    if mode == GUARD_PERMISSIVE:
        return TransitionValidator(None, states=ALL_STATUSES)
    if mode == GUARD_STRICT:
        return TransitionValidator(STRICT_TRANSITIONS, states=ALL_STATUSES)
    raise ValidationError(f'unknown status guard {mode}')

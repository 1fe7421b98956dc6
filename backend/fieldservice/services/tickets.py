"""Per-request wiring between Flask and the ticket lifecycle manager."""
from __future__ import annotations
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from flask import current_app

from fieldservice import get_store
from fieldservice.lifecycle.manager import TicketManager
from fieldservice.lifecycle.notifier import CollectingNotifier
from fieldservice.lifecycle.records import Identity
from fieldservice.lifecycle.transitions import status_guard
from fieldservice.services.policy import current_identity


@asynccontextmanager
async def open_manager(identity: Optional[Identity] = None, load: bool = True):
    """Yield a loaded manager for the JWT caller; the subscription ends with the request."""
    manager = TicketManager(
        get_store(),
        identity or current_identity(),
        notifier=CollectingNotifier(),
        status_guard=status_guard(current_app.config['TICKET_STATUS_GUARD']),
        debounce_seconds=current_app.config['CHANGE_FEED_DEBOUNCE'],
    )
    async with manager:
        if load:
            await manager.load_all()
        yield manager


def with_notices(payload: Dict[str, Any], manager: TicketManager) -> Dict[str, Any]:
    payload['notices'] = [
        {'level': n.level, 'title': n.title, 'message': n.message}
        for n in manager.notifier.notices
    ]
    return payload

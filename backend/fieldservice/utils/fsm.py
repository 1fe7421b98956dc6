"""Simple finite state machine utility for ticket status transitions.

Usage:
    from fieldservice.utils.fsm import TransitionValidator
    GUARD = TransitionValidator({
        'open': {'in_progress'},
        'in_progress': {'resolved'},
        'resolved': set(),
    })
    GUARD.assert_can_transition(current_status, target_status)

A validator built with ``graph=None`` is permissive: every transition between
known states passes. Raises ValidationError if invalid.
"""
from __future__ import annotations
from typing import Dict, Iterable, Optional, Set
from fieldservice.lifecycle.errors import ValidationError


class TransitionValidator:
    def __init__(self, graph: Optional[Dict[str, Set[str]]], field_name: str = 'status', states: Iterable[str] = ()):
        self.graph = graph
        self.field_name = field_name
        self.states = set(states) or set(graph or {})

    @property
    def permissive(self) -> bool:
        return self.graph is None

    def can_transition(self, current: str, target: str) -> bool:
        if self.states and target not in self.states:
            return False
        if self.graph is None:
            return True
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            raise ValidationError(f"Invalid {self.field_name} transition {current} -> {target}")
        return True

__all__ = ['TransitionValidator']

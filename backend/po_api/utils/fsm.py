from __future__ import annotations
"""Finite state machine utility for enforcing allowed status transitions.

Usage:
    from po_api.utils.fsm import TransitionValidator
    FSM = TransitionValidator({
        'draft': {'pending'},
        'pending': set(),
    })
    FSM.check(current_status, target_status)                  # -> Decision
    FSM.assert_can_transition(current_status, target_status)  # raises InvalidTransition

Unknown states have no outbound edges, so any transition out of (or into) a state missing
from the graph is rejected. Same-state transitions are rejected unless a state lists itself.
"""
from typing import Dict, FrozenSet, Iterable, Iterator, Tuple

from po_api.errors import InvalidTransition
from po_api.services.decision import ALLOW, Decision, REASON_INVALID_TRANSITION


class TransitionValidator:
    def __init__(self, graph: Dict[str, Iterable[str]], field_name: str = 'status'):
        self.graph: Dict[str, FrozenSet[str]] = {k: frozenset(v) for k, v in graph.items()}
        self.field_name = field_name

    @property
    def states(self) -> FrozenSet[str]:
        return frozenset(self.graph)

    def allowed_targets(self, current: str) -> FrozenSet[str]:
        return self.graph.get(current, frozenset())

    def is_terminal(self, state: str) -> bool:
        return state in self.graph and not self.graph[state]

    def edges(self) -> Iterator[Tuple[str, str]]:
        for source in sorted(self.graph):
            for target in sorted(self.graph[source]):
                yield source, target

    def check(self, current: str, target: str) -> Decision:
        if target in self.allowed_targets(current):
            return ALLOW
        return Decision(False, REASON_INVALID_TRANSITION, (current, target))

    def assert_can_transition(self, current: str, target: str):
        if not self.check(current, target).allowed:
            raise InvalidTransition(current, target, self.field_name)
        return True

__all__ = ['TransitionValidator']

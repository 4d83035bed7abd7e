"""
Task and epic status lifecycles using the transitions library.

The FSM only decides whether a status change is allowed and what the new
status is. Loading and persisting the entity is the caller's job, so a
rejected transition never touches disk.

Usage:
    from planstore.pm.lifecycle import apply_trigger

    new_status = apply_trigger("task", "checkout-flow/002", "open", "start", deps_met=True)
"""

import logging

from transitions import Machine, MachineError

from planstore.lib.constants import (
    KIND_EPIC,
    KIND_TASK,
    STATUS_BLOCKED,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_OPEN,
    WORK_STATUSES,
)
from planstore.lib.errors import InvalidTransition

logger = logging.getLogger(__name__)

STATES = list(WORK_STATUSES)

TASK_TRANSITIONS = [
    # Starting work requires every dependency to be completed
    {"trigger": "start", "source": STATUS_OPEN, "dest": STATUS_IN_PROGRESS, "conditions": "deps_met"},
    {"trigger": "start", "source": STATUS_BLOCKED, "dest": STATUS_IN_PROGRESS, "conditions": "deps_met"},

    {"trigger": "complete", "source": STATUS_IN_PROGRESS, "dest": STATUS_COMPLETED},
    {"trigger": "complete", "source": STATUS_OPEN, "dest": STATUS_COMPLETED, "conditions": "deps_met"},

    {"trigger": "block", "source": STATUS_OPEN, "dest": STATUS_BLOCKED},
    {"trigger": "block", "source": STATUS_IN_PROGRESS, "dest": STATUS_BLOCKED},

    {"trigger": "reopen", "source": STATUS_IN_PROGRESS, "dest": STATUS_OPEN},
    {"trigger": "reopen", "source": STATUS_BLOCKED, "dest": STATUS_OPEN},
    {"trigger": "reopen", "source": STATUS_COMPLETED, "dest": STATUS_OPEN},
]

EPIC_TRANSITIONS = [
    {"trigger": "start", "source": STATUS_OPEN, "dest": STATUS_IN_PROGRESS},
    {"trigger": "start", "source": STATUS_BLOCKED, "dest": STATUS_IN_PROGRESS},

    # Closure is deliberate: only when every task is completed
    {"trigger": "close", "source": STATUS_OPEN, "dest": STATUS_COMPLETED, "conditions": "closable"},
    {"trigger": "close", "source": STATUS_IN_PROGRESS, "dest": STATUS_COMPLETED, "conditions": "closable"},
    {"trigger": "close", "source": STATUS_BLOCKED, "dest": STATUS_COMPLETED, "conditions": "closable"},

    {"trigger": "block", "source": STATUS_OPEN, "dest": STATUS_BLOCKED},
    {"trigger": "block", "source": STATUS_IN_PROGRESS, "dest": STATUS_BLOCKED},

    {"trigger": "reopen", "source": STATUS_COMPLETED, "dest": STATUS_IN_PROGRESS},
    {"trigger": "reopen", "source": STATUS_BLOCKED, "dest": STATUS_OPEN},
]

TRANSITIONS_FOR = {
    KIND_TASK: TASK_TRANSITIONS,
    KIND_EPIC: EPIC_TRANSITIONS,
}

GUARD_REASONS = {
    "deps_met": "dependencies are not completed",
    "closable": "not every task is completed",
}


class LifecycleFSM:
    """In-memory state machine for one task or epic status."""

    def __init__(self, kind: str, ident: str, status: str, deps_met: bool = True, closable: bool = True):
        if kind not in TRANSITIONS_FOR:
            raise ValueError(f"No lifecycle for kind: {kind}")
        self.kind = kind
        self.ident = ident
        self._deps_met = deps_met
        self._closable = closable

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS_FOR[kind],
            initial=status,
            auto_transitions=False,  # Only explicit transitions
            send_event=True,
            after_state_change="on_state_change",
        )

    def deps_met(self, event) -> bool:
        return self._deps_met

    def closable(self, event) -> bool:
        return self._closable

    def on_state_change(self, event) -> None:
        logger.info(
            f"[FSM] {self.kind} {self.ident}: {event.transition.source} -> "
            f"{event.transition.dest} ({event.event.name})"
        )


def _guard_reason(kind: str, status: str, trigger_name: str) -> str:
    for t in TRANSITIONS_FOR[kind]:
        if t["trigger"] == trigger_name and t["source"] == status and "conditions" in t:
            return GUARD_REASONS.get(t["conditions"], "guard rejected the transition")
    return ""


def _target_of(kind: str, status: str, trigger_name: str) -> str:
    for t in TRANSITIONS_FOR[kind]:
        if t["trigger"] == trigger_name and t["source"] == status:
            return t["dest"]
    # No edge from this source; report the trigger's usual destination
    for t in TRANSITIONS_FOR[kind]:
        if t["trigger"] == trigger_name:
            return t["dest"]
    return trigger_name


def apply_trigger(kind: str, ident: str, status: str, trigger_name: str,
                  deps_met: bool = True, closable: bool = True) -> str:
    """Run trigger_name from status and return the new status.

    Raises:
        InvalidTransition: If the trigger is not allowed from status or a guard fails
    """
    fsm = LifecycleFSM(kind, ident, status, deps_met=deps_met, closable=closable)
    target = _target_of(kind, status, trigger_name)

    try:
        moved = fsm.trigger(trigger_name)
    except (MachineError, AttributeError) as e:
        raise InvalidTransition(kind, ident, status, target) from e

    if not moved:
        raise InvalidTransition(kind, ident, status, target, _guard_reason(kind, status, trigger_name))
    return fsm.state


def can_apply(kind: str, status: str, trigger_name: str) -> bool:
    """Check whether trigger_name has an edge from status (guards not evaluated)."""
    return any(
        t["trigger"] == trigger_name and t["source"] == status
        for t in TRANSITIONS_FOR.get(kind, [])
    )


def available_triggers(kind: str, status: str) -> list[str]:
    """Triggers with an edge out of status, in table order (guards not evaluated)."""
    names = dict.fromkeys(t["trigger"] for t in TRANSITIONS_FOR.get(kind, []))
    return [name for name in names if can_apply(kind, status, name)]

"""
Supervisor lifecycle states and the transitions between them.

The transition table is the whole state machine: the Supervisor feeds it
events and keeps whatever state comes back, so the rules can be tested
without launching a single process.
"""
import enum
from typing import Dict, Tuple


class InvalidTransitionError(RuntimeError):
    """Raised when an event is not allowed in the current state."""


class SupervisorState(enum.Enum):
    CONFIGURING = "configuring"
    STARTING_UP = "starting_up"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    FAILED = "failed"
    TERMINATED = "terminated"


class SupervisorEvent(enum.Enum):
    CONFIGURED = "configured"
    CONFIGURATION_FAILED = "configuration_failed"
    STARTUP_SUCCEEDED = "startup_succeeded"
    STARTUP_FAILED = "startup_failed"
    EXPORT_FAILED = "export_failed"
    PROCESS_DIED = "process_died"
    SHUTDOWN_REQUESTED = "shutdown_requested"
    SHUTDOWN_COMPLETE = "shutdown_complete"


TERMINAL_STATES = frozenset({SupervisorState.FAILED, SupervisorState.TERMINATED})

_TRANSITIONS: Dict[Tuple[SupervisorState, SupervisorEvent], SupervisorState] = {
    (SupervisorState.CONFIGURING, SupervisorEvent.CONFIGURED): SupervisorState.STARTING_UP,
    (SupervisorState.CONFIGURING, SupervisorEvent.CONFIGURATION_FAILED): SupervisorState.FAILED,
    (SupervisorState.STARTING_UP, SupervisorEvent.STARTUP_FAILED): SupervisorState.STARTING_UP,
    (SupervisorState.STARTING_UP, SupervisorEvent.STARTUP_SUCCEEDED): SupervisorState.RUNNING,
    (SupervisorState.STARTING_UP, SupervisorEvent.EXPORT_FAILED): SupervisorState.FAILED,
    (SupervisorState.RUNNING, SupervisorEvent.PROCESS_DIED): SupervisorState.FAILED,
    (SupervisorState.SHUTTING_DOWN, SupervisorEvent.SHUTDOWN_COMPLETE): SupervisorState.TERMINATED,
}
for _state in (SupervisorState.CONFIGURING, SupervisorState.STARTING_UP, SupervisorState.RUNNING):
    _TRANSITIONS[(_state, SupervisorEvent.SHUTDOWN_REQUESTED)] = SupervisorState.SHUTTING_DOWN


def transition(state: SupervisorState, event: SupervisorEvent) -> SupervisorState:
    """
    Returns the state that follows `state` when `event` occurs.

    :param state: The current supervisor state.
    :param event: The event that just happened.
    :return: The next supervisor state.
    :raises InvalidTransitionError: If the event is not valid in this state.
    """
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransitionError(
            f"Event '{event.value}' is not allowed in state '{state.value}'."
        ) from None

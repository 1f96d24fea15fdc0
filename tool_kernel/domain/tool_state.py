"""
ToolState -- lifecycle states of a tool instance and the transition table.

Responsibility:
    Single source of truth for which state changes are legal.  Every service
    that changes ToolInstance.state validates the change here first.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

State machine:
    NEW       -> IN_USE | terminal
    IN_USE    -> SHARPENED | NEW | terminal
    SHARPENED -> IN_USE | terminal
    terminal (WORN, BROKEN, LOST): absorbing

    A same-state move on a non-terminal tool (re-mount, repeated unmount)
    is accepted as a no-op transition.

Failure modes:
    - InvalidStateError for a value that is not a ToolState.
    - ToolRetiredError when leaving a terminal state.
    - InvalidToolTransitionError for any other edge not in the table.
"""

from enum import Enum

from tool_kernel.exceptions import (
    InvalidStateError,
    InvalidToolTransitionError,
    ToolRetiredError,
)


class ToolState(str, Enum):
    """Physical condition of a tool instance."""

    NEW = "new"
    IN_USE = "in_use"
    SHARPENED = "sharpened"
    WORN = "worn"
    BROKEN = "broken"
    LOST = "lost"


TERMINAL_STATES: frozenset[ToolState] = frozenset({
    ToolState.WORN, ToolState.BROKEN, ToolState.LOST,
})

# States a tool can be mounted from, in the order the machine screen lists them
AVAILABLE_STATES: tuple[ToolState, ...] = (ToolState.NEW, ToolState.SHARPENED)

VALID_TRANSITIONS: dict[ToolState, frozenset[ToolState]] = {
    ToolState.NEW: frozenset({ToolState.NEW, ToolState.IN_USE}) | TERMINAL_STATES,
    ToolState.IN_USE: frozenset({
        ToolState.IN_USE, ToolState.SHARPENED, ToolState.NEW,
    }) | TERMINAL_STATES,
    ToolState.SHARPENED: frozenset({
        ToolState.SHARPENED, ToolState.IN_USE,
    }) | TERMINAL_STATES,
    # Terminal states: no transitions allowed
    ToolState.WORN: frozenset(),
    ToolState.BROKEN: frozenset(),
    ToolState.LOST: frozenset(),
}


def parse_state(value: "ToolState | str") -> ToolState:
    """Coerce a raw value (enum member or its string value) to ToolState."""
    if isinstance(value, ToolState):
        return value
    try:
        return ToolState(str(value).strip().lower())
    except ValueError:
        raise InvalidStateError(
            str(value),
            f"expected one of {sorted(s.value for s in ToolState)}",
        ) from None


def is_terminal(state: "ToolState | str") -> bool:
    return parse_state(state) in TERMINAL_STATES


def can_transition(from_state: "ToolState | str", to_state: "ToolState | str") -> bool:
    return parse_state(to_state) in VALID_TRANSITIONS[parse_state(from_state)]


def validate_transition(
    tool_id: object,
    from_state: "ToolState | str",
    to_state: "ToolState | str",
    operation: str = "change state of",
) -> ToolState:
    """
    Validate a state change and return the target state.

    Raises:
        ToolRetiredError: from_state is terminal.
        InvalidToolTransitionError: the edge is not in VALID_TRANSITIONS.
    """
    source = parse_state(from_state)
    target = parse_state(to_state)

    if source in TERMINAL_STATES:
        raise ToolRetiredError(str(tool_id), source.value, operation)

    if target not in VALID_TRANSITIONS[source]:
        allowed = sorted(s.value for s in VALID_TRANSITIONS[source])
        raise InvalidToolTransitionError(
            str(tool_id),
            source.value,
            target.value,
            reason=f"allowed: {allowed}",
        )
    return target

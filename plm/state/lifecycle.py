"""
Project lifecycle states and the transition graph.

The graph is not a simple chain: DELETE leaves every state for VOID, and
UPDATE loops OFFLINE back onto itself.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple


class LifecycleState(str, Enum):
    """
    Lifecycle states of a generated project.

    State Categories:
        - Absent: VOID
        - Source only: DRAFT
        - Generated: BUILT
        - Deployed: OFFLINE, ONLINE
    """

    VOID = "VOID"         # Nothing on disk
    DRAFT = "DRAFT"       # Project descriptor written, nothing generated
    BUILT = "BUILT"       # Service directories generated
    OFFLINE = "OFFLINE"   # Infra descriptors present, not running
    ONLINE = "ONLINE"     # Running marker present


class TransitionName(str, Enum):
    """Named edges of the lifecycle graph."""

    CREATE = "CREATE"
    BUILD = "BUILD"
    DEPLOY = "DEPLOY"
    START = "START"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


ALL_STATES: FrozenSet[LifecycleState] = frozenset(LifecycleState)

# Polling order used when the current state is unknown
DETECTION_ORDER: Tuple[LifecycleState, ...] = (
    LifecycleState.VOID,
    LifecycleState.DRAFT,
    LifecycleState.BUILT,
    LifecycleState.OFFLINE,
    LifecycleState.ONLINE,
)

TRANSITION_EDGES: Dict[TransitionName, Tuple[FrozenSet[LifecycleState], LifecycleState]] = {
    TransitionName.CREATE: (frozenset({LifecycleState.VOID}), LifecycleState.DRAFT),
    TransitionName.BUILD: (frozenset({LifecycleState.DRAFT}), LifecycleState.BUILT),
    TransitionName.DEPLOY: (frozenset({LifecycleState.BUILT}), LifecycleState.OFFLINE),
    TransitionName.START: (frozenset({LifecycleState.OFFLINE}), LifecycleState.ONLINE),
    TransitionName.UPDATE: (frozenset({LifecycleState.OFFLINE}), LifecycleState.OFFLINE),
    TransitionName.DELETE: (ALL_STATES, LifecycleState.VOID),
}


def parse_state(value: object) -> Optional[LifecycleState]:
    """Return the LifecycleState named by `value`, or None if it names none."""
    if isinstance(value, LifecycleState):
        return value
    if isinstance(value, str):
        try:
            return LifecycleState(value)
        except ValueError:
            return None
    return None


def can_transition(
    transition: TransitionName,
    from_state: LifecycleState,
    to_state: LifecycleState,
) -> bool:
    """
    Check whether `transition` is the edge from `from_state` to `to_state`.

    Example:
        >>> can_transition(TransitionName.BUILD, LifecycleState.DRAFT, LifecycleState.BUILT)
        True
        >>> can_transition(TransitionName.DELETE, LifecycleState.ONLINE, LifecycleState.VOID)
        True
        >>> can_transition(TransitionName.START, LifecycleState.BUILT, LifecycleState.ONLINE)
        False
    """
    sources, target = TRANSITION_EDGES[transition]
    return from_state in sources and to_state == target

"""
Per-state operation whitelists.

StateRules is the single authorization checkpoint the workflow engines
consult right after detecting the source state and before running the
transition validator.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Tuple

from plm.state.exceptions import StateError
from plm.state.lifecycle import LifecycleState, parse_state
from plm.state.models import OperationCheck


@dataclass(frozen=True)
class StateRules:
    """
    Operations permitted while a project is in one state.

    Attributes:
        state: The state these rules govern
        operations: Lower-case operation names allowed in that state
        constraints: Conditions attached to an allowed operation
    """

    state: LifecycleState
    operations: FrozenSet[str]
    constraints: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def check_operation(self, current_state: object, operation: object) -> OperationCheck:
        """
        Check whether `operation` is allowed in `current_state`.

        Raises:
            StateError: on empty arguments or when `current_state` is not the
                state these rules govern
        """
        if not current_state or not operation:
            raise StateError(
                "StateError: currentState et operation requis",
                state=str(current_state) if current_state else None,
                operation=str(operation) if operation else None,
            )
        if parse_state(current_state) != self.state:
            raise StateError(
                f"StateError: règles {self.state.value} appliquées à l'état {current_state}",
                state=str(current_state),
                operation=str(operation),
            )

        name = str(operation).lower()
        if name not in self.operations:
            return OperationCheck(
                allowed=False,
                constraints=[f"opération {name} interdite en état {self.state.value}"],
            )
        return OperationCheck(allowed=True, constraints=list(self.constraints.get(name, ())))


STATE_RULES: Dict[LifecycleState, StateRules] = {
    LifecycleState.VOID: StateRules(
        LifecycleState.VOID,
        frozenset({"create", "delete"}),
        {
            "create": ("template existant requis", "chemin de sortie accessible en écriture"),
            "delete": ("aucune ressource à supprimer",),
        },
    ),
    LifecycleState.DRAFT: StateRules(
        LifecycleState.DRAFT,
        frozenset({"edit", "build", "delete"}),
        {
            "build": ("project.json valide requis",),
            "delete": ("confirmToken requis",),
        },
    ),
    LifecycleState.BUILT: StateRules(
        LifecycleState.BUILT,
        frozenset({"deploy", "edit", "delete"}),
        {
            "deploy": ("services générés requis", "port disponible requis"),
            "edit": ("reconstruction requise après modification",),
            "delete": ("confirmToken requis",),
        },
    ),
    LifecycleState.OFFLINE: StateRules(
        LifecycleState.OFFLINE,
        frozenset({"start", "update", "delete"}),
        {
            "start": ("deploymentId requis",),
            "update": ("sauvegarde recommandée",),
            "delete": ("confirmToken requis",),
        },
    ),
    LifecycleState.ONLINE: StateRules(
        LifecycleState.ONLINE,
        frozenset({"stop", "maintenance", "delete"}),
        {
            "stop": ("arrêt gracieux recommandé",),
            "maintenance": ("fenêtre de maintenance requise",),
            "delete": ("confirmToken requis", "services arrêtés de force"),
        },
    ),
}


def rules_for(state: LifecycleState) -> StateRules:
    return STATE_RULES[state]


def check_operation(current_state: object, operation: object) -> OperationCheck:
    """
    Look up the rules of `current_state` and check `operation` against them.

    Raises:
        StateError: on empty arguments or an unknown state
    """
    state = parse_state(current_state)
    if state is None:
        raise StateError(
            f"StateError: état inconnu {current_state!r}",
            state=str(current_state) if current_state else None,
            operation=str(operation) if operation else None,
        )
    return STATE_RULES[state].check_operation(state, operation)


__all__ = ["STATE_RULES", "StateRules", "check_operation", "rules_for"]

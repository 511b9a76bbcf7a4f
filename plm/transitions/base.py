"""
Shared validate/execute/cleanup machinery for lifecycle transitions.

A Transition subclass declares its edge, required context fields and cleanup
tags as class attributes; this base class turns them into the three
operations every transition exposes:

    validate(from_state, to_state, context) -> TransitionValidation
    execute(project_id, context)            -> TransitionResult
    cleanup(result, project_id)             -> CleanupPlan

`validate` and `cleanup` are pure. `execute` only builds the result object;
the actual mutation belongs to whichever infra layer consumes it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar, Dict, FrozenSet, List, Mapping, Optional, Tuple

from plm.state.exceptions import ValidationError
from plm.state.lifecycle import TRANSITION_EDGES, LifecycleState, TransitionName, parse_state
from plm.state.models import (
    CleanupPlan,
    TransitionData,
    TransitionResult,
    TransitionValidation,
    utcnow,
)


@dataclass(frozen=True, slots=True)
class FieldRule:
    """
    Requirement on one context field.

    `truthy` fields must hold a non-empty value. `defined` fields (booleans,
    numeric timeouts) only need to be present and not None, so an explicit
    False or 0 satisfies them.
    """

    name: str
    presence: str = "truthy"

    def satisfied_by(self, source: Mapping[str, Any]) -> bool:
        if self.presence == "defined":
            return source.get(self.name) is not None
        return bool(source.get(self.name))


def truthy(*names: str) -> Tuple[FieldRule, ...]:
    return tuple(FieldRule(name) for name in names)


def defined(name: str) -> FieldRule:
    return FieldRule(name, "defined")


def enabled(source: Mapping[str, Any], key: str) -> bool:
    """Flags default to on: only an explicit False disables them."""
    return source.get(key) is not False


class Transition:
    """
    Base class for the six lifecycle transitions.

    Class attributes:
        name: Transition name, which also selects the edge
        config_key: Name of the nested config object in the context
        required_fields: Top-level context requirements, in report order
        config_fields: Requirements inside the config object, in report order
        age_threshold: Result age past which old logs are flagged for cleanup
        old_logs_tag: Tag appended when the threshold is exceeded
        trailing_tags: Housekeeping tags appended after clear-validation-cache
    """

    name: ClassVar[TransitionName]
    config_key: ClassVar[Optional[str]] = None
    required_fields: ClassVar[Tuple[FieldRule, ...]] = ()
    config_fields: ClassVar[Tuple[FieldRule, ...]] = ()
    age_threshold: ClassVar[timedelta]
    old_logs_tag: ClassVar[str]
    trailing_tags: ClassVar[Tuple[str, ...]] = ()

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)

    @property
    def from_states(self) -> FrozenSet[LifecycleState]:
        return TRANSITION_EDGES[self.name][0]

    @property
    def to_state(self) -> LifecycleState:
        return TRANSITION_EDGES[self.name][1]

    # -- validate ---------------------------------------------------------

    def validate(
        self, from_state: object, to_state: object, context: object
    ) -> TransitionValidation:
        """
        Check that this edge is being asked for and list unmet requirements.

        Raises:
            ValidationError: if the arguments are malformed or the
                (from_state, to_state) pair is not this transition's edge
        """
        self._check_arguments(from_state, to_state, context)
        self._check_edge(from_state, to_state)
        requirements = self.requirements(context)  # type: ignore[arg-type]
        return TransitionValidation(
            valid=True,
            can_transition=not requirements,
            requirements=requirements,
        )

    def requirements(self, context: Mapping[str, Any]) -> List[str]:
        missing = [f"{rule.name} manquant" for rule in self.required_fields
                   if not rule.satisfied_by(context)]
        config = context.get(self.config_key) if self.config_key else None
        if isinstance(config, Mapping):
            missing.extend(
                f"{self.config_key}.{rule.name} manquant"
                for rule in self.config_fields
                if not rule.satisfied_by(config)
            )
        return missing

    def _check_arguments(self, from_state: object, to_state: object, context: object) -> None:
        if not from_state or not isinstance(from_state, str):
            raise ValidationError("ValidationError: fromState requis string")
        if not to_state or not isinstance(to_state, str):
            raise ValidationError("ValidationError: toState requis string")
        if not isinstance(context, Mapping):
            raise ValidationError("ValidationError: context requis object")

    def _check_edge(self, from_state: object, to_state: object) -> None:
        # None means "not asserted by the caller"
        if from_state is not None and parse_state(from_state) not in self.from_states:
            raise ValidationError(
                f"ValidationError: {self.name.value} depuis état invalide {from_state}"
            )
        if to_state is not None and parse_state(to_state) != self.to_state:
            raise ValidationError(
                f"ValidationError: {self.name.value} va vers {self.to_state.value}, pas {to_state}"
            )

    # -- execute ----------------------------------------------------------

    def execute(
        self,
        project_id: str,
        context: Mapping[str, Any],
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
    ) -> TransitionResult:
        """
        Build the TransitionResult for this edge.

        No precondition is re-checked; callers run `validate` first. When
        `from_state`/`to_state` are given they must be this transition's
        edge.

        Raises:
            ValidationError: on a missing project id or a foreign edge
        """
        if not project_id or not isinstance(project_id, str):
            raise ValidationError("ValidationError: projectId requis string")
        if not isinstance(context, Mapping):
            raise ValidationError("ValidationError: context requis object")
        self._check_edge(from_state, to_state)

        result = TransitionResult(
            success=True,
            from_state=self.origin(context),
            to_state=self.to_state,
            transition_data=TransitionData(
                project_id=project_id,
                context=self.build_context(context),
            ),
        )
        self.logger.debug(
            f"{self.name.value} executed for {project_id}: "
            f"{result.from_state} -> {result.to_state.value}"
        )
        return result

    def origin(self, context: Mapping[str, Any]) -> str:
        (source,) = self.from_states
        return source.value

    def build_context(self, context: Mapping[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def config_of(self, context: Mapping[str, Any]) -> Mapping[str, Any]:
        config = context.get(self.config_key) if self.config_key else None
        return config if isinstance(config, Mapping) else {}

    # -- cleanup ----------------------------------------------------------

    def cleanup(
        self,
        result: TransitionResult,
        project_id: str,
        now: Optional[datetime] = None,
    ) -> CleanupPlan:
        """
        Plan the housekeeping that follows `result`.

        Pure: the same result and clock give the same actions.
        """
        if not project_id or not isinstance(project_id, str):
            raise ValidationError("ValidationError: projectId requis string")

        flags = result.transition_data.context
        if result.success:
            actions = self.success_actions(flags)
        else:
            actions = self.failure_actions(flags)

        now = now or utcnow()
        timestamp = result.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        if now - timestamp > self.age_threshold:
            actions.append(self.old_logs_tag)

        actions.append("clear-validation-cache")
        actions.extend(self.trailing_tags)
        return CleanupPlan(cleaned=True, actions=actions)

    def success_actions(self, flags: Mapping[str, Any]) -> List[str]:
        raise NotImplementedError

    def failure_actions(self, flags: Mapping[str, Any]) -> List[str]:
        raise NotImplementedError

    def failed_result(self, project_id: str, context: Optional[Mapping[str, Any]] = None,
                      error: Optional[str] = None) -> TransitionResult:
        """A failed TransitionResult for this edge, used to plan rollbacks."""
        context = context or {}
        return TransitionResult(
            success=False,
            from_state=self.origin(context),
            to_state=self.to_state,
            transition_data=TransitionData(project_id=project_id, context=self.build_context(context)),
            error=error,
        )


__all__ = ["FieldRule", "Transition", "defined", "enabled", "truthy"]

"""
Workflow engine: orchestrates one lifecycle transition end to end.

Every run walks the same linear pipeline:

    init -> detect-source-state -> validate-transition -> filesystem-precheck
         -> [create-backup | create-archive] -> execute-transition
         -> verify-target-state -> cleanup

Each step is timed into WorkflowMetrics and bounded by a per-step timeout.
The first failing step short-circuits to a single failure handler that logs
`workflow-error`, asks the family's RecoveryManager for an advisory plan and
raises a WorkflowError carrying the failure kind, metrics and plan.

Family engines (create, build, deploy, start, update, delete) subclass
WorkflowEngine and declare their config name, required keys, identifiers
and recovery profile.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    ClassVar,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    Type,
)

from plm.access import Authorizer
from plm.config import PLMConfig, load_config
from plm.events.sink import FileLogSink, LogSink
from plm.observability.logging import (
    clear_correlation_id,
    new_correlation_id,
    set_correlation_id,
)
from plm.observability.metrics import adjust_gauge, increment_counter, record_histogram
from plm.state.detectors import build_detectors
from plm.state.exceptions import (
    FailureKind,
    StepError,
    ValidationError,
    WorkflowError,
    failure_kind,
    failure_reason,
)
from plm.state.filesystem import FilesystemProbe, LocalFilesystem
from plm.state.leases import ProjectLeases
from plm.state.lifecycle import LifecycleState, TransitionName
from plm.state.models import (
    CleanupPlan,
    DetectionResult,
    RecoveryPlan,
    TransitionResult,
    TransitionValidation,
    WorkflowMetrics,
    WorkflowOutcome,
    WorkflowStep,
)
from plm.state.rules import check_operation
from plm.state.store import SQLiteStateStore, StateStore, TransitionRecord
from plm.transitions import TRANSITIONS
from plm.workflows.appliers import MarkerApplier
from plm.workflows.logging import WorkflowLogger
from plm.workflows.recovery import RecoveryManager, RecoveryProfile

StepFunction = Callable[["WorkflowRun"], Awaitable[Any]]


class TransitionApplier(Protocol):
    """
    Infra hook that materializes a TransitionResult on disk or elsewhere.

    Called during `execute-transition`; MarkerApplier is the default.
    Raising marks the transition as failed.
    """

    async def apply(self, result: TransitionResult, config: Mapping[str, Any]) -> None:
        ...


def new_identifier(prefix: str, project_id: str) -> str:
    """Per-run identifier: prefix, project, wall-clock millis and a random suffix."""
    return f"{prefix}-{project_id}-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


@dataclass
class WorkflowRun:
    """Mutable state of one pipeline run."""

    project_id: str
    config: Mapping[str, Any]
    options: Mapping[str, Any]
    correlation_id: str
    identifiers: Dict[str, Optional[str]]
    metrics: WorkflowMetrics
    started: float = field(default_factory=time.perf_counter)
    current_step: Optional[str] = None
    source_state: Optional[LifecycleState] = None
    context: Dict[str, Any] = field(default_factory=dict)
    validation: Optional[TransitionValidation] = None
    result: Optional[TransitionResult] = None
    cleanup: Optional[CleanupPlan] = None
    checks: Dict[str, Any] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return self.config.get("projectPath")

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000


class WorkflowEngine:
    """
    Base pipeline shared by the six workflow families.

    Collaborators are injected. `settings` and `filesystem` default to the
    local setup and `applier` to a MarkerApplier writing state markers on
    disk. A missing `sink`, `store`, `leases` or `authorizer` disables that
    concern.

    Class attributes:
        transition_name: Transition this engine orchestrates
        config_name: Name of the config object in error messages
        required_keys: Config keys that must be truthy before the run starts
        identifier_key: Key of the per-run identifier
        identifier_prefix: Prefix of the per-run identifier
        recovery_profile: Action vocabulary for recovery plans
        recovery_class: RecoveryManager subclass for this family
        critical_events: Events logged at CRITICAL
        redact_confirm_token: Redact `confirmToken` in logged data
    """

    transition_name: ClassVar[TransitionName]
    config_name: ClassVar[str]
    required_keys: ClassVar[Tuple[str, ...]] = ()
    identifier_key: ClassVar[str]
    identifier_prefix: ClassVar[str]
    recovery_profile: ClassVar[RecoveryProfile]
    recovery_class: ClassVar[Type[RecoveryManager]] = RecoveryManager
    critical_events: ClassVar[Tuple[str, ...]] = ()
    redact_confirm_token: ClassVar[bool] = False

    def __init__(
        self,
        *,
        settings: Optional[PLMConfig] = None,
        filesystem: Optional[FilesystemProbe] = None,
        sink: Optional[LogSink] = None,
        store: Optional[StateStore] = None,
        leases: Optional[ProjectLeases] = None,
        authorizer: Optional[Authorizer] = None,
        applier: Optional[TransitionApplier] = None,
    ) -> None:
        self.settings = settings or PLMConfig()
        self.filesystem = filesystem or LocalFilesystem(
            self.settings.projects_root, self.settings.templates_root
        )
        self.store = store
        self.leases = leases
        self.authorizer = authorizer
        self.applier = applier if applier is not None else MarkerApplier(self.settings.layout)
        self.transition = TRANSITIONS[self.transition_name]
        self.detectors = build_detectors(self.filesystem, self.settings.layout)
        self.workflow_logger = WorkflowLogger(
            self.transition_name,
            sink=sink,
            redact_confirm_token=self.redact_confirm_token,
            critical_events=self.critical_events,
        )
        self.recovery = self.recovery_class(
            self.recovery_profile,
            self.transition,
            self.workflow_logger,
            self.detectors,
            self.build_context,
            thresholds=self.settings.thresholds,
            config_name=self.config_name,
        )
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings: Optional[PLMConfig] = None, **deps: Any) -> "WorkflowEngine":
        """
        Build an engine wired from configuration: JSONL sink at
        `settings.log_file`, SQLite store at `settings.state_db` and a lease
        registry with `lease_timeout_seconds`.

        Pass a shared `leases` (or `store`) to share it across several
        engines; pass `store=None` to run without persistence. Close the
        engine, or use it as an async context manager, to release the store.

        Example:
            >>> async with BuildWorkflowEngine.from_settings() as engine:
            ...     outcome = await engine.run("p1", build_config)
        """
        settings = settings or load_config()
        if "sink" not in deps and settings.log_file is not None:
            deps["sink"] = FileLogSink(settings.log_file)
        deps.setdefault("store", SQLiteStateStore(settings.state_db))
        deps.setdefault("leases", ProjectLeases(settings.lease_timeout_seconds))
        return cls(settings=settings, **deps)

    async def __aenter__(self) -> "WorkflowEngine":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the store if it holds a connection. Safe to call multiple times."""
        close = getattr(self.store, "close", None)
        if close is not None:
            await close()

    @property
    def family(self) -> str:
        return self.transition_name.value.lower()

    @property
    def target_state(self) -> LifecycleState:
        return self.transition.to_state

    # -- family hooks -----------------------------------------------------

    def build_context(
        self,
        project_id: str,
        config: Mapping[str, Any],
        current_state: Optional[LifecycleState] = None,
    ) -> Dict[str, Any]:
        """Translate the flat workflow config into the transition's context."""
        raise NotImplementedError

    def make_identifiers(self, project_id: str, config: Mapping[str, Any]) -> Dict[str, Optional[str]]:
        return {self.identifier_key: new_identifier(self.identifier_prefix, project_id)}

    def source_threshold(self) -> int:
        return self.settings.thresholds.source

    def extra_steps(self, run: WorkflowRun) -> List[Tuple[str, StepFunction]]:
        """Family-specific steps between precheck and execution."""
        return []

    # -- public API -------------------------------------------------------

    def check_input(self, project_id: object, config: object) -> None:
        """
        Reject malformed input before any step runs.

        Raises:
            ValidationError: on a missing project id, a non-mapping config or
                a missing required key
        """
        if not project_id or not isinstance(project_id, str):
            raise ValidationError("ValidationError: projectId requis string")
        if not isinstance(config, Mapping):
            raise ValidationError(f"ValidationError: {self.config_name} requis object")
        for key in self.required_keys:
            if not config.get(key):
                raise ValidationError(f"ValidationError: {self.config_name}.{key} requis")

    async def run(
        self,
        project_id: str,
        config: Mapping[str, Any],
        options: Optional[Mapping[str, Any]] = None,
    ) -> WorkflowOutcome:
        """
        Execute the full pipeline for `project_id`.

        Returns:
            WorkflowOutcome on success

        Raises:
            ValidationError: on malformed input, before the pipeline starts
            WorkflowError: when any step fails
        """
        self.check_input(project_id, config)
        options = dict(options or {})

        correlation_id = set_correlation_id(new_correlation_id(self.family))
        identifiers = self.make_identifiers(project_id, config)
        run = WorkflowRun(
            project_id=project_id,
            config=config,
            options=options,
            correlation_id=correlation_id,
            identifiers=identifiers,
            metrics=WorkflowMetrics(
                transition=self.transition_name,
                correlation_id=correlation_id,
                identifiers=identifiers,
            ),
        )
        labels = {"transition": self.transition_name.value}
        adjust_gauge("workflows_active", 1, labels)

        try:
            async with AsyncExitStack() as stack:
                try:
                    await self._step(run, "init", self._init(run, stack))
                    await self._step(run, "detect-source-state", self._detect_source(run))
                    await self._step(run, "validate-transition", self._validate(run))
                    await self._step(run, "filesystem-precheck", self.precheck(run))
                    for name, step in self.extra_steps(run):
                        await self._step(run, name, step(run))
                    await self._step(run, "execute-transition", self._execute(run))
                    await self._step(run, "verify-target-state", self._verify(run))
                    await self._step(run, "cleanup", self._cleanup(run))
                except Exception as exc:
                    raise await self._fail(run, exc) from exc
            return await self._succeed(run)
        finally:
            adjust_gauge("workflows_active", -1, labels)
            clear_correlation_id()

    async def recover(
        self,
        project_id: str,
        config: Mapping[str, Any],
        error: BaseException,
        options: Optional[Mapping[str, Any]] = None,
    ) -> RecoveryPlan:
        return await self.recovery.recover(project_id, config, error, options)

    # -- steps ------------------------------------------------------------

    async def _step(self, run: WorkflowRun, name: str, step: Awaitable[Any]) -> Any:
        run.current_step = name
        started = time.perf_counter()
        timeout = run.options.get("step_timeout") or self.settings.step_timeout_seconds
        try:
            value = await asyncio.wait_for(step, timeout=timeout)
        except asyncio.TimeoutError as exc:
            self._record_step(run, name, started, "timeout")
            raise StepError(
                f"Étape {name} expirée après {timeout:g}s",
                FailureKind.STEP_TIMEOUT,
            ) from exc
        except Exception as exc:
            self._record_step(run, name, started, failure_reason(exc))
            raise
        self._record_step(run, name, started)
        return value

    def _record_step(
        self,
        run: WorkflowRun,
        name: str,
        started: float,
        error: Optional[str] = None,
    ) -> None:
        run.metrics.steps.append(
            WorkflowStep(
                name=name,
                duration_ms=(time.perf_counter() - started) * 1000,
                success=error is None,
                error=error,
            )
        )
        increment_counter(
            "workflow_steps_total",
            labels={"step": name, "outcome": "success" if error is None else "failure"},
        )

    async def _init(self, run: WorkflowRun, stack: AsyncExitStack) -> None:
        self.workflow_logger.log(
            "workflow-start",
            {"projectId": run.project_id, **run.identifiers, "config": dict(run.config)},
            run.options,
        )
        if self.authorizer is not None:
            subject = await self.authorizer.authorize(
                run.project_id, self.transition_name, run.options
            )
            run.checks["authorizedSubject"] = subject
        if self.leases is not None:
            await stack.enter_async_context(self.leases.acquire(run.project_id))

    async def _detect_source(self, run: WorkflowRun) -> None:
        run.source_state = await self.detect_source(run)
        operation = self.family
        check = check_operation(run.source_state.value, operation)
        run.checks["operation"] = check
        if not check.allowed:
            raise StepError(
                f"Opération {operation} non autorisée en état {run.source_state.value}",
                FailureKind.STATE_CONFLICT,
            )

    async def detect_source(self, run: WorkflowRun) -> LifecycleState:
        (source,) = self.transition.from_states
        detection = await self.detectors[source].detect(run.path)
        run.checks["sourceDetection"] = detection
        if not detection.meets(self.source_threshold()):
            raise StepError(
                f"Projet n'est pas en état {source.value}",
                FailureKind.STATE_CONFLICT,
            )
        return source

    async def _validate(self, run: WorkflowRun) -> None:
        self.workflow_logger.log(
            "validation-start",
            {"projectId": run.project_id, "fromState": run.source_state},
            run.options,
        )
        run.context = self.build_context(run.project_id, run.config, run.source_state)
        run.validation = self.transition.validate(
            run.source_state.value, self.target_state.value, run.context
        )
        if not run.validation.can_transition:
            requirements = run.validation.requirements
            self.workflow_logger.log(
                "validation-failed",
                {"projectId": run.project_id, "requirements": requirements},
                run.options,
            )
            raise StepError(
                "Validation échec: " + ", ".join(requirements),
                FailureKind.VALIDATION_FAILURE,
                {"requirements": list(requirements)},
            )

    async def precheck(self, run: WorkflowRun) -> None:
        self.workflow_logger.log(
            "filesystem-checks-start",
            {"projectId": run.project_id, "projectPath": run.path},
            run.options,
        )
        project = await self.filesystem.check_project_exists(run.project_id)
        run.checks["projectExists"] = project.exists
        if not project.exists:
            raise StepError(f"Projet {run.project_id} inexistant", FailureKind.PROJECT_MISSING)

        output = await self.filesystem.check_output_path(run.path)
        run.checks["outputWritable"] = output.writable
        if not output.writable:
            raise StepError(
                f"Chemin {run.path} non accessible en écriture",
                FailureKind.FILESYSTEM_FAILURE,
            )

    async def _execute(self, run: WorkflowRun) -> None:
        self.workflow_logger.log(
            "transition-start",
            {
                "projectId": run.project_id,
                "fromState": run.source_state,
                "toState": self.target_state,
                **run.identifiers,
            },
            run.options,
        )
        failed = f"Transition {self.transition_name.value} échouée"
        try:
            result = self.transition.execute(
                run.project_id,
                run.context,
                from_state=run.source_state.value,
                to_state=self.target_state.value,
            )
            await self.applier.apply(result, run.config)
        except StepError:
            raise
        except Exception as exc:
            raise StepError(f"{failed}: {exc}", FailureKind.TRANSITION_FAILURE) from exc
        if not result.success:
            raise StepError(failed, FailureKind.TRANSITION_FAILURE)
        run.result = result

    async def _verify(self, run: WorkflowRun) -> None:
        self.workflow_logger.log(
            "verification-start",
            {"projectId": run.project_id, "expectedState": self.target_state},
            run.options,
        )
        detection: DetectionResult = await self.detectors[self.target_state].detect(run.path)
        run.checks["targetDetection"] = detection
        if not detection.meets(self.settings.thresholds.verify):
            raise StepError(
                f"État final n'est pas {self.target_state.value} valide",
                FailureKind.STATE_VERIFICATION_FAILURE,
            )

    async def _cleanup(self, run: WorkflowRun) -> None:
        run.cleanup = self.transition.cleanup(run.result, run.project_id)

    # -- outcome ----------------------------------------------------------

    async def _succeed(self, run: WorkflowRun) -> WorkflowOutcome:
        run.metrics.duration_ms = run.elapsed_ms()
        run.metrics.success = True

        self.workflow_logger.log(
            "workflow-success",
            {
                "projectId": run.project_id,
                **run.identifiers,
                "finalState": self.target_state,
                "duration": run.metrics.duration_ms,
            },
            run.options,
        )
        await self._record(run, success=True)
        self._observe(run, "success")

        return WorkflowOutcome(
            success=True,
            project_id=run.project_id,
            transition_name=self.transition_name,
            final_state=self.target_state,
            original_state=run.source_state,
            correlation_id=run.correlation_id,
            identifiers=run.identifiers,
            transition=run.result,
            cleanup=run.cleanup,
            checks=run.checks,
            metrics=run.metrics,
        )

    async def _fail(self, run: WorkflowRun, exc: Exception) -> WorkflowError:
        kind = failure_kind(exc)
        reason = failure_reason(exc)
        run.metrics.duration_ms = run.elapsed_ms()
        run.metrics.error = reason

        self.workflow_logger.log(
            "workflow-error",
            {
                "projectId": run.project_id,
                **run.identifiers,
                "error": reason,
                "kind": kind,
                "step": run.current_step,
                "metrics": run.metrics,
            },
            run.options,
        )
        recovery = await self.recovery.recover(run.project_id, run.config, exc, run.options)
        await self._record(run, success=False, error=reason, kind=kind)
        self._observe(run, "failure")

        return WorkflowError(
            reason,
            kind,
            step=run.current_step,
            metrics=run.metrics,
            recovery=recovery,
            details=getattr(exc, "details", None),
        )

    async def _record(
        self,
        run: WorkflowRun,
        success: bool,
        error: Optional[str] = None,
        kind: Optional[FailureKind] = None,
    ) -> None:
        if self.store is None:
            return
        record = TransitionRecord(
            project_id=run.project_id,
            transition=self.transition_name.value,
            from_state=run.source_state.value if run.source_state else None,
            to_state=self.target_state.value if success else None,
            success=success,
            correlation_id=run.correlation_id,
            failure_kind=kind.value if kind else None,
            error=error,
            identifiers=run.identifiers,
            duration_ms=run.metrics.duration_ms,
            project_path=run.path,
        )
        try:
            await self.store.record_transition(record)
        except Exception as e:
            self.logger.error(
                f"Failed to record {self.transition_name.value} for {run.project_id}: {e}",
                exc_info=True,
            )

    def _observe(self, run: WorkflowRun, outcome: str) -> None:
        labels = {"transition": self.transition_name.value, "outcome": outcome}
        increment_counter("workflows_total", labels=labels)
        record_histogram("workflow_duration_seconds", run.metrics.duration_ms / 1000, labels)


__all__ = ["TransitionApplier", "WorkflowEngine", "WorkflowRun", "new_identifier"]

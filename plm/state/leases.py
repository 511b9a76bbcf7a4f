"""
Per-project mutual exclusion for workflow runs.

Two workflows on the same project id are serialized; workflows on different
projects run concurrently. Waiting is bounded by a timeout, after which the
caller gets a LeaseUnavailable error instead of blocking forever.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from plm.state.exceptions import FailureKind, StepError


class LeaseUnavailable(StepError):
    """Raised when a project lease cannot be acquired in time."""

    def __init__(self, project_id: str, timeout_seconds: float):
        super().__init__(
            f"Projet {project_id} verrouillé par un autre workflow "
            f"(attente > {timeout_seconds:g}s)",
            FailureKind.STATE_CONFLICT,
        )
        self.project_id = project_id


class ProjectLeases:
    """
    Registry of per-project asyncio locks.

    Example:
        >>> leases = ProjectLeases(timeout_seconds=5)
        >>> async with leases.acquire("p1"):
        ...     await run_build("p1")
    """

    def __init__(self, timeout_seconds: float = 10.0) -> None:
        self.timeout_seconds = timeout_seconds
        self._locks: Dict[str, asyncio.Lock] = {}
        # Holders plus waiters per project; the lock is dropped at zero
        self._users: Dict[str, int] = {}
        self.logger = logging.getLogger(__name__)

    def __len__(self) -> int:
        return len(self._locks)

    def is_held(self, project_id: str) -> bool:
        lock = self._locks.get(project_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def acquire(self, project_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(project_id, asyncio.Lock())
        self._users[project_id] = self._users.get(project_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError as exc:
                self.logger.warning(
                    f"Lease on {project_id} not acquired within {self.timeout_seconds}s"
                )
                raise LeaseUnavailable(project_id, self.timeout_seconds) from exc
            try:
                yield
            finally:
                lock.release()
        finally:
            self._forget(project_id)

    def _forget(self, project_id: str) -> None:
        remaining = self._users[project_id] - 1
        if remaining:
            self._users[project_id] = remaining
        else:
            del self._users[project_id]
            del self._locks[project_id]


__all__ = ["LeaseUnavailable", "ProjectLeases"]

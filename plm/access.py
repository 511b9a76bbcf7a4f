"""
Caller authorization ahead of a workflow run.

Identity and session management live outside this package. The engines only
consume an `Authorizer` that either lets a caller through or raises
AuthorizationDenied. Grants are kept in an injected key-value store with
expiry, never in module-level state.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Protocol, Tuple

from plm.state.exceptions import FailureKind, StepError
from plm.state.lifecycle import TransitionName


class AuthorizationDenied(StepError):
    def __init__(self, reason: str):
        super().__init__(reason, FailureKind.AUTHORIZATION_FAILURE)


class KeyValueStore(Protocol):
    """Minimal store interface for grants: get/set/delete with expiry."""

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ...

    async def delete(self, key: str) -> bool:
        ...

    async def expire(self, key: str, ttl_seconds: float) -> bool:
        ...


class MemoryKeyValueStore:
    """
    In-process KeyValueStore with lazy expiry.

    `clock` is injectable so expiry can be tested without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[Any]:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def expire(self, key: str, ttl_seconds: float) -> bool:
        value = await self.get(key)
        if value is None:
            return False
        self._data[key] = (value, self._clock() + ttl_seconds)
        return True


@dataclass(frozen=True, slots=True)
class Grant:
    """Permission attached to an access token."""

    subject: str
    transitions: FrozenSet[TransitionName] = field(default_factory=lambda: frozenset(TransitionName))
    projects: Optional[FrozenSet[str]] = None  # None means every project

    def permits(self, project_id: str, transition: TransitionName) -> bool:
        if transition not in self.transitions:
            return False
        return self.projects is None or project_id in self.projects


class Authorizer(Protocol):
    async def authorize(
        self,
        project_id: str,
        transition: TransitionName,
        options: Mapping[str, Any],
    ) -> str:
        """Return the authorized subject or raise AuthorizationDenied."""
        ...


class TokenAuthorizer:
    """
    Authorizer that looks up `options["access_token"]` in a KeyValueStore.

    Example:
        >>> store = MemoryKeyValueStore()
        >>> authorizer = TokenAuthorizer(store)
        >>> await authorizer.grant("tok-1", Grant(subject="ops"), ttl_seconds=3600)
        >>> await authorizer.authorize("p1", TransitionName.BUILD, {"access_token": "tok-1"})
        'ops'
    """

    KEY_PREFIX = "grant:"

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self.logger = logging.getLogger(__name__)

    async def grant(self, token: str, grant: Grant, ttl_seconds: Optional[float] = None) -> None:
        await self.store.set(self.KEY_PREFIX + token, grant, ttl_seconds)

    async def revoke(self, token: str) -> bool:
        return await self.store.delete(self.KEY_PREFIX + token)

    async def authorize(
        self,
        project_id: str,
        transition: TransitionName,
        options: Mapping[str, Any],
    ) -> str:
        token = options.get("access_token")
        if not token:
            raise AuthorizationDenied("Jeton d'accès manquant")

        grant = await self.store.get(self.KEY_PREFIX + str(token))
        if not isinstance(grant, Grant):
            raise AuthorizationDenied("Jeton d'accès invalide ou expiré")

        if not grant.permits(project_id, transition):
            self.logger.warning(
                f"{grant.subject} denied {transition.value} on {project_id}"
            )
            raise AuthorizationDenied(
                f"{transition.value} non autorisé sur {project_id} pour {grant.subject}"
            )
        return grant.subject


__all__ = [
    "AuthorizationDenied",
    "Authorizer",
    "Grant",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "TokenAuthorizer",
]

"""
The mutate -> invalidate-and-reload wrapper shared by cart, catalog and orders.

A mutation is identified by a resource key such as ("cart", line_id). Two
mutations with the same key never overlap: the second waits until the first
has finished, including its reload. Different keys run independently.
"""
from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Optional, TypeVar, Union

from core.auth_guard import AuthGuard, Classification
from remote.errors import RemoteError
from utils.logger import get_logger

_logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Notice:
    title: str
    message: str


@dataclass(frozen=True)
class MutationResult(Generic[T]):
    """
    Outcome of a mutation. Falsy unless the remote call succeeded.
    `dispatched` is False when the call never reached the service.
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None
    failure: Optional[Classification] = None
    dispatched: bool = True

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def rejected(cls) -> "MutationResult[Any]":
        return cls(ok=False, dispatched=False)


class MutationExecutor:
    def __init__(self, guard: AuthGuard, host):
        self._guard = guard
        self._host = host
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._pending: Counter = Counter()

    @property
    def guard(self) -> AuthGuard:
        return self._guard

    def is_pending(self, key: Hashable) -> bool:
        """True while a mutation for key is running or queued; views disable its control."""
        return self._pending[key] > 0

    def reject(self, message: str, *, title: str = "Error") -> MutationResult:
        """Local validation failure: shown to the user, nothing is sent."""
        self._host.notify(message, title=title, severity="error")
        return MutationResult.rejected()

    def _lock_for(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def run(
        self,
        key: Hashable,
        call: Callable[[], Awaitable[T]],
        *,
        failure_notice: str,
        invalidate: Optional[Callable[[], Awaitable[Any]]] = None,
        success_notice: Optional[Union[Notice, Callable[[T], Optional[Notice]]]] = None,
    ) -> MutationResult[T]:
        """
        Issue `call` under the key's lock. On success run `invalidate` (the
        reload of the affected snapshot) and show `success_notice`; on a
        RemoteError hand the failure to the AuthGuard. Nothing is raised.

        An `invalidate` returning False has reported its own failure, and the
        success notice is skipped. A callable `success_notice` may return None
        to show nothing.
        """
        self._pending[key] += 1
        try:
            async with self._lock_for(key):
                try:
                    value = await call()
                except RemoteError as e:
                    kind = self._guard.handle(e, failure_notice)
                    return MutationResult(ok=False, error=e, failure=kind)
                _logger.debug(f"Mutation {key!r} succeeded")
                if invalidate is not None and await invalidate() is False:
                    _logger.debug(f"Reload after {key!r} failed, success notice skipped")
                    return MutationResult(ok=True, value=value)
                if success_notice is not None:
                    notice = success_notice(value) if callable(success_notice) else success_notice
                    if notice is not None:
                        self._host.notify(notice.message, title=notice.title)
                return MutationResult(ok=True, value=value)
        finally:
            self._pending[key] -= 1
            if not self._pending[key]:
                del self._pending[key]
                self._locks.pop(key, None)

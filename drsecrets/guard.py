# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets Serialization Guard - One lock for every secret lifecycle pass.

Deploy and undeploy both read the whole policy catalog and derive what to
push or delete from it. If two passes interleaved, one could delete a
secret the other just decided to keep. Every pass therefore holds the
guard from its catalog read until its last mutation.

The guard is an object passed to the engines, not a module global, so a
process can own exactly one and tests can swap in NullGuard.
"""

import asyncio
from typing import Protocol, runtime_checkable

import structlog

from drsecrets.exceptions import GuardReentryError

logger = structlog.get_logger()


@runtime_checkable
class LifecycleGuard(Protocol):
    """Async context manager every lifecycle pass runs under."""

    def locked(self) -> bool:
        ...

    async def __aenter__(self) -> "LifecycleGuard":
        ...

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        ...


class SerializationGuard:
    """
    Process-wide mutual exclusion for secret lifecycle passes.

    Use as an async context manager. The lock is released on every exit
    path, including exceptions and task cancellation.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task | None = None
        self.acquisitions = 0

    def locked(self) -> bool:
        return self._lock.locked()

    async def __aenter__(self) -> "SerializationGuard":
        task = asyncio.current_task()
        if task is not None and task is self._owner:
            raise GuardReentryError(
                "Secret lifecycle guard is already held by this task",
                details={"task": task.get_name()},
            )

        await self._lock.acquire()
        self._owner = task
        self.acquisitions += 1
        logger.debug("guard_acquired", acquisitions=self.acquisitions)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self._owner = None
        self._lock.release()
        logger.debug("guard_released", error=exc_type.__name__ if exc_type else None)
        return False


class NullGuard:
    """Guard that never blocks. For single-task tests and tools."""

    def __init__(self) -> None:
        self.acquisitions = 0

    def locked(self) -> bool:
        return False

    async def __aenter__(self) -> "NullGuard":
        self.acquisitions += 1
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False

"""Concurrent fan-out under a single global deadline.

All named calls start together and are awaited jointly. Whatever finished
by the deadline is returned; the rest are cancelled and their eventual
results are never merged. Work already handed to a worker thread keeps
running in the background and its result is discarded.

One failing call never affects its siblings.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Mapping

from butler.core.logging import get_logger, log_with_context

logger = get_logger(__name__)


class Deadline:
    """An absolute point on the event loop clock."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self._loop = asyncio.get_running_loop()
        self.expires_at = self._loop.time() + seconds

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._loop.time())

    @property
    def expired(self) -> bool:
        return self.remaining() == 0.0


@dataclass
class FanOutResult:
    """Outcome of a fan-out: completed values plus what was dropped."""

    results: dict[str, Any] = field(default_factory=dict)
    timed_out: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.timed_out and not self.failed

    def get(self, name: str, default: Any = None) -> Any:
        return self.results.get(name, default)


async def fan_out(
    calls: Mapping[str, Awaitable[Any]],
    deadline: Deadline,
    user_id: str | None = None,
) -> FanOutResult:
    """
    Run every call concurrently and collect what finished by the deadline.

    Args:
        calls: Name -> awaitable
        deadline: Global deadline shared by all calls
        user_id: Only used for log correlation

    Returns:
        FanOutResult; a timeout is a partial result, never an exception
    """
    outcome = FanOutResult()
    if not calls:
        return outcome

    tasks = {name: asyncio.ensure_future(call) for name, call in calls.items()}

    done, pending = await asyncio.wait(tasks.values(), timeout=deadline.remaining())

    for task in pending:
        task.cancel()

    for name, task in tasks.items():
        if task in pending or task.cancelled():
            outcome.timed_out.append(name)
            continue

        error = task.exception()
        if error is not None:
            log_with_context(
                logger,
                logging.ERROR,
                f"Source {name} failed: {error!r}",
                user_id=user_id,
                source=name,
            )
            outcome.failed.append(name)
            continue

        outcome.results[name] = task.result()

    if outcome.timed_out:
        log_with_context(
            logger,
            logging.WARNING,
            f"Context gathering hit {deadline.seconds}s deadline, using partial results",
            user_id=user_id,
            timed_out=",".join(outcome.timed_out),
        )

    return outcome

import asyncio
import hashlib
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable

from code_agent import config
from code_agent.errors import StepError
from code_agent.run_store import RunStore, is_missing


logger = logging.getLogger("code_agent.steps")


def argument_digest(key: str) -> str:
    return hashlib.sha1(key.encode("utf-8")).hexdigest()[:12]


class StepRunner:
    """Memoize named units of work for one run.

    `await step.run(name, fn)` returns the recorded result of a previous
    execution of the same step when there is one, otherwise calls `fn`,
    retrying with exponential backoff, and records what it returns.

    Steps sharing a name are told apart by call order: the third `terminal`
    step of a run is `terminal:2`. Steps whose outcome depends on their
    arguments pass them as `key`; the step id then carries a digest of the
    key, so a replay that issues different arguments executes instead of
    reading another call's result. Results have to be JSON-compatible.
    """

    def __init__(
        self,
        run_id: str,
        store: RunStore,
        max_attempts: int = config.STEP_MAX_ATTEMPTS,
        backoff_seconds: float = config.STEP_BACKOFF_SECONDS,
    ) -> None:
        self.run_id = run_id
        self.store = store
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self._counts: dict[str, int] = defaultdict(int)

    def _next_step_id(self, name: str, key: str | None = None) -> str:
        prefix = f"{name}:{argument_digest(key)}" if key is not None else name
        n = self._counts[prefix]
        self._counts[prefix] += 1
        return f"{prefix}:{n}"

    async def run(
        self, name: str, fn: Callable[[], Awaitable[Any]], key: str | None = None
    ) -> Any:
        step_id = self._next_step_id(name, key)
        recorded = await self.store.get_step_result(self.run_id, step_id)
        if not is_missing(recorded):
            logger.debug("run[%s] step %s replayed from memo", self.run_id, step_id)
            return recorded

        attempt = 0
        while True:
            attempt += 1
            try:
                result = await fn()
                break
            except Exception as e:
                if attempt >= self.max_attempts:
                    logger.error(
                        "run[%s] step %s failed after %d attempt(s): %s",
                        self.run_id,
                        step_id,
                        attempt,
                        e,
                    )
                    raise StepError(name, attempt, e) from e
                logger.warning(
                    "run[%s] retrying step %s (%d/%d) due to error: %s",
                    self.run_id,
                    step_id,
                    attempt,
                    self.max_attempts,
                    e,
                )
                await asyncio.sleep(self.backoff_seconds * (2 ** (attempt - 1)))

        await self.store.set_step_result(self.run_id, step_id, result)
        logger.debug("run[%s] step %s completed", self.run_id, step_id)
        return result

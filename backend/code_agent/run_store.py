from __future__ import annotations

import time
from typing import Any

from vercel.cache import AsyncRuntimeCache

from code_agent import config


_MISSING = object()


def _run_key(run_id: str) -> str:
    return f"run:{run_id}"


def _step_key(run_id: str, step_id: str) -> str:
    return f"run:{run_id}:step:{step_id}"


class RunStore:
    """Run records and memoized step results, kept in the Vercel Runtime Cache.

    Everything is tagged with the run id so a whole run can be expired at once.
    """

    def __init__(
        self,
        cache: Any | None = None,
        ttl_seconds: int = config.RUN_STORE_TTL_SECONDS,
    ) -> None:
        self.cache = cache if cache is not None else AsyncRuntimeCache(
            namespace=config.RUN_STORE_NAMESPACE
        )
        self.ttl_seconds = ttl_seconds

    def _options(self, run_id: str) -> dict[str, Any]:
        return {"ttl": self.ttl_seconds, "tags": [f"run:{run_id}"]}

    async def get_step_result(self, run_id: str, step_id: str) -> Any:
        """Return the recorded result of a step, or the _MISSING sentinel."""
        val = await self.cache.get(_step_key(run_id, step_id))
        if isinstance(val, dict) and "result" in val:
            return val["result"]
        return _MISSING

    async def set_step_result(self, run_id: str, step_id: str, result: Any) -> None:
        await self.cache.set(
            _step_key(run_id, step_id), {"result": result}, self._options(run_id)
        )

    async def set_run(self, run_id: str, record: dict[str, Any]) -> None:
        await self.cache.set(_run_key(run_id), dict(record), self._options(run_id))

    async def get_run(self, run_id: str) -> dict[str, Any] | None:
        val = await self.cache.get(_run_key(run_id))
        return dict(val) if isinstance(val, dict) else None

    async def update_run(self, run_id: str, **fields: Any) -> None:
        """Merge fields into the stored run record if present."""
        base = await self.get_run(run_id)
        if base is None:
            return
        base.update(fields)
        base["updated_at"] = time.strftime("%Y-%m-%dT%H:%M:%S+00:00", time.gmtime())
        await self.set_run(run_id, base)


def is_missing(value: Any) -> bool:
    return value is _MISSING

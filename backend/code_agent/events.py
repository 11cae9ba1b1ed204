import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, Field

from code_agent.run_store import RunStore
from code_agent.steps import StepRunner


logger = logging.getLogger("code_agent.events")


class Event(BaseModel):
    """An event that triggers a registered function."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    data: dict[str, Any] = Field(default_factory=dict)


Handler = Callable[[Event, StepRunner], Awaitable[Any]]


@dataclass
class RegisteredFunction:
    fn_id: str
    event: str
    handler: Handler
    payload_model: type[BaseModel] | None = None


def make_run_id() -> str:
    return f"run_{int(time.time()*1000)}_{uuid.uuid4().hex[:8]}"


def _now() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S+00:00", time.gmtime())


@dataclass
class EventClient:
    """Dispatch events to registered functions as background runs.

    Every run gets its own StepRunner, and its status, result or error is
    recorded in the run store under the run id returned by `send`.
    """

    store: RunStore
    functions: dict[str, RegisteredFunction] = field(default_factory=dict)
    _tasks: set[asyncio.Task] = field(default_factory=set)

    def create_function(
        self, fn_id: str, event: str, payload_model: type[BaseModel] | None = None
    ) -> Callable[[Handler], Handler]:
        def register(handler: Handler) -> Handler:
            self.functions[event] = RegisteredFunction(fn_id, event, handler, payload_model)
            return handler

        return register

    async def send(self, name: str, data: dict[str, Any]) -> str:
        registered = self.functions.get(name)
        if registered is None:
            raise ValueError(f"No function registered for event: {name}")
        if registered.payload_model is not None:
            data = registered.payload_model.model_validate(data).model_dump(exclude_none=True)

        event = Event(name=name, data=data)
        run_id = make_run_id()
        await self.store.set_run(
            run_id,
            {
                "run_id": run_id,
                "function": registered.fn_id,
                "event": event.model_dump(),
                "status": "running",
                "created_at": _now(),
            },
        )
        task = asyncio.create_task(self._execute(registered, event, run_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("send[%s] event=%s function=%s", run_id, name, registered.fn_id)
        return run_id

    async def _execute(self, registered: RegisteredFunction, event: Event, run_id: str) -> Any:
        step = StepRunner(run_id, self.store)
        try:
            result = await registered.handler(event, step)
        except Exception as e:
            logger.exception("run[%s] %s failed", run_id, registered.fn_id)
            await self.store.update_run(run_id, status="failed", error=str(e))
            return None
        await self.store.update_run(run_id, status="completed", result=result)
        logger.info("run[%s] %s completed", run_id, registered.fn_id)
        return result

    async def wait(self) -> None:
        """Wait for every in-flight run to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

# tests/conftest.py
"""
Shared pytest fixtures for the code agent tests.

Provides:
- In-memory runtime cache and run store
- Fake sandbox client with a per-sandbox file system
- Scripted agent runner standing in for the model
- File-backed SQLite session factory
"""
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable

import pytest
import pytest_asyncio
from agents import RunContextWrapper
from agents.items import MessageOutputItem
from openai.types.responses import ResponseOutputMessage, ResponseOutputText
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from code_agent.agent.context import CodeAgentContext, RunState
from code_agent.db.models import Base
from code_agent.errors import CommandExitError
from code_agent.run_store import RunStore
from code_agent.sandbox.client import CommandResult
from code_agent.steps import StepRunner


# ═══════════════════════════════════════════════════════
# RUN STORE
# ═══════════════════════════════════════════════════════

class FakeCache:
    """Dict-backed stand-in for AsyncRuntimeCache."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}

    async def get(self, key: str) -> Any:
        return self.data.get(key)

    async def set(self, key: str, value: Any, options: dict | None = None) -> None:
        self.data[key] = value


@pytest.fixture
def store() -> RunStore:
    return RunStore(cache=FakeCache())


@pytest.fixture
def step(store: RunStore) -> StepRunner:
    return StepRunner("run_test", store, max_attempts=3, backoff_seconds=0)


# ═══════════════════════════════════════════════════════
# SANDBOX
# ═══════════════════════════════════════════════════════

class FakeSandboxHandle:
    def __init__(self, client: "FakeSandboxClient", sandbox_id: str) -> None:
        self.client = client
        self.sandbox_id = sandbox_id

    @property
    def files(self) -> dict[str, str]:
        return self.client.filesystems[self.sandbox_id]

    async def run(self, command, on_stdout=None, on_stderr=None) -> CommandResult:
        self.client.commands_run.append(command)
        stdout, stderr, exit_code = self.client.command_results.get(command, ("", "", 0))
        if stdout and on_stdout:
            on_stdout(stdout)
        if stderr and on_stderr:
            on_stderr(stderr)
        if exit_code != 0:
            raise CommandExitError(exit_code, stdout, stderr)
        return CommandResult(stdout=stdout, stderr=stderr, exit_code=exit_code)

    async def write_file(self, path: str, content: str) -> None:
        if path in self.client.failing_paths:
            raise PermissionError(f"cannot write {path}")
        self.files[path] = content

    async def read_file(self, path: str) -> str:
        if path not in self.files:
            raise CommandExitError(1, "", f"base64: {path}: No such file or directory")
        return self.files[path]

    def get_host(self, port: int) -> str:
        return f"{self.sandbox_id}-{port}.vercel.run"

    async def close(self) -> None:
        pass


class FakeSandboxClient:
    def __init__(self) -> None:
        self.filesystems: dict[str, dict[str, str]] = {}
        self.command_results: dict[str, tuple[str, str, int]] = {}
        self.commands_run: list[str] = []
        self.failing_paths: set[str] = set()
        self.created = 0

    async def create(self) -> str:
        self.created += 1
        sandbox_id = f"sbx_{self.created}"
        self.filesystems[sandbox_id] = {}
        return sandbox_id

    async def connect(self, sandbox_id: str) -> FakeSandboxHandle:
        if sandbox_id not in self.filesystems:
            raise LookupError(f"unknown sandbox {sandbox_id}")
        return FakeSandboxHandle(self, sandbox_id)

    @asynccontextmanager
    async def session(self, sandbox_id: str):
        yield await self.connect(sandbox_id)


@pytest.fixture
def sandbox() -> FakeSandboxClient:
    return FakeSandboxClient()


@pytest_asyncio.fixture
async def context(sandbox: FakeSandboxClient, step: StepRunner) -> CodeAgentContext:
    sandbox_id = await sandbox.create()
    return CodeAgentContext(
        state=RunState(), sandbox_id=sandbox_id, step=step, sandbox=sandbox
    )


# ═══════════════════════════════════════════════════════
# AGENT RUNNER
# ═══════════════════════════════════════════════════════

def text_item(agent: Any, *segments: str) -> MessageOutputItem:
    return MessageOutputItem(
        agent=agent,
        raw_item=ResponseOutputMessage(
            id="msg_test",
            content=[
                ResponseOutputText(annotations=[], text=s, type="output_text")
                for s in segments
            ],
            role="assistant",
            status="completed",
            type="message",
        ),
    )


class FakeRunResult:
    def __init__(self, input: Any, new_items: list[Any], final_output: Any) -> None:
        self.input = input
        self.new_items = new_items
        self.final_output = final_output

    def to_input_list(self) -> list[Any]:
        history = list(self.input) if isinstance(self.input, list) else [
            {"role": "user", "content": self.input}
        ]
        return history + [{"role": "assistant", "content": str(self.final_output)}]


Turn = Callable[[CodeAgentContext], Awaitable[str]]


class ScriptedRunner:
    """Plays the model: code-agent iterations follow `turns`, generators reply with fixed text.

    Each turn may call the tool helpers against the context and returns the
    final text of that iteration. Once turns run out, the last one repeats.
    """

    def __init__(
        self,
        turns: list[Turn] | None = None,
        title: str = "Hello World Page",
        response: str = "Done! Your page is ready.",
    ) -> None:
        self.turns = turns or []
        self.title = title
        self.response = response
        self.calls: list[str] = []
        self.iterations = 0

    async def __call__(self, agent: Any, input: Any, context: Any) -> FakeRunResult:
        self.calls.append(agent.name)
        if agent.name == "fragment-title-generator":
            return FakeRunResult(input, [text_item(agent, self.title)], self.title)
        if agent.name == "response-generator":
            return FakeRunResult(input, [text_item(agent, self.response)], self.response)

        turn = self.turns[min(self.iterations, len(self.turns) - 1)]
        self.iterations += 1
        text = await turn(context)
        await agent.hooks.on_end(RunContextWrapper(context=context), agent, text)
        return FakeRunResult(input, [text_item(agent, text)], text)


@pytest.fixture
def scripted_runner() -> type[ScriptedRunner]:
    return ScriptedRunner


# ═══════════════════════════════════════════════════════
# DATABASE
# ═══════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def session_factory(tmp_path):
    # File-backed so background runs get their own connection
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()

import base64
import logging
import shlex
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable

from vercel.sandbox import AsyncSandbox

from code_agent import config
from code_agent.errors import CommandExitError
from code_agent.sandbox.template import TEMPLATE_FILES


logger = logging.getLogger("code_agent.sandbox")

OutputCallback = Callable[[str], None]


@dataclass
class CommandResult:
    stdout: str
    stderr: str
    exit_code: int


class SandboxHandle:
    """A connection to one remote sandbox.

    Handles are cheap and short-lived: every step reconnects by id and closes
    the handle when done, the sandbox itself keeps running.
    """

    def __init__(self, sandbox: AsyncSandbox) -> None:
        self._sandbox = sandbox

    @property
    def sandbox_id(self) -> str:
        return self._sandbox.sandbox_id

    @property
    def cwd(self) -> str:
        return self._sandbox.sandbox.cwd

    async def run(
        self,
        command: str,
        on_stdout: OutputCallback | None = None,
        on_stderr: OutputCallback | None = None,
    ) -> CommandResult:
        """Run a shell command from the sandbox cwd, streaming output to the callbacks.

        Raises CommandExitError when the command exits non-zero.
        """
        cmd = await self.start(command)
        stdout: list[str] = []
        stderr: list[str] = []
        async for line in cmd.logs():
            if getattr(line, "stream", "stdout") == "stderr":
                stderr.append(line.data)
                if on_stderr:
                    on_stderr(line.data)
            else:
                stdout.append(line.data)
                if on_stdout:
                    on_stdout(line.data)
        done = await cmd.wait()
        result = CommandResult(
            stdout="".join(stdout), stderr="".join(stderr), exit_code=done.exit_code
        )
        if result.exit_code != 0:
            raise CommandExitError(result.exit_code, result.stdout, result.stderr)
        return result

    async def start(self, command: str) -> Any:
        """Start a shell command from the sandbox cwd without waiting for it."""
        return await self._sandbox.run_command_detached(
            "bash", ["-lc", f"cd {shlex.quote(self.cwd)} && {command}"]
        )

    async def write_file(self, path: str, content: str) -> None:
        await self.write_files({path: content})

    async def write_files(self, files: dict[str, str]) -> None:
        await self._sandbox.write_files(
            [{"path": path, "content": content.encode("utf-8")} for path, content in files.items()]
        )

    async def read_file(self, path: str) -> str:
        """Return a file's text. Raises CommandExitError when it cannot be read."""
        result = await self.run(f"base64 {shlex.quote(path)}")
        return base64.b64decode(result.stdout).decode("utf-8")

    def get_host(self, port: int) -> str:
        return self._sandbox.domain(port)

    async def close(self) -> None:
        # Close the API client only; the sandbox outlives the handle
        await self._sandbox.client.aclose()


class SandboxClient:
    """Creates sandboxes from a fixed template and reconnects to them by id."""

    def __init__(
        self,
        runtime: str = config.SANDBOX_RUNTIME,
        port: int = config.SANDBOX_PORT,
        timeout_ms: int = config.SANDBOX_TIMEOUT_MS,
        template_repo: str | None = config.SANDBOX_TEMPLATE_REPO,
        install_command: str = config.SANDBOX_INSTALL_COMMAND,
        dev_command: str = config.SANDBOX_DEV_COMMAND,
    ) -> None:
        self.runtime = runtime
        self.port = port
        self.timeout_ms = timeout_ms
        self.template_repo = template_repo
        self.install_command = install_command
        self.dev_command = dev_command

    def _template_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "timeout": self.timeout_ms,
            "runtime": self.runtime,
            "ports": [self.port],
        }
        if self.template_repo:
            kwargs["source"] = {"type": "git", "url": self.template_repo}
        return kwargs

    async def create(self) -> str:
        """Create a sandbox, install the app and leave its dev server running.

        Without a git source the starter app from `template.TEMPLATE_FILES` is
        written first. A sandbox whose setup fails is stopped.
        """
        sandbox = await AsyncSandbox.create(**self._template_kwargs())
        logger.info(
            "Created sandbox %s (runtime=%s port=%d)",
            sandbox.sandbox_id,
            self.runtime,
            self.port,
        )
        handle = SandboxHandle(sandbox)
        try:
            await self._bootstrap(handle)
        except Exception:
            logger.exception("Sandbox %s setup failed, stopping it", sandbox.sandbox_id)
            await sandbox.stop()
            raise
        finally:
            await handle.close()
        return sandbox.sandbox_id

    async def _bootstrap(self, handle: SandboxHandle) -> None:
        if not self.template_repo:
            await handle.write_files(TEMPLATE_FILES)
        await handle.run(self.install_command)
        await handle.start(self.dev_command.format(port=self.port))
        logger.info("Sandbox %s dev server starting on port %d", handle.sandbox_id, self.port)

    async def connect(self, sandbox_id: str) -> SandboxHandle:
        fetched = await AsyncSandbox.get(sandbox_id=sandbox_id)
        return SandboxHandle(fetched)

    @asynccontextmanager
    async def session(self, sandbox_id: str) -> AsyncIterator[SandboxHandle]:
        """Reconnect to a sandbox for the duration of a block."""
        handle = await self.connect(sandbox_id)
        try:
            yield handle
        finally:
            await handle.close()

    async def stop(self, sandbox_id: str) -> None:
        fetched = await AsyncSandbox.get(sandbox_id=sandbox_id)
        try:
            await fetched.stop()
        finally:
            await fetched.client.aclose()

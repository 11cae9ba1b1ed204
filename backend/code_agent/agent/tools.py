import json
import logging
from typing import Any

from pydantic import BaseModel
from agents import function_tool, RunContextWrapper

from code_agent.agent.context import CodeAgentContext


logger = logging.getLogger("code_agent.agent.tools")


class FileInput(BaseModel):
    path: str
    content: str


async def _perform_terminal(ctx: CodeAgentContext, command: str) -> str:
    async def _run() -> str:
        buffers = {"stdout": "", "stderr": ""}

        def on_stdout(data: str) -> None:
            buffers["stdout"] += data

        def on_stderr(data: str) -> None:
            buffers["stderr"] += data

        try:
            async with ctx.sandbox.session(ctx.sandbox_id) as sandbox:
                result = await sandbox.run(
                    command, on_stdout=on_stdout, on_stderr=on_stderr
                )
                return result.stdout
        except Exception as e:
            # The agent reads failures as tool output and decides what to do next
            output = (
                f"Command failed: {e} \n"
                f"stdout: {buffers['stdout']}\n"
                f"stderr: {buffers['stderr']}"
            )
            logger.warning("terminal command %r failed: %s", command, e)
            return output

    return await ctx.step.run("terminal", _run, key=command)


async def _perform_create_or_update_files(
    ctx: CodeAgentContext, files: list[FileInput]
) -> dict[str, str] | str:
    """Write files to the sandbox and merge them into the run's file map.

    Returns the merged map, or an error string when any write fails. The
    shared state only changes on success; writes that already reached the
    sandbox before a failure are left in place.
    """

    async def _write() -> list[str] | str:
        try:
            async with ctx.sandbox.session(ctx.sandbox_id) as sandbox:
                for file in files:
                    await sandbox.write_file(file.path, file.content)
            return [file.path for file in files]
        except Exception as e:
            logger.warning("createOrUpdateFiles failed: %s", e)
            return f"Error: {e}"

    key = json.dumps([file.model_dump() for file in files], sort_keys=True)
    written = await ctx.step.run("createOrUpdateFiles", _write, key=key)
    if isinstance(written, str):
        return written
    # Merge happens outside the memo; replays rebuild the map from the calls
    updated = dict(ctx.state.files or {})
    for file in files:
        updated[file.path] = file.content
    ctx.state.files = updated
    return updated


async def _perform_read_files(ctx: CodeAgentContext, files: list[str]) -> str:
    async def _read() -> str:
        try:
            contents: list[dict[str, Any]] = []
            async with ctx.sandbox.session(ctx.sandbox_id) as sandbox:
                for path in files:
                    content = await sandbox.read_file(path)
                    contents.append({"path": path, "content": content})
            return json.dumps(contents)
        except Exception as e:
            logger.warning("readFiles failed: %s", e)
            return f"Error: {e}"

    return await ctx.step.run("readFiles", _read, key=json.dumps(files))


@function_tool(name_override="terminal")
async def terminal(ctx: RunContextWrapper[CodeAgentContext], command: str) -> str:
    """Use the terminal to run commands.

    Args:
        command: Shell command to run in the sandbox working directory.
    Returns:
        Command stdout, or a failure report including captured stdout/stderr.
    """
    return await _perform_terminal(ctx.context, command)


@function_tool(name_override="createOrUpdateFiles")
async def create_or_update_files(
    ctx: RunContextWrapper[CodeAgentContext], files: list[FileInput]
) -> str:
    """Create or update files in the sandbox.

    Args:
        files: Files to write, each with a path relative to the app root and its full content.
    Returns:
        The updated paths, or an error message.
    """
    result = await _perform_create_or_update_files(ctx.context, files)
    if isinstance(result, dict):
        return json.dumps({"updated": [f.path for f in files]})
    return result


@function_tool(name_override="readFiles")
async def read_files(ctx: RunContextWrapper[CodeAgentContext], files: list[str]) -> str:
    """Read files in the sandbox.

    Args:
        files: Paths of the files to read.
    Returns:
        JSON array of {path, content} objects, or an error message.
    """
    return await _perform_read_files(ctx.context, files)


CODE_AGENT_TOOLS = [terminal, create_or_update_files, read_files]

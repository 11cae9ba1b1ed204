import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from code_agent import config
from code_agent.agent.agent import (
    FRAGMENT_TITLE_FALLBACK,
    RESPONSE_FALLBACK,
    create_code_agent,
    create_fragment_title_generator,
    create_response_generator,
    output_messages,
    parse_agent_output,
)
from code_agent.agent.context import CodeAgentContext, RunInput, RunState
from code_agent.agent.network import AgentRunner, Network, run_agent, summary_router
from code_agent.db.models import MessageRole, MessageType
from code_agent.db.repository import create_message
from code_agent.errors import GENERIC_ERROR_MESSAGE
from code_agent.events import Event, EventClient
from code_agent.sandbox import SandboxClient
from code_agent.steps import StepRunner


logger = logging.getLogger("code_agent.functions")


CODE_AGENT_EVENT = "code-agent/run"


def is_error_result(state: RunState) -> bool:
    """A run failed when the agent never finished or never wrote a file."""
    return not state.summary or not state.files


async def _generate_text(
    runner: AgentRunner, agent: Any, summary: str, fallback: str
) -> str:
    result = await runner(agent, summary, None)
    return parse_agent_output(output_messages(result), fallback)


def create_code_agent_function(
    sandbox: SandboxClient,
    session_factory: async_sessionmaker[AsyncSession],
    runner: AgentRunner = run_agent,
    model: str | None = None,
):
    """Build the handler for `code-agent/run` events.

    The handler provisions a sandbox, runs the code agent network until it
    reports a summary, generates a title and a reply, and stores exactly one
    assistant message for the project.
    """

    async def code_agent_function(event: Event, step: StepRunner) -> dict[str, Any]:
        run_input = RunInput.model_validate(event.data)

        async def _create_sandbox() -> str:
            return await sandbox.create()

        sandbox_id = await step.run("get-sandbox-id", _create_sandbox)
        logger.info("run[%s] project=%s sandbox=%s", step.run_id, run_input.projectId, sandbox_id)

        run_model = run_input.model or model
        code_agent = create_code_agent(run_model)
        network = Network(
            name="coding-agent-network",
            agents=[code_agent],
            router=summary_router(code_agent),
            max_iter=config.AGENT_MAX_ITER,
            runner=runner,
        )
        context = CodeAgentContext(
            state=RunState(), sandbox_id=sandbox_id, step=step, sandbox=sandbox
        )
        try:
            result = await network.run(run_input.value, context)
            status = result.status.value
        except Exception:
            # Model and transport failures end the run with the error message
            logger.exception("run[%s] agent network failed", step.run_id)
            status = "failed"
        state = context.state

        is_error = status == "failed" or is_error_result(state)
        title = FRAGMENT_TITLE_FALLBACK
        response = RESPONSE_FALLBACK
        sandbox_url = None
        if not is_error:
            summary = state.summary or ""

            async def _generate_title() -> str:
                return await _generate_text(
                    runner, create_fragment_title_generator(run_model), summary, FRAGMENT_TITLE_FALLBACK
                )

            async def _generate_response() -> str:
                return await _generate_text(
                    runner, create_response_generator(run_model), summary, RESPONSE_FALLBACK
                )

            title = await step.run("generate-fragment-title", _generate_title)
            response = await step.run("generate-response", _generate_response)

            async def _get_sandbox_url() -> str:
                async with sandbox.session(sandbox_id) as handle:
                    host = handle.get_host(config.SANDBOX_PORT)
                return host if host.startswith("http") else f"https://{host}"

            sandbox_url = await step.run("get-sandbox-url", _get_sandbox_url)
        else:
            logger.warning(
                "run[%s] finished without a usable result: status=%s summary=%s files=%d",
                step.run_id,
                status,
                bool(state.summary),
                len(state.files),
            )

        async def _save_result() -> str:
            async with session_factory() as session:
                if is_error:
                    message = await create_message(
                        session,
                        project_id=run_input.projectId,
                        content=GENERIC_ERROR_MESSAGE,
                        role=MessageRole.ASSISTANT,
                        type=MessageType.ERROR,
                    )
                else:
                    message = await create_message(
                        session,
                        project_id=run_input.projectId,
                        content=response,
                        role=MessageRole.ASSISTANT,
                        type=MessageType.RESULT,
                        fragment={
                            "sandbox_url": sandbox_url,
                            "title": title,
                            "files": state.files,
                        },
                    )
                return message.id

        await step.run("save-result", _save_result)

        return {
            "url": sandbox_url,
            "title": title,
            "files": state.files,
            "summary": state.summary,
        }

    return code_agent_function


def register_functions(
    client: EventClient,
    sandbox: SandboxClient,
    session_factory: async_sessionmaker[AsyncSession],
    runner: AgentRunner = run_agent,
) -> None:
    handler = create_code_agent_function(sandbox, session_factory, runner)
    client.create_function("code-agent", CODE_AGENT_EVENT, payload_model=RunInput)(handler)

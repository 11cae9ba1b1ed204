import logging
from typing import Any

from agents import Agent, AgentHooks, MessageOutputItem, RunContextWrapper

from code_agent import config
from code_agent.agent.context import CodeAgentContext
from code_agent.agent.tools import CODE_AGENT_TOOLS
from code_agent.prompt import FRAGMENT_TITLE_PROMPT, PROMPT, RESPONSE_PROMPT


logger = logging.getLogger("code_agent.agent")


FRAGMENT_TITLE_FALLBACK = "Fragment"
RESPONSE_FALLBACK = "Here you go"


def last_assistant_text_message_content(output: Any) -> str | None:
    """Return the assistant's final text for a response, if it produced text."""
    if isinstance(output, str):
        return output
    if isinstance(output, list):
        texts = [c for c in output if isinstance(c, str)]
        return "".join(texts) if texts else None
    return None


class CodeAgentHooks(AgentHooks[CodeAgentContext]):
    """Lifecycle hooks for the code agent.

    After each response, a final text carrying the completion marker becomes
    the run summary. That is the only signal that ends the network loop.
    """

    async def on_end(
        self,
        context: RunContextWrapper[CodeAgentContext],
        agent: Agent[CodeAgentContext],
        output: Any,
    ) -> None:
        text = last_assistant_text_message_content(output)
        if text and context.context.state.record_summary(text):
            logger.info("%s reported completion", agent.name)


def _resolve_model(model: str | None) -> str:
    if model:
        return f"litellm/vercel_ai_gateway/{model}"
    return config.DEFAULT_MODEL


def create_code_agent(model: str | None = None) -> Agent[CodeAgentContext]:
    """Factory for the code agent with an optional model override."""
    return Agent[CodeAgentContext](
        name="code-agent",
        handoff_description="An expert coding agent",
        instructions=PROMPT,
        model=_resolve_model(model),
        tools=list(CODE_AGENT_TOOLS),
        hooks=CodeAgentHooks(),
    )


def create_fragment_title_generator(model: str | None = None) -> Agent:
    return Agent(
        name="fragment-title-generator",
        handoff_description="Generate a title for the fragment",
        instructions=FRAGMENT_TITLE_PROMPT,
        model=_resolve_model(model),
    )


def create_response_generator(model: str | None = None) -> Agent:
    return Agent(
        name="response-generator",
        handoff_description="Generate a response for the fragment",
        instructions=RESPONSE_PROMPT,
        model=_resolve_model(model),
    )


def output_messages(result: Any) -> list[dict[str, Any]]:
    """Flatten a run result into `[{type, content}]` messages.

    Text messages carry their segments as a list of strings. Refusals and any
    other item kinds keep their own type so callers can tell them apart.
    """
    messages: list[dict[str, Any]] = []
    for item in getattr(result, "new_items", None) or []:
        if isinstance(item, MessageOutputItem):
            parts = list(item.raw_item.content or [])
            if parts and all(getattr(p, "type", None) == "output_text" for p in parts):
                messages.append({"type": "text", "content": [p.text for p in parts]})
            else:
                first = parts[0] if parts else None
                messages.append(
                    {
                        "type": getattr(first, "type", "empty"),
                        "content": getattr(first, "refusal", None),
                    }
                )
        else:
            messages.append({"type": getattr(item, "type", "unknown"), "content": None})
    return messages


def parse_agent_output(messages: list[dict[str, Any]], fallback: str) -> str:
    """Normalize generator output into plain text.

    A non-text first message yields the fallback, a list of text segments is
    concatenated, anything else is returned as is.
    """
    if not messages or messages[0].get("type") != "text":
        return fallback
    content = messages[0].get("content")
    if isinstance(content, list):
        return "".join(str(c) for c in content)
    return content

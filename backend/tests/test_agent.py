import pytest
from agents import RunContextWrapper
from agents.items import MessageOutputItem
from openai.types.responses import ResponseOutputMessage, ResponseOutputRefusal

from code_agent.agent.agent import (
    FRAGMENT_TITLE_FALLBACK,
    RESPONSE_FALLBACK,
    create_code_agent,
    create_fragment_title_generator,
    output_messages,
    parse_agent_output,
)
from code_agent.agent.context import RunState
from conftest import FakeRunResult, text_item


class TestParseAgentOutput:
    def test_plain_string_content(self):
        messages = [{"type": "text", "content": "Hello World Page"}]
        assert parse_agent_output(messages, FRAGMENT_TITLE_FALLBACK) == "Hello World Page"

    def test_segments_are_concatenated(self):
        messages = [{"type": "text", "content": ["Hello ", "World ", "Page"]}]
        assert parse_agent_output(messages, FRAGMENT_TITLE_FALLBACK) == "Hello World Page"

    def test_non_text_first_message_uses_fallback(self):
        messages = [
            {"type": "tool_call_item", "content": None},
            {"type": "text", "content": "ignored"},
        ]
        assert parse_agent_output(messages, FRAGMENT_TITLE_FALLBACK) == "Fragment"
        assert parse_agent_output(messages, RESPONSE_FALLBACK) == "Here you go"

    def test_empty_output_uses_fallback(self):
        assert parse_agent_output([], RESPONSE_FALLBACK) == "Here you go"


class TestOutputMessages:
    def test_text_segments_from_run_result(self):
        agent = create_fragment_title_generator()
        result = FakeRunResult("summary", [text_item(agent, "Landing ", "Page")], "Landing Page")

        messages = output_messages(result)

        assert messages == [{"type": "text", "content": ["Landing ", "Page"]}]
        assert parse_agent_output(messages, FRAGMENT_TITLE_FALLBACK) == "Landing Page"

    def test_refusal_is_not_text(self):
        agent = create_fragment_title_generator()
        refusal = MessageOutputItem(
            agent=agent,
            raw_item=ResponseOutputMessage(
                id="msg_refusal",
                content=[ResponseOutputRefusal(refusal="I can't help", type="refusal")],
                role="assistant",
                status="completed",
                type="message",
            ),
        )

        messages = output_messages(FakeRunResult("summary", [refusal], None))

        assert messages[0]["type"] == "refusal"
        assert parse_agent_output(messages, FRAGMENT_TITLE_FALLBACK) == "Fragment"


class TestRunStateSummary:
    def test_marker_sets_summary(self):
        state = RunState()
        assert state.record_summary("Built it <task_summary>page</task_summary>")
        assert state.summary == "Built it <task_summary>page</task_summary>"

    def test_text_without_marker_is_ignored(self):
        state = RunState()
        assert not state.record_summary("Still working on it")
        assert state.summary is None

    def test_first_summary_wins(self):
        state = RunState()
        state.record_summary("<task_summary>first</task_summary>")
        state.record_summary("<task_summary>second</task_summary>")
        assert state.summary == "<task_summary>first</task_summary>"


class TestCodeAgent:
    def test_code_agent_configuration(self):
        agent = create_code_agent()
        assert agent.name == "code-agent"
        assert sorted(t.name for t in agent.tools) == [
            "createOrUpdateFiles",
            "readFiles",
            "terminal",
        ]

    def test_model_override_goes_through_gateway(self):
        agent = create_code_agent("openai/gpt-5")
        assert agent.model == "litellm/vercel_ai_gateway/openai/gpt-5"

    @pytest.mark.asyncio
    async def test_on_end_hook_records_summary(self, context):
        agent = create_code_agent()
        wrapper = RunContextWrapper(context=context)

        await agent.hooks.on_end(wrapper, agent, "Thinking...")
        assert context.state.summary is None

        await agent.hooks.on_end(wrapper, agent, "Done <task_summary>x</task_summary>")
        assert context.state.summary == "Done <task_summary>x</task_summary>"

import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from agents import Agent, Runner
from agents.exceptions import MaxTurnsExceeded

from code_agent import config
from code_agent.agent.context import CodeAgentContext, RunState


logger = logging.getLogger("code_agent.agent.network")


class NetworkStatus(str, enum.Enum):
    RUNNING = "running"
    DONE = "done"
    EXHAUSTED = "exhausted"


@dataclass
class NetworkResult:
    state: RunState
    iterations: int
    status: NetworkStatus


# (network, context) -> next agent, or None to stop
Router = Callable[["Network", CodeAgentContext], Any]
# (agent, input, context) -> run result exposing to_input_list()
AgentRunner = Callable[[Agent, Any, Any], Awaitable[Any]]


async def run_agent(agent: Agent, input: Any, context: Any) -> Any:
    return await Runner.run(
        agent, input=input, context=context, max_turns=config.AGENT_MAX_TURNS
    )


def summary_router(agent: Agent) -> Router:
    """Route to `agent` until the run has a summary."""

    def route(network: "Network", context: CodeAgentContext) -> Agent | None:
        if context.state.summary:
            return None
        return agent

    return route


class Network:
    """Repeatedly hand the conversation to the agent picked by the router.

    Each iteration is one agent run: any number of sequential tool calls
    followed by a text response. The loop stops when the router returns
    None or after `max_iter` iterations.
    """

    def __init__(
        self,
        name: str,
        agents: list[Agent],
        router: Router,
        max_iter: int = config.AGENT_MAX_ITER,
        runner: AgentRunner = run_agent,
    ) -> None:
        self.name = name
        self.agents = agents
        self.router = router
        self.max_iter = max_iter
        self.runner = runner

    async def _route(self, context: CodeAgentContext) -> Agent | None:
        next_agent = self.router(self, context)
        if inspect.isawaitable(next_agent):
            next_agent = await next_agent
        return next_agent

    async def run(self, input: str, context: CodeAgentContext) -> NetworkResult:
        history: Any = input
        iterations = 0
        while iterations < self.max_iter:
            agent = await self._route(context)
            if agent is None:
                break
            iterations += 1
            logger.info("%s iteration %d/%d: %s", self.name, iterations, self.max_iter, agent.name)
            try:
                result = await self.runner(agent, history, context)
            except MaxTurnsExceeded as e:
                logger.warning("%s iteration %d ran out of turns: %s", self.name, iterations, e)
                continue
            history = result.to_input_list()

        if context.state.summary:
            status = NetworkStatus.DONE
        elif iterations >= self.max_iter:
            status = NetworkStatus.EXHAUSTED
        else:
            status = NetworkStatus.RUNNING
        logger.info("%s finished after %d iteration(s): %s", self.name, iterations, status.value)
        return NetworkResult(state=context.state, iterations=iterations, status=status)

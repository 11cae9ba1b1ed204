from code_agent.agent.context import CodeAgentContext, RunInput, RunState

__all__ = ["CodeAgentContext", "RunInput", "RunState"]

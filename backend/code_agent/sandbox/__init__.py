from code_agent.sandbox.client import CommandResult, SandboxClient, SandboxHandle

__all__ = ["CommandResult", "SandboxClient", "SandboxHandle"]

import os
import logging

from dotenv import load_dotenv
from openai import AsyncOpenAI
from agents import (
    set_default_openai_client,
    set_default_openai_api,
    set_tracing_disabled,
)

current_dir = os.path.dirname(os.path.abspath(__file__))
root_dir = os.path.dirname(current_dir)
# Load env from backend/.env first, then fallback to code_agent/.env without overriding
load_dotenv(os.path.join(root_dir, ".env"), override=False)
load_dotenv(os.path.join(current_dir, ".env"), override=False)


logger = logging.getLogger("code_agent.config")


DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./code_agent.db")

DEFAULT_MODEL: str = os.getenv("DEFAULT_MODEL", "gpt-4.1")

# Sandbox template: runtime image, exposed preview port and optional git source
SANDBOX_RUNTIME: str = os.getenv("SANDBOX_RUNTIME", "node22")
SANDBOX_TEMPLATE_REPO: str | None = os.getenv("SANDBOX_TEMPLATE_REPO") or None
SANDBOX_PORT: int = int(os.getenv("SANDBOX_PORT", "3000"))
SANDBOX_TIMEOUT_MS: int = int(os.getenv("SANDBOX_TIMEOUT_MS", "600000"))
# Run once when a sandbox is created; the dev server is left running
SANDBOX_INSTALL_COMMAND: str = os.getenv("SANDBOX_INSTALL_COMMAND", "npm install --loglevel info")
SANDBOX_DEV_COMMAND: str = os.getenv(
    "SANDBOX_DEV_COMMAND", "npm run dev -- --port {port} --hostname 0.0.0.0"
)

AGENT_MAX_ITER: int = int(os.getenv("AGENT_MAX_ITER", "10"))
AGENT_MAX_TURNS: int = int(os.getenv("AGENT_MAX_TURNS", "10"))

RUN_STORE_NAMESPACE: str = os.getenv("RUN_STORE_NAMESPACE", "code-agent-runs")
RUN_STORE_TTL_SECONDS: int = int(os.getenv("RUN_STORE_TTL_SECONDS", "86400"))

STEP_MAX_ATTEMPTS: int = int(os.getenv("STEP_MAX_ATTEMPTS", "3"))
STEP_BACKOFF_SECONDS: float = float(os.getenv("STEP_BACKOFF_SECONDS", "0.25"))

# Models selectable per request, as AI Gateway ids
ALLOWED_MODELS: list[str] = [
    "openai/gpt-4.1",
    "openai/gpt-4.1-mini",
    "openai/gpt-5",
    "openai/gpt-5-mini",
]

GATEWAY_BASE_URL: str = (
    os.getenv("AI_GATEWAY_BASE_URL")
    or os.getenv("OPENAI_BASE_URL")
    or "https://ai-gateway.vercel.sh/v1"
)


def gateway_api_key() -> str | None:
    return os.getenv("AI_GATEWAY_API_KEY") or os.getenv("VERCEL_OIDC_TOKEN")


def configure_openai() -> None:
    """OpenAI-only configuration (Gateway or OpenAI API).

    We support either:
    - AI Gateway: provide AI_GATEWAY_API_KEY or VERCEL_OIDC_TOKEN.
    - OpenAI: provide OPENAI_API_KEY (and optionally OPENAI_BASE_URL).
    """
    gateway_key = gateway_api_key()
    if gateway_key:
        client = AsyncOpenAI(api_key=gateway_key, base_url=GATEWAY_BASE_URL)
        logger.info("Using AI Gateway at %s", GATEWAY_BASE_URL)
    elif not os.getenv("OPENAI_API_KEY"):
        logger.warning("No model credentials configured; agent runs will fail")
        return
    else:
        client = AsyncOpenAI(
            api_key=os.getenv("OPENAI_API_KEY"),
            base_url=os.getenv("OPENAI_BASE_URL") or None,
        )
    set_default_openai_client(client, use_for_tracing=False)
    set_default_openai_api("chat_completions")
    if not os.getenv("OPENAI_API_KEY"):
        set_tracing_disabled(True)

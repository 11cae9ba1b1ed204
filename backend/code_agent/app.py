import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from code_agent import config
from code_agent.agent.network import AgentRunner, run_agent
from code_agent.api import projects, runs
from code_agent.db import session as db_session
from code_agent.events import EventClient
from code_agent.functions import register_functions
from code_agent.run_store import RunStore
from code_agent.sandbox import SandboxClient


# Basic logger for server diagnostics (inherits uvicorn handlers)
logger = logging.getLogger("code_agent")
if not logger.handlers:
    logger.setLevel(logging.INFO)


def create_app(
    store: RunStore | None = None,
    sandbox: SandboxClient | None = None,
    session_factory=None,
    runner: AgentRunner = run_agent,
    init_db: bool = True,
) -> FastAPI:
    """Build the API app and register the event functions it dispatches to."""
    session_factory = session_factory or db_session.SessionLocal
    events = EventClient(store=store or RunStore())
    register_functions(events, sandbox or SandboxClient(), session_factory, runner)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if runner is run_agent:
            config.configure_openai()
        if init_db:
            await db_session.init_db()
        yield
        await events.wait()
        await db_session.engine.dispose()

    app = FastAPI(title="Code Agent", lifespan=lifespan)
    app.state.events = events

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(projects.router)
    app.include_router(runs.router)

    @app.get("/")
    def read_root():
        return {"Hello": "Code Agent"}

    return app

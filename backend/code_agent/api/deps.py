from fastapi import Request

from code_agent.events import EventClient


def get_event_client(request: Request) -> EventClient:
    return request.app.state.events

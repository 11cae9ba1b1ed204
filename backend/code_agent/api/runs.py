import logging
from typing import Any

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from code_agent import config
from code_agent.api.deps import get_event_client
from code_agent.api.schemas import EventRequest
from code_agent.events import EventClient


logger = logging.getLogger("code_agent.api.runs")


router = APIRouter(prefix="/api", tags=["runs"])


@router.post("/events")
async def send_event(
    request: EventRequest, events: EventClient = Depends(get_event_client)
) -> dict[str, Any]:
    """Trigger the function registered for an event and return the run id."""
    try:
        run_id = await events.send(request.name, request.data)
    except ValueError as e:
        # ValidationError is a ValueError; surface payload problems as 422
        if isinstance(e, ValidationError):
            raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
        raise HTTPException(status_code=400, detail=str(e))
    return {"run_id": run_id}


@router.get("/runs/{run_id}")
async def get_run(
    run_id: str, events: EventClient = Depends(get_event_client)
) -> dict[str, Any]:
    record = await events.store.get_run(run_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    return record


async def _gateway_model_ids(api_key: str) -> set[str]:
    url = f"{config.GATEWAY_BASE_URL.rstrip('/')}/models"
    async with httpx.AsyncClient(timeout=15.0) as client:
        resp = await client.get(url, headers={"Authorization": f"Bearer {api_key}"})
        resp.raise_for_status()
        return {str(m["id"]) for m in resp.json().get("data") or [] if m.get("id")}


@router.get("/models")
async def list_models() -> dict[str, Any]:
    """Models a request may pass as `model` when starting a run.

    With a gateway key the allowlist is narrowed to what the gateway serves.
    """
    api_key = config.gateway_api_key()
    if not api_key:
        return {"models": list(config.ALLOWED_MODELS)}
    try:
        available = await _gateway_model_ids(api_key)
    except httpx.HTTPError as e:
        logger.warning("Gateway model listing failed: %s", e)
        return {"models": list(config.ALLOWED_MODELS)}
    return {"models": [m for m in config.ALLOWED_MODELS if m in available] or list(config.ALLOWED_MODELS)}

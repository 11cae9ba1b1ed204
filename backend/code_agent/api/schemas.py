from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from code_agent import config
from code_agent.db.models import MessageRole, MessageType


class ValueRequest(BaseModel):
    """Payload carrying the user's prompt text."""

    value: str = Field(..., min_length=1, max_length=10_000)
    model: str | None = None

    @field_validator("model")
    @classmethod
    def check_model(cls, v: str | None) -> str | None:
        if v is not None and v not in config.ALLOWED_MODELS:
            raise ValueError(f"Unsupported model: {v}")
        return v


class FragmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    sandbox_url: str
    title: str
    files: dict[str, Any]
    created_at: datetime


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    content: str
    role: MessageRole
    type: MessageType
    created_at: datetime
    fragment: FragmentOut | None = None


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    created_at: datetime
    updated_at: datetime


class EventRequest(BaseModel):
    name: str
    data: dict[str, Any] = Field(default_factory=dict)

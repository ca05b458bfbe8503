"""Conversation data types."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]
DialogueMode = Literal["chat", "service"]

SERVICE_CATEGORIES = ("doctor", "lab", "pharmacy", "appointment", "other")
ACTION_TYPES = ("book_doctor", "book_lab", "order_medicine", "other")


def make_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex[:7]}"


class ServiceAction(BaseModel):
    """A side-effecting request that has not been executed yet."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="One of book_doctor, book_lab, order_medicine, other")
    params: dict[str, Any] = Field(default_factory=dict)


class SuggestedService(BaseModel):
    """A service the dialogue model offered alongside its reply."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: make_id("s_"))
    category: str = Field(default="other", alias="type")
    title: str
    description: str | None = None
    action_template: ServiceAction | None = Field(default=None, alias="actionTemplate")


class DialogueResult(BaseModel):
    """Structured dialogue model output, consumed once per turn."""

    model_config = ConfigDict(populate_by_name=True)

    reply: str = ""
    mode: DialogueMode = "chat"
    suggested_services: list[SuggestedService] = Field(default_factory=list, alias="suggestedServices")
    awaiting_confirmation: bool = Field(default=False, alias="awaitingConfirmation")
    action: ServiceAction | None = None

    @property
    def requests_confirmation(self) -> bool:
        return self.awaiting_confirmation and self.action is not None


@dataclass(frozen=True)
class Turn:
    """One message in the conversation log."""

    role: Role
    text: str
    id: str = field(default_factory=lambda: make_id("m_"))
    timestamp: float = field(default_factory=time.time)
    suggested_services: tuple[SuggestedService, ...] = ()

    def to_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.text}

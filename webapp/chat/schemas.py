"""Pydantic models for chat API requests and responses."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, TypeAdapter, field_validator


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1)


class ChatRequest(BaseModel):
    """Request body for asking the shopping assistant."""

    messages: list[ChatMessage] = Field(..., min_length=1)

    @field_validator("messages")
    @classmethod
    def _ends_with_user(cls, v: list[ChatMessage]) -> list[ChatMessage]:
        if v[-1].role != "user":
            raise ValueError("the last message must come from the user")
        return v


class ChatResponse(BaseModel):
    """Assistant reply."""

    reply: str
    function_calls: list[str] = []


history_adapter = TypeAdapter(list[ChatMessage])

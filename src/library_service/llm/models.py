"""LLM client data models (OpenAI-compatible chat completions format)."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LLMCompletionResult(BaseModel):
    """Raw completion text plus the token usage reported by the provider."""

    raw_response: str = Field(..., description="Raw text response from LLM")
    model: str = Field(..., description="Model that generated response")
    prompt_tokens: int | None = Field(default=None, description="Input token count")
    completion_tokens: int | None = Field(
        default=None, description="Output token count"
    )

    model_config = {"frozen": True}


class ChatMessage(BaseModel):
    role: str = Field(..., description="Message role: system, user, or assistant")
    content: str = Field(..., description="Message content")


class ChatRequest(BaseModel):
    """Request body for ``/chat/completions``."""

    model: str = Field(..., description="Model name (e.g., 'gpt-4o-mini')")
    messages: list[ChatMessage] = Field(..., description="Chat messages")
    response_format: dict[str, str] | None = Field(
        default=None,
        description="Response format: {'type': 'json_object'} for JSON mode",
    )
    temperature: float = Field(default=0.7, description="Sampling temperature")
    max_tokens: int | None = Field(default=None, description="Maximum tokens to generate")


class ChatUsage(BaseModel):
    prompt_tokens: int = Field(..., description="Input token count")
    completion_tokens: int = Field(..., description="Output token count")
    total_tokens: int = Field(default=0, description="Total token count")


class ChatChoice(BaseModel):
    index: int = Field(default=0, description="Choice index")
    message: ChatMessage = Field(..., description="Generated message")
    finish_reason: str | None = Field(default=None, description="Reason for completion")


class ChatResponse(BaseModel):
    """Response from ``/chat/completions``."""

    id: str = Field(default="", description="Unique response ID")
    model: str = Field(..., description="Model that generated response")
    choices: list[ChatChoice] = Field(..., min_length=1, description="Completions")
    usage: ChatUsage | None = Field(default=None, description="Token usage statistics")

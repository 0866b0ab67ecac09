"""LLM client implementations."""

from library_service.llm.client.openai import OpenAIClient
from library_service.llm.client.protocol import LLMClientProtocol


__all__ = ["LLMClientProtocol", "OpenAIClient"]

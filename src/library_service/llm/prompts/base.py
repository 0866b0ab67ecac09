"""Base class for LLM prompts.

A prompt owns its whole contract with the model: the instructions, the
generation options, and how the reply is normalized and validated.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from itertools import cycle, islice
from typing import Any, ClassVar

import orjson
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from library_service.llm.exceptions import LLMValidationError
from library_service.services.library.constants import SURVEILLANCE_PATTERNS


class OutputModel(BaseModel):
    """Base for output schemas: camelCase on the wire, whitespace trimmed."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        serialize_by_alias=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


def fit_list(items: list[Any], size: int) -> list[Any]:
    """Truncate to ``size`` or pad by cycling the existing items.

    An empty list is returned unchanged so that validation rejects it.
    """
    if not items:
        return items
    return list(islice(cycle(items), size))


def iter_strings(value: Any) -> list[str]:
    """Collect every string inside nested dicts and lists."""
    if isinstance(value, str):
        return [value]
    if isinstance(value, dict):
        return [s for item in value.values() for s in iter_strings(item)]
    if isinstance(value, list):
        return [s for item in value for s in iter_strings(item)]
    return []


def find_surveillance_language(value: Any) -> list[str]:
    """Return phrases implying the person's social media was observed."""
    text = " ".join(iter_strings(value))
    return [m.group(0) for p in SURVEILLANCE_PATTERNS if (m := p.search(text))]


class BasePrompt[T: BaseModel](ABC):
    """Base class for all LLM prompts.

    Example:
        ```python
        class ChartNarrativePrompt(BasePrompt[ChartNarrative]):
            output_schema = ChartNarrative
            system_prompt = "You are an astrologer."

            def format(self, **kwargs):
                return f"Chart: {kwargs['geometry']}"
        ```
    """

    output_schema: ClassVar[type[BaseModel]]
    """Pydantic model the normalized reply must satisfy."""

    system_prompt: ClassVar[str | None] = None

    temperature: ClassVar[float] = 0.7

    max_tokens: ClassVar[int | None] = None
    """Maximum tokens to generate (None = model default)."""

    @abstractmethod
    def format(self, **kwargs: Any) -> str:
        """Format the prompt template with input variables.

        Raises:
            ValueError: If required variables are missing.
        """
        ...

    @property
    def name(self) -> str:
        """Prompt identifier for logging."""
        return self.__class__.__name__

    def get_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"temperature": self.temperature}
        if self.max_tokens is not None:
            options["max_tokens"] = self.max_tokens
        return options

    def normalize(self, data: dict[str, Any]) -> dict[str, Any]:
        """Adjust list cardinality before validation. Default: no change."""
        return data

    def parse_response(self, raw_response: str) -> T:
        """Decode, normalize and validate a completion.

        Raises:
            LLMValidationError: If the reply is not JSON, fails the output
                schema, or uses surveillance language.
        """
        try:
            data = orjson.loads(raw_response)
        except orjson.JSONDecodeError as e:
            msg = f"{self.name}: response is not valid JSON"
            raise LLMValidationError(msg) from e
        if not isinstance(data, dict):
            msg = f"{self.name}: response is not a JSON object"
            raise LLMValidationError(msg)

        try:
            parsed = self.output_schema.model_validate(self.normalize(data))
        except ValidationError as e:
            msg = f"{self.name}: {e.error_count()} schema violation(s)"
            raise LLMValidationError(msg) from e

        banned = find_surveillance_language(parsed.model_dump())
        if banned:
            msg = f"{self.name}: surveillance language in output"
            raise LLMValidationError(msg)
        return parsed  # type: ignore[return-value]

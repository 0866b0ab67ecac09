"""Token pricing for LLM cost accounting."""

from __future__ import annotations

import re
from typing import Final, NamedTuple

from library_service.observability.logging import get_logger


logger = get_logger(__name__)


class ModelPrice(NamedTuple):
    """USD per one million tokens."""

    input_per_million: float
    output_per_million: float


MODEL_PRICES: Final[dict[str, ModelPrice]] = {
    "gpt-4o-mini": ModelPrice(0.15, 0.60),
    "gpt-4o": ModelPrice(2.50, 10.00),
    "gpt-4.1-mini": ModelPrice(0.40, 1.60),
    "gpt-5.1": ModelPrice(1.25, 10.00),
    "gpt-5.2": ModelPrice(1.75, 14.00),
}

# gpt-4o-mini-2024-07-18 -> gpt-4o-mini
_DATE_SUFFIX = re.compile(r"-\d{4}-\d{2}-\d{2}$")


def resolve_price(model: str) -> ModelPrice | None:
    """Find the price entry for a model id, ignoring a dated version suffix."""
    if model in MODEL_PRICES:
        return MODEL_PRICES[model]
    return MODEL_PRICES.get(_DATE_SUFFIX.sub("", model))


def estimate_cost_usd(model: str, input_tokens: int, output_tokens: int) -> float:
    """Cost of one call. Unknown models cost 0 and log a warning."""
    price = resolve_price(model)
    if price is None:
        logger.warning("No pricing for model, cost recorded as 0", model=model)
        return 0.0
    return (
        input_tokens * price.input_per_million
        + output_tokens * price.output_per_million
    ) / 1_000_000

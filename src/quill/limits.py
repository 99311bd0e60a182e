"""Model context limits, looked up by model name."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelLimits:
    """Token budgets for a model."""

    context: int  # whole exchange
    output: int  # reserved for the reply
    input: int | None = None


DEFAULT_MODEL_LIMITS = ModelLimits(context=8192, output=4096)

# Matched in order against the lowercased model name.
MODEL_LIMITS: dict[str, ModelLimits] = {
    "glm-4.7-coding": ModelLimits(context=128000, output=4096),
    "glm-4.7": ModelLimits(context=128000, output=4096),
}

_registered_limits: dict[str, ModelLimits] = {}


def register_model_limits(pattern: str, limits: ModelLimits) -> None:
    """Register limits for model names containing ``pattern``.

    Registered patterns are matched before the built-in table.
    """
    _registered_limits[pattern.lower()] = limits


def unregister_model_limits(pattern: str) -> None:
    _registered_limits.pop(pattern.lower(), None)


def get_model_limits(model_name: str) -> ModelLimits:
    """Get limits by case-insensitive substring match, first match wins."""
    name = (model_name or "").lower()
    for table in (_registered_limits, MODEL_LIMITS):
        for pattern, limits in table.items():
            if pattern in name:
                return limits
    return DEFAULT_MODEL_LIMITS

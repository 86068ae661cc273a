# src/antigravity_adapter/translation/generation_config.py
"""Client sampling parameters → Antigravity generationConfig."""

import logging
from typing import Any, Dict, Optional

from ..config import GenerationDefaults
from ..constants import REASONING_EFFORT_BUDGETS, STOP_SEQUENCES
from ..model_policy import ModelPolicy

lib_logger = logging.getLogger("antigravity_adapter")


def _first_set(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def resolve_thinking_budget(
    parameters: Dict[str, Any], thinking_enabled: bool, default_budget: Optional[int]
) -> int:
    """
    Pick the thinking budget.

    Priority: thinking_budget → reasoning_effort → configured default.
    Always 0 when thinking is disabled: the upstream rejects a non-zero
    budget once includeThoughts is false.
    """
    if not thinking_enabled:
        return 0

    default = default_budget if default_budget is not None else 16000

    if parameters.get("thinking_budget") is not None:
        return parameters["thinking_budget"]

    effort = parameters.get("reasoning_effort")
    if effort is not None:
        budget = REASONING_EFFORT_BUDGETS.get(effort)
        if budget is None:
            lib_logger.debug(f"Unknown reasoning_effort '{effort}', using default budget")
            return default
        return budget

    return default


def build_generation_config(
    parameters: Optional[Dict[str, Any]],
    policy: ModelPolicy,
    defaults: Optional[GenerationDefaults] = None,
) -> Dict[str, Any]:
    """
    Build generationConfig for one request.

    Each field resolves client value → configured default (`defaults`, a
    GenerationDefaults) → hard-coded fallback. topP is removed entirely when
    thinking is on for a model family that rejects it.
    """
    parameters = parameters or {}
    defaults = defaults or GenerationDefaults()
    fallback = GenerationDefaults()

    generation_config = {
        "topP": _first_set(parameters.get("top_p"), defaults.top_p, fallback.top_p),
        "topK": _first_set(parameters.get("top_k"), defaults.top_k, fallback.top_k),
        "temperature": _first_set(
            parameters.get("temperature"), defaults.temperature, fallback.temperature
        ),
        "candidateCount": 1,
        "maxOutputTokens": _first_set(
            parameters.get("max_tokens"),
            parameters.get("max_completion_tokens"),
            defaults.max_tokens,
            fallback.max_tokens,
        ),
        "stopSequences": list(STOP_SEQUENCES),
        "thinkingConfig": {
            "includeThoughts": policy.thinking_enabled,
            "thinkingBudget": resolve_thinking_budget(
                parameters,
                policy.thinking_enabled,
                _first_set(defaults.thinking_budget, fallback.thinking_budget),
            ),
        },
    }

    if policy.thinking_enabled and policy.rejects_top_p_when_thinking:
        del generation_config["topP"]

    return generation_config

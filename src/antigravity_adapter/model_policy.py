# src/antigravity_adapter/model_policy.py
"""Client model id → (upstream model id, thinking enabled)."""

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from .constants import (
    MODEL_ALIAS_MAP,
    PROVIDER_PREFIX,
    THINKING_MODEL_PREFIXES,
    THINKING_MODEL_SUFFIX,
    THINKING_MODELS,
    TOP_P_INCOMPATIBLE_FAMILIES,
)


@dataclass(frozen=True)
class ModelPolicy:
    client_model: str
    upstream_model: str
    thinking_enabled: bool

    @property
    def rejects_top_p_when_thinking(self) -> bool:
        return any(family in self.upstream_model for family in TOP_P_INCOMPATIBLE_FAMILIES)


class ModelPolicyResolver:
    """
    Pure lookup over two data tables.

    Thinking is decided on the client-facing id (before aliasing), so
    "claude-sonnet-4-5-thinking" enables thinking even though it is sent
    upstream as "claude-sonnet-4-5". Unknown ids pass through unchanged;
    rejecting them is the upstream's call.
    """

    def __init__(
        self,
        aliases: Optional[Mapping[str, str]] = None,
        thinking_models: Optional[Iterable[str]] = None,
        thinking_suffix: str = THINKING_MODEL_SUFFIX,
        thinking_prefixes: Iterable[str] = THINKING_MODEL_PREFIXES,
    ):
        self.aliases = dict(MODEL_ALIAS_MAP if aliases is None else aliases)
        self.thinking_models = frozenset(
            THINKING_MODELS if thinking_models is None else thinking_models
        )
        self.thinking_suffix = thinking_suffix
        self.thinking_prefixes = tuple(thinking_prefixes)

    @staticmethod
    def strip_provider_prefix(model: str) -> str:
        if model.startswith(PROVIDER_PREFIX):
            return model[len(PROVIDER_PREFIX) :]
        return model

    def is_thinking(self, model: str) -> bool:
        return (
            model.endswith(self.thinking_suffix)
            or model in self.thinking_models
            or model.startswith(self.thinking_prefixes)
        )

    def upstream_id(self, model: str) -> str:
        return self.aliases.get(model, model)

    def resolve(self, model: str) -> ModelPolicy:
        client_model = self.strip_provider_prefix(model or "")
        return ModelPolicy(
            client_model=client_model,
            upstream_model=self.upstream_id(client_model),
            thinking_enabled=self.is_thinking(client_model),
        )


default_resolver = ModelPolicyResolver()


def resolve_model(model: str) -> ModelPolicy:
    return default_resolver.resolve(model)

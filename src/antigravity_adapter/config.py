# src/antigravity_adapter/config.py
"""
Adapter configuration.

Sources, lowest to highest precedence:
1. Hard-coded defaults (constants.py)
2. config.yaml in the data root (structured settings)
3. Environment variables, after loading .env from the data root

The adapter never writes configuration back to disk.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Union

import yaml
from dotenv import load_dotenv

from .constants import (
    DEFAULT_BASE_URLS,
    DEFAULT_GENERATION_PARAMS,
    DEFAULT_HTTP_USER_AGENT,
    MODEL_ALIAS_MAP,
    REQUEST_USER_AGENT,
    THINKING_MODELS,
)
from .error_handler import ConfigLoadError
from .signature_cache import SignaturePolicy
from .utils.paths import get_data_file

lib_logger = logging.getLogger("antigravity_adapter")

DEFAULT_SYSTEM_INSTRUCTION = ""

PROXY_ENV_VARS = (
    "HTTPS_PROXY",
    "https_proxy",
    "HTTP_PROXY",
    "http_proxy",
    "ALL_PROXY",
    "all_proxy",
)


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    return os.getenv(key, str(default).lower()).lower() in ("true", "1", "yes")


def _env_int(key: str, default: int) -> int:
    """Get integer from environment variable."""
    return int(os.getenv(key, str(default)))


def _process_escape_chars(value: Optional[str]) -> Optional[str]:
    """Turn literal '\\n' sequences from .env values into real newlines."""
    if not value:
        return value
    return value.replace("\\\\n", "\n").replace("\\n", "\n")


@dataclass
class ApiSettings:
    base_urls: List[str] = field(default_factory=lambda: list(DEFAULT_BASE_URLS))
    user_agent: str = DEFAULT_HTTP_USER_AGENT
    request_user_agent: str = REQUEST_USER_AGENT


@dataclass
class GenerationDefaults:
    temperature: float = DEFAULT_GENERATION_PARAMS["temperature"]
    top_p: float = DEFAULT_GENERATION_PARAMS["top_p"]
    top_k: int = DEFAULT_GENERATION_PARAMS["top_k"]
    max_tokens: int = DEFAULT_GENERATION_PARAMS["max_tokens"]
    thinking_budget: int = DEFAULT_GENERATION_PARAMS["thinking_budget"]


@dataclass
class AdapterConfig:
    api: ApiSettings = field(default_factory=ApiSettings)
    defaults: GenerationDefaults = field(default_factory=GenerationDefaults)
    signatures: SignaturePolicy = field(default_factory=SignaturePolicy)
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION
    official_system_prompt: str = ""
    # 'before' puts the official prompt ahead of system_instruction
    official_prompt_position: str = "before"
    merge_system_prompt: bool = True
    proxy: Optional[str] = None
    timeout: Optional[float] = None
    empty_response_attempts: int = 3
    empty_response_retry_delay: float = 1.0
    max_conversations: int = 1024
    debug_dump_request_response: bool = False
    model_aliases: Dict[str, str] = field(default_factory=lambda: dict(MODEL_ALIAS_MAP))
    thinking_models: FrozenSet[str] = THINKING_MODELS


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigLoadError(f"Failed to load {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigLoadError(f"{path} must contain a mapping at the top level")
    return data


def get_proxy_config() -> Optional[str]:
    """Explicit PROXY wins; otherwise fall back to the system proxy variables."""
    proxy = os.getenv("PROXY")
    if proxy:
        return proxy
    for key in PROXY_ENV_VARS:
        value = os.getenv(key)
        if value:
            lib_logger.info(f"Using system proxy from {key}: {value}")
            return value
    return None


def build_config(data: Dict[str, Any]) -> AdapterConfig:
    """
    Build an AdapterConfig from a parsed config.yaml mapping plus the environment.

    Expected YAML layout (every key optional):

        api: {base_urls: [...], user_agent: ...}
        defaults: {temperature, top_p, top_k, max_tokens, thinking_budget}
        signatures: {cache_all, cache_tool, cache_image, cache_thinking,
                     pass_to_client, use_fallback}
        models: {aliases: {client: upstream}, thinking: [ids]}
        other: {official_prompt_position, merge_system_prompt, timeout,
                empty_response_attempts, max_conversations}
    """
    api_data = data.get("api") or {}
    defaults_data = data.get("defaults") or {}
    sig_data = data.get("signatures") or {}
    models_data = data.get("models") or {}
    other = data.get("other") or {}

    fallback = GenerationDefaults()
    defaults = GenerationDefaults(
        temperature=defaults_data.get("temperature", fallback.temperature),
        top_p=defaults_data.get("top_p", fallback.top_p),
        top_k=defaults_data.get("top_k", fallback.top_k),
        max_tokens=defaults_data.get("max_tokens", fallback.max_tokens),
        thinking_budget=defaults_data.get("thinking_budget", fallback.thinking_budget),
    )

    api = ApiSettings(
        base_urls=list(api_data.get("base_urls") or DEFAULT_BASE_URLS),
        user_agent=api_data.get("user_agent") or DEFAULT_HTTP_USER_AGENT,
    )

    signatures = SignaturePolicy(
        cache_all=sig_data.get("cache_all", False)
        or _env_bool("CACHE_ALL_SIGNATURES", False),
        cache_tool=sig_data.get("cache_tool", True),
        cache_image=sig_data.get("cache_image", True),
        cache_thinking=sig_data.get("cache_thinking", True),
        pass_to_client=_env_bool(
            "ANTIGRAVITY_PASS_SIGNATURE_TO_CLIENT",
            sig_data.get("pass_to_client", False),
        ),
        use_fallback=_env_bool(
            "ANTIGRAVITY_USE_FALLBACK_SIGNATURE", sig_data.get("use_fallback", True)
        ),
    )

    aliases = dict(MODEL_ALIAS_MAP)
    aliases.update(models_data.get("aliases") or {})
    thinking_models = frozenset(THINKING_MODELS | set(models_data.get("thinking") or []))

    position = other.get("official_prompt_position", "before")
    if position not in ("before", "after"):
        lib_logger.warning(
            f"Unknown official_prompt_position '{position}', using 'before'"
        )
        position = "before"

    return AdapterConfig(
        api=api,
        defaults=defaults,
        signatures=signatures,
        system_instruction=_process_escape_chars(os.getenv("SYSTEM_INSTRUCTION"))
        or DEFAULT_SYSTEM_INSTRUCTION,
        official_system_prompt=_process_escape_chars(os.getenv("OFFICIAL_SYSTEM_PROMPT"))
        or "",
        official_prompt_position=position,
        merge_system_prompt=other.get("merge_system_prompt", True) is not False,
        proxy=get_proxy_config(),
        timeout=other.get("timeout"),
        empty_response_attempts=max(
            1,
            _env_int(
                "ANTIGRAVITY_EMPTY_RESPONSE_ATTEMPTS",
                other.get("empty_response_attempts", 3),
            ),
        ),
        max_conversations=other.get("max_conversations", 1024),
        debug_dump_request_response=other.get("debug_dump_request_response", False)
        is True
        or _env_bool("DEBUG_DUMP_REQUEST_RESPONSE", False),
        model_aliases=aliases,
        thinking_models=thinking_models,
    )


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    env_path: Optional[Union[str, Path]] = None,
) -> AdapterConfig:
    """
    Load .env and config.yaml from the data root and build the configuration.

    Missing files are fine; a malformed config.yaml raises ConfigLoadError.
    """
    env_file = Path(env_path) if env_path else get_data_file(".env")
    if env_file.exists():
        load_dotenv(env_file, override=False)

    yaml_file = Path(config_path) if config_path else get_data_file("config.yaml")
    config = build_config(_read_yaml(yaml_file))

    lib_logger.debug(
        f"Antigravity config: base_urls={config.api.base_urls}, "
        f"signatures={config.signatures}, proxy={'set' if config.proxy else 'none'}, "
        f"debug_dump={config.debug_dump_request_response}"
    )
    return config

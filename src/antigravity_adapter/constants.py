# src/antigravity_adapter/constants.py
"""
Wire-level constants for the Antigravity v1internal protocol.

Everything here is plain data. Behaviour that depends on these tables
(model policy, generation config, schema cleaning) lives in the modules
that consume them, so swapping a table never requires touching the
transcoder.
"""

# =============================================================================
# ENDPOINTS
# =============================================================================

# Antigravity base URLs with fallback order
# Priority: daily (sandbox) → production
DEFAULT_BASE_URLS = [
    "https://daily-cloudcode-pa.sandbox.googleapis.com/v1internal",
    "https://cloudcode-pa.googleapis.com/v1internal",  # Production fallback
]

STREAM_ENDPOINT = ":streamGenerateContent?alt=sse"
NON_STREAM_ENDPOINT = ":generateContent"

# HTTP header User-Agent
DEFAULT_HTTP_USER_AGENT = "antigravity/1.11.9 windows/amd64"
# V1InternalRequest.userAgent field
REQUEST_USER_AGENT = "antigravity"

# =============================================================================
# GENERATION DEFAULTS
# =============================================================================

# Hard-coded fallbacks used when neither the client nor configuration
# provides a value.
DEFAULT_GENERATION_PARAMS = {
    "temperature": 1.0,
    "top_p": 0.85,
    "top_k": 50,
    "max_tokens": 32000,
    "thinking_budget": 16000,
}

# reasoning_effort → thinkingBudget
REASONING_EFFORT_BUDGETS = {
    "low": 1024,
    "medium": 16000,
    "high": 32000,
}

STOP_SEQUENCES = [
    "<|user|>",
    "<|bot|>",
    "<|context_request|>",
    "<|endoftext|>",
    "<|end_of_turn|>",
]

# Upstream model families that reject topP while thinking is enabled
TOP_P_INCOMPATIBLE_FAMILIES = ("claude",)

# =============================================================================
# MODEL POLICY TABLES
# =============================================================================

# Client-facing id → upstream id. Ids absent from the table pass through.
MODEL_ALIAS_MAP = {
    "claude-sonnet-4-5-thinking": "claude-sonnet-4-5",
    "claude-opus-4-5": "claude-opus-4-5-thinking",
    "gemini-2.5-flash-thinking": "gemini-2.5-flash",
}

THINKING_MODEL_SUFFIX = "-thinking"

THINKING_MODELS = frozenset(
    {
        "gemini-2.5-pro",
        "rev19-uic3-1p",
        "gpt-oss-120b-medium",
    }
)

THINKING_MODEL_PREFIXES = ("gemini-3-pro-",)

PROVIDER_PREFIX = "antigravity/"

# =============================================================================
# TOOL SCHEMA
# =============================================================================

# JSON-Schema keywords the upstream rejects in function declarations
EXCLUDED_SCHEMA_KEYS = frozenset(
    {
        "$schema",
        "additionalProperties",
        "minLength",
        "maxLength",
        "minItems",
        "maxItems",
        "uniqueItems",
    }
)

DEFAULT_FUNCTION_CALLING_MODE = "VALIDATED"

# =============================================================================
# SIGNATURES
# =============================================================================

# Placeholder accepted by the upstream in lieu of a real thought signature
DUMMY_THOUGHT_SIGNATURE = "skip_thought_signature_validator"

# =============================================================================
# RESPONSE MAPPING
# =============================================================================

FINISH_REASON_MAP = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
    "OTHER": "stop",
}

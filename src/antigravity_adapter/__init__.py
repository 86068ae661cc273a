from typing import TYPE_CHECKING

from .config import AdapterConfig, load_config
from .error_handler import (
    AdapterError,
    ConfigLoadError,
    EmptyResponseError,
    UpstreamStatusError,
    UpstreamTransportError,
    classify_error,
)
from .model_policy import ModelPolicy, ModelPolicyResolver, resolve_model
from .signature_cache import (
    ConversationSignatures,
    SignatureCacheRegistry,
    SignaturePolicy,
)
from .translation import BoundCredential, build_request_body

# AntigravityClient pulls in litellm, which is slow to import.
# It is lazy-loaded via __getattr__; type checkers see it statically.
if TYPE_CHECKING:
    from .client import AntigravityClient

__version__ = "0.1.0"

__all__ = [
    "AdapterConfig",
    "load_config",
    "AdapterError",
    "ConfigLoadError",
    "EmptyResponseError",
    "UpstreamStatusError",
    "UpstreamTransportError",
    "classify_error",
    "ModelPolicy",
    "ModelPolicyResolver",
    "resolve_model",
    "ConversationSignatures",
    "SignatureCacheRegistry",
    "SignaturePolicy",
    "BoundCredential",
    "build_request_body",
    "AntigravityClient",
]


def __getattr__(name):
    """Lazy-load AntigravityClient to keep the translation layer import light."""
    if name == "AntigravityClient":
        from .client import AntigravityClient

        return AntigravityClient
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

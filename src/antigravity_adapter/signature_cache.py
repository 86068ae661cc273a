# src/antigravity_adapter/signature_cache.py
"""
Signature continuity cache.

Antigravity returns opaque `thoughtSignature` tokens alongside tool calls,
generated images and thinking blocks. The upstream does not keep that state
itself, so the next request in the same conversation must echo the token
back on the matching part. This module stores those tokens between
requests.

Ownership is conversation scoped: collaborators open a ConversationSignatures
context through the registry and discard it when the conversation ends.
Nothing is persisted and there is no TTL.
"""

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .constants import DUMMY_THOUGHT_SIGNATURE

lib_logger = logging.getLogger("antigravity_adapter")


class SignatureCategory(str, Enum):
    TOOL = "tool"
    IMAGE = "image"
    THINKING = "thinking"


@dataclass
class SignaturePolicy:
    """Caching and exposure flags, supplied by configuration."""

    cache_all: bool = False
    cache_tool: bool = True
    cache_image: bool = True
    cache_thinking: bool = True
    # Expose signatures to the client verbatim (they come back on the next turn)
    pass_to_client: bool = False
    # Substitute a placeholder when no real signature is available
    use_fallback: bool = True

    def caches(self, category: SignatureCategory) -> bool:
        if self.cache_all:
            return True
        if category is SignatureCategory.TOOL:
            return self.cache_tool
        if category is SignatureCategory.IMAGE:
            return self.cache_image
        return self.cache_thinking


def tool_key(call_id: str) -> str:
    return f"tool:{call_id}"


def image_key(turn: int, ordinal: int) -> str:
    return f"image:{turn}:{ordinal}"


def thinking_key(turn: int, ordinal: int) -> str:
    return f"thinking:{turn}:{ordinal}"


def text_key(turn: int, ordinal: int) -> str:
    return f"text:{turn}:{ordinal}"


def content_fingerprint(content: Optional[str]) -> Optional[str]:
    """
    Short hash of the content a signature was issued for.

    Positional keys (turn, ordinal) are only unique within one conversation;
    the fingerprint ties a token to what the model actually produced.
    """
    if not content or not content.strip():
        return None
    return hashlib.sha256(content.strip().encode("utf-8")).hexdigest()[:16]


@dataclass
class SignatureEntry:
    token: str
    category: SignatureCategory
    # Index of the model turn the token was observed on
    turn: int
    # content_fingerprint of the signed part, None for tool calls
    fingerprint: Optional[str] = None


class ConversationSignatures:
    """Signature store for a single conversation. Thread-safe."""

    def __init__(self, conversation_id: str, policy: Optional[SignaturePolicy] = None):
        self.conversation_id = conversation_id
        self.policy = policy or SignaturePolicy()
        self._entries: Dict[str, SignatureEntry] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _slot(key: str, fingerprint: Optional[str]) -> str:
        # Same position, different content: separate entries
        return f"{key}#{fingerprint}" if fingerprint else key

    def put(
        self,
        key: str,
        token: str,
        category: SignatureCategory,
        turn: int = 0,
        fingerprint: Optional[str] = None,
    ) -> None:
        """Store a token. No-op when the category is not cached."""
        if not token or not self.policy.caches(category):
            return
        with self._lock:
            self._entries[self._slot(key, fingerprint)] = SignatureEntry(
                token, category, turn, fingerprint
            )

    def get(
        self,
        key: str,
        category: SignatureCategory,
        fingerprint: Optional[str] = None,
    ) -> Optional[str]:
        """
        Return the cached token, or None.

        Always None for disabled categories. An entry stored with a
        fingerprint is only found with the same fingerprint, so a token is
        never echoed on content it was not issued for.
        """
        if not self.policy.caches(category):
            return None
        with self._lock:
            entry = self._entries.get(self._slot(key, fingerprint))
        if entry is None or entry.category is not category:
            return None
        return entry.token

    def supersede(self, before_turn: int) -> int:
        """Drop entries observed on model turns before `before_turn`. Returns count dropped."""
        with self._lock:
            stale = [k for k, e in self._entries.items() if e.turn < before_turn]
            for k in stale:
                del self._entries[k]
        if stale:
            lib_logger.debug(
                f"[Signatures] {self.conversation_id[:12]}: superseded {len(stale)} "
                f"entries before turn {before_turn}"
            )
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SignatureCacheRegistry:
    """
    Owns the live ConversationSignatures contexts.

    The registry lock only guards the id → context mapping; reads and writes
    inside a context use that context's own lock. The number of live
    contexts is bounded: opening one past the limit drops the least
    recently used conversation.
    """

    def __init__(
        self, policy: Optional[SignaturePolicy] = None, max_conversations: int = 1024
    ):
        self.policy = policy or SignaturePolicy()
        self.max_conversations = max(1, max_conversations)
        self._contexts: "OrderedDict[str, ConversationSignatures]" = OrderedDict()
        self._lock = threading.Lock()

    def open(self, conversation_id: str) -> ConversationSignatures:
        """Return the context for `conversation_id`, creating it if needed."""
        with self._lock:
            ctx = self._contexts.get(conversation_id)
            if ctx is not None:
                self._contexts.move_to_end(conversation_id)
                return ctx
            ctx = ConversationSignatures(conversation_id, self.policy)
            self._contexts[conversation_id] = ctx
            while len(self._contexts) > self.max_conversations:
                evicted_id, _ = self._contexts.popitem(last=False)
                lib_logger.debug(f"[Signatures] Evicted conversation {evicted_id[:12]}")
            return ctx

    def get(self, conversation_id: str) -> Optional[ConversationSignatures]:
        with self._lock:
            return self._contexts.get(conversation_id)

    def discard(self, conversation_id: str) -> None:
        with self._lock:
            ctx = self._contexts.pop(conversation_id, None)
        if ctx is not None:
            ctx.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)


def conversation_id_for(messages: List[Dict[str, Any]], model: str = "") -> str:
    """
    Derive a stable conversation id from the leading system messages and the
    first non-system message.

    Every request of a conversation resends the full history, so that prefix
    stays fixed while later turns grow. Distinct conversations that open
    identically share an id; their thinking, text and image entries are
    fingerprinted, so they never receive each other's tokens. Pass an
    explicit conversation id to keep them fully apart.
    """
    prefix = []
    for message in messages:
        content = message.get("content") or ""
        if not isinstance(content, str):
            content = json.dumps(content, sort_keys=True, ensure_ascii=False)
        prefix.append(f"{message.get('role')}:{content}")
        if message.get("role") != "system":
            break
    joined = "\n".join(prefix)
    digest = hashlib.sha256(f"{model}:{joined}".encode("utf-8")).hexdigest()
    return f"conv_{digest[:32]}"


class FallbackSignaturePolicy:
    """
    Placeholder substitution for parts whose real signature is unavailable.

    Applied as a post-pass over transcoded contents:
    - enabled: the first functionCall of each model turn and every thinking
      part without a signature get DUMMY_THOUGHT_SIGNATURE
    - disabled: thinking parts without a signature are dropped, since the
      upstream rejects unsigned thinking blocks
    """

    def __init__(self, enabled: bool, placeholder: str = DUMMY_THOUGHT_SIGNATURE):
        self.enabled = enabled
        self.placeholder = placeholder

    def apply(self, contents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        for turn in contents:
            if turn.get("role") != "model":
                continue
            parts = turn.get("parts", [])
            kept = []
            first_call_seen = False
            for part in parts:
                if part.get("thought") is True and not part.get("thoughtSignature"):
                    if not self.enabled:
                        lib_logger.warning(
                            "Dropping thinking block without signature "
                            "(fallback signatures disabled)"
                        )
                        continue
                    part["thoughtSignature"] = self.placeholder
                if "functionCall" in part:
                    if not first_call_seen and not part.get("thoughtSignature") and self.enabled:
                        part["thoughtSignature"] = self.placeholder
                        lib_logger.debug(
                            f"Missing thoughtSignature for {part['functionCall'].get('id')}, using bypass"
                        )
                    first_call_seen = True
                kept.append(part)
            if not kept:
                kept.append({"text": ""})
            turn["parts"] = kept
        return contents

# src/antigravity_adapter/translation/response_translator.py
"""
Antigravity response chunks → OpenAI chat-completion chunks.

Signatures seen while a response streams are held back and only written to
the conversation cache once the upstream marks the candidate finished, so a
cancelled stream never leaves tokens for content the client did not get.
"""

import json
import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

from ..constants import FINISH_REASON_MAP
from ..signature_cache import (
    ConversationSignatures,
    SignatureCategory,
    SignaturePolicy,
    content_fingerprint,
    image_key,
    text_key,
    thinking_key,
    tool_key,
)

lib_logger = logging.getLogger("antigravity_adapter")


def unwrap_response(response: Dict[str, Any]) -> Dict[str, Any]:
    """Extract the Gemini-shaped response from the Antigravity envelope."""
    return response.get("response", response)


def map_finish_reason(gemini_reason: Optional[str], has_tool_calls: bool) -> Optional[str]:
    if not gemini_reason:
        return None
    if has_tool_calls:
        return "tool_calls"
    return FINISH_REASON_MAP.get(gemini_reason, "stop")


def build_usage(metadata: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Build an OpenAI usage dict from usageMetadata. Thinking tokens count as prompt."""
    if not metadata:
        return None

    prompt = metadata.get("promptTokenCount", 0)
    thoughts = metadata.get("thoughtsTokenCount", 0)
    completion = metadata.get("candidatesTokenCount", 0)

    usage = {
        "prompt_tokens": prompt + thoughts,
        "completion_tokens": completion,
        "total_tokens": metadata.get("totalTokenCount", 0),
    }
    if thoughts > 0:
        usage["completion_tokens_details"] = {"reasoning_tokens": thoughts}
    return usage


def _is_thought(part: Dict[str, Any]) -> bool:
    thought = part.get("thought")
    return thought is True or str(thought).lower() == "true"


class StreamTranslator:
    """
    Stateful translator for one upstream response.

    Args:
        model: Client-facing model id echoed in every chunk
        turn_index: Position the resulting model turn will take in the
            next request's contents (RequestContext.turn_index)
        signatures: Conversation context to commit signatures into
        policy: Signature policy (pass_to_client is read from here)
    """

    def __init__(
        self,
        model: str,
        turn_index: int = 0,
        signatures: Optional[ConversationSignatures] = None,
        policy: Optional[SignaturePolicy] = None,
    ):
        self.model = model
        self.turn_index = turn_index
        self.signatures = signatures
        self.policy = policy or SignaturePolicy()

        self.response_id: Optional[str] = None
        self._fallback_id = f"chatcmpl-{uuid.uuid4().hex[:24]}"
        self.created = int(time.time())
        self.finished = False
        self.has_tool_calls = False
        self.last_usage: Optional[Dict[str, Any]] = None
        self.emitted = 0

        self._tool_index = 0
        self._image_ordinal = 0
        # Full thinking and answer text, fingerprinted when signatures commit
        self._reasoning = ""
        self._text = ""
        # key -> (token, category, signed content or None for the turn text)
        self._pending: Dict[str, Tuple[str, SignatureCategory, Optional[str]]] = {}

    # =========================================================================
    # CHUNK CONSTRUCTION
    # =========================================================================

    def _chunk(
        self,
        delta: Dict[str, Any],
        finish_reason: Optional[str] = None,
        usage: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        chunk = {
            "id": self.response_id or self._fallback_id,
            "object": "chat.completion.chunk",
            "created": self.created,
            "model": self.model,
            "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
        }
        if usage:
            chunk["usage"] = usage
        self.emitted += 1
        return chunk

    def _hold(
        self,
        key: str,
        token: str,
        category: SignatureCategory,
        signed: Optional[str] = None,
    ) -> None:
        # A later token for the same key replaces an earlier one
        self._pending.pop(key, None)
        self._pending[key] = (token, category, signed)

    def _signed_content(self, key: str, signed: Optional[str]) -> Optional[str]:
        if signed is not None:
            return signed
        # Thinking and text signatures cover the whole turn's text
        if key.startswith("thinking:"):
            return self._reasoning
        if key.startswith("text:"):
            return self._text
        return None

    # =========================================================================
    # PART TRANSLATION
    # =========================================================================

    def _translate_part(self, part: Dict[str, Any]) -> List[Dict[str, Any]]:
        signature = part.get("thoughtSignature")
        text = part.get("text")

        if "functionCall" in part:
            return [self._tool_call_chunk(part["functionCall"], signature)]

        if "inlineData" in part:
            return [self._image_chunk(part["inlineData"], signature)]

        if _is_thought(part) or (signature and not text and self._reasoning and not self._text):
            # Thinking text, or a standalone signature closing a thinking block
            self._reasoning += text or ""
            if signature:
                self._hold(
                    thinking_key(self.turn_index, 0), signature, SignatureCategory.THINKING
                )
            delta = {"role": "assistant", "reasoning_content": text or ""}
            if signature and self.policy.pass_to_client:
                delta["thought_signature"] = signature
            if not text and "thought_signature" not in delta:
                return []
            return [self._chunk(delta)]

        if signature:
            # Answer text signed directly (responses without function calls)
            self._hold(text_key(self.turn_index, 0), signature, SignatureCategory.THINKING)

        if text:
            self._text += text
            return [self._chunk({"role": "assistant", "content": text})]

        return []

    def _tool_call_chunk(
        self, function_call: Dict[str, Any], signature: Optional[str]
    ) -> Dict[str, Any]:
        call_id = function_call.get("id") or f"call_{uuid.uuid4().hex[:24]}"
        args = function_call.get("args", {})

        tool_call = {
            "index": self._tool_index,
            "id": call_id,
            "type": "function",
            "function": {
                "name": function_call.get("name", ""),
                "arguments": args if isinstance(args, str) else json.dumps(args),
            },
        }
        if signature:
            self._hold(tool_key(call_id), signature, SignatureCategory.TOOL)
            if self.policy.pass_to_client:
                tool_call["thought_signature"] = signature

        self._tool_index += 1
        self.has_tool_calls = True
        return self._chunk({"role": "assistant", "tool_calls": [tool_call]})

    def _image_chunk(
        self, inline: Dict[str, Any], signature: Optional[str]
    ) -> Dict[str, Any]:
        if signature:
            self._hold(
                image_key(self.turn_index, self._image_ordinal),
                signature,
                SignatureCategory.IMAGE,
                signed=inline.get("data", ""),
            )
        self._image_ordinal += 1

        mime_type = inline.get("mimeType", "image/png")
        markdown = f"![image](data:{mime_type};base64,{inline.get('data', '')})"
        return self._chunk({"role": "assistant", "content": markdown})

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def translate(self, chunk: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Translate one upstream chunk into zero or more OpenAI chunks."""
        chunk = unwrap_response(chunk)
        if self.response_id is None and chunk.get("responseId"):
            self.response_id = chunk["responseId"]

        out: List[Dict[str, Any]] = []
        finish = None

        candidates = chunk.get("candidates") or []
        if candidates:
            candidate = candidates[0]
            for part in (candidate.get("content") or {}).get("parts") or []:
                out.extend(self._translate_part(part))
            finish = candidate.get("finishReason")

        usage = build_usage(chunk.get("usageMetadata"))
        if usage:
            self.last_usage = usage

        if finish and not self.finished:
            self.commit()
            self.finished = True
            out.append(
                self._chunk(
                    {},
                    finish_reason=map_finish_reason(finish, self.has_tool_calls),
                    usage=self.last_usage,
                )
            )

        return out

    def close(self) -> List[Dict[str, Any]]:
        """
        Called when the upstream stream ends.

        If no finishReason arrived, pending signatures are dropped and a
        synthetic terminal chunk is returned (only when something was emitted).
        """
        if self.finished:
            return []
        self.discard()
        if not self.emitted:
            return []
        self.finished = True
        return [
            self._chunk(
                {},
                finish_reason="tool_calls" if self.has_tool_calls else "stop",
                usage=self.last_usage,
            )
        ]

    def commit(self) -> int:
        """Write pending signatures to the conversation cache. Returns count held."""
        pending, self._pending = self._pending, {}
        if self.signatures is not None:
            for key, (token, category, signed) in pending.items():
                fingerprint = None
                if category is not SignatureCategory.TOOL:
                    fingerprint = content_fingerprint(self._signed_content(key, signed))
                    if fingerprint is None:
                        lib_logger.debug(f"No content to bind signature {key} to, skipping")
                        continue
                self.signatures.put(
                    key, token, category, turn=self.turn_index, fingerprint=fingerprint
                )
        if pending:
            lib_logger.debug(
                f"Committed {len(pending)} signature(s) for turn {self.turn_index}"
            )
        return len(pending)

    def discard(self) -> None:
        if self._pending:
            lib_logger.debug(
                f"Discarding {len(self._pending)} uncommitted signature(s) "
                f"for turn {self.turn_index}"
            )
        self._pending = {}


def translate_response(
    response: Dict[str, Any],
    model: str,
    turn_index: int = 0,
    signatures: Optional[ConversationSignatures] = None,
    policy: Optional[SignaturePolicy] = None,
) -> Dict[str, Any]:
    """
    Convert a complete (non-streaming) response into a chat.completion dict.

    Returns {} when the response has no candidates, which callers treat
    as an empty response.
    """
    unwrapped = unwrap_response(response)
    if not unwrapped.get("candidates"):
        return {}

    translator = StreamTranslator(model, turn_index, signatures, policy)
    chunks = translator.translate(unwrapped)
    if not translator.finished:
        # The whole body arrived, so the turn is complete even without a marker
        translator.commit()

    text_content = ""
    reasoning_content = ""
    thought_signature = None
    tool_calls = []
    finish_reason = None

    for chunk in chunks:
        choice = chunk["choices"][0]
        delta = choice["delta"]
        text_content += delta.get("content") or ""
        reasoning_content += delta.get("reasoning_content") or ""
        thought_signature = delta.get("thought_signature") or thought_signature
        tool_calls.extend(delta.get("tool_calls") or [])
        finish_reason = choice.get("finish_reason") or finish_reason

    message: Dict[str, Any] = {"role": "assistant"}
    if text_content:
        message["content"] = text_content
    elif not tool_calls:
        message["content"] = ""
    if reasoning_content:
        message["reasoning_content"] = reasoning_content
    if thought_signature:
        message["thought_signature"] = thought_signature
    if tool_calls:
        for tool_call in tool_calls:
            tool_call.pop("index", None)
        message["tool_calls"] = tool_calls

    result = {
        "id": translator.response_id or translator._fallback_id,
        "object": "chat.completion",
        "created": translator.created,
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": message,
                "finish_reason": finish_reason
                or ("tool_calls" if tool_calls else "stop"),
            }
        ],
    }
    if translator.last_usage:
        result["usage"] = translator.last_usage

    return result

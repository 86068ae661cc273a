# src/antigravity_adapter/translation/transcoder.py
"""
OpenAI message history → Antigravity contents.

OpenAI sends a flat list with one message per tool call result; Antigravity
wants role-alternating user/model turns where every result of a parallel
tool-call batch sits in one user turn. The merge rules only ever look at
the immediately preceding turn, which is tracked as an explicit TurnKind
rather than by inspecting the parts list.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..signature_cache import (
    ConversationSignatures,
    SignatureCategory,
    content_fingerprint,
    image_key,
    text_key,
    thinking_key,
    tool_key,
)
from .content import extract_content, extract_text

lib_logger = logging.getLogger("antigravity_adapter")


class TurnKind(Enum):
    """What the most recently produced upstream turn holds."""

    USER_MESSAGE = "user_message"
    TOOL_RESPONSES = "tool_responses"
    MODEL = "model"


def can_merge_assistant(
    last: Optional[TurnKind], has_tool_calls: bool, has_text: bool, has_thinking: bool = False
) -> bool:
    """A tool-call-only assistant message joins the preceding model turn."""
    return last is TurnKind.MODEL and has_tool_calls and not has_text and not has_thinking


def can_merge_tool_response(last: Optional[TurnKind]) -> bool:
    """A tool result joins the preceding user turn if it already holds results."""
    return last is TurnKind.TOOL_RESPONSES


def split_system_messages(
    messages: List[Dict[str, Any]],
) -> Tuple[List[str], List[Dict[str, Any]]]:
    """
    Separate the leading run of system messages from the rest.

    Returns the non-empty, stripped system texts in order and the remaining
    messages. System messages after the first non-system one stay in the
    remainder and are later treated like user messages.
    """
    system_texts = []
    start = 0
    for message in messages:
        if message.get("role") != "system":
            break
        text = extract_text(message.get("content")).strip()
        if text:
            system_texts.append(text)
        start += 1
    return system_texts, messages[start:]


@dataclass
class TranscodeResult:
    system_texts: List[str]
    contents: List[Dict[str, Any]]
    # Index of the latest turn produced from a user (or late system) message
    last_user_turn: int = -1
    call_names: Dict[str, str] = field(default_factory=dict)


class MessageTranscoder:
    """
    Rewrites one request's message list. Not shared between requests.

    Args:
        signatures: conversation context to re-inject cached signatures from
        include_thinking: emit assistant `reasoning_content` as thought parts
    """

    def __init__(
        self,
        signatures: Optional[ConversationSignatures] = None,
        include_thinking: bool = False,
    ):
        self.signatures = signatures
        self.include_thinking = include_thinking
        self._contents: List[Dict[str, Any]] = []
        self._last: Optional[TurnKind] = None
        self._call_names: Dict[str, str] = {}
        self._last_user_turn = -1

    def transcode(self, messages: List[Dict[str, Any]]) -> TranscodeResult:
        self._contents = []
        self._last = None
        self._call_names = {}
        self._last_user_turn = -1

        system_texts, remaining = split_system_messages(messages)

        for message in remaining:
            role = message.get("role")
            if role in ("user", "system"):
                self._handle_user(message)
            elif role == "assistant":
                self._handle_assistant(message)
            elif role == "tool":
                self._handle_tool(message)
            else:
                lib_logger.warning(f"Skipping message with unsupported role '{role}'")

        return TranscodeResult(
            system_texts=system_texts,
            contents=self._contents,
            last_user_turn=self._last_user_turn,
            call_names=dict(self._call_names),
        )

    # =========================================================================
    # TURN BOOKKEEPING
    # =========================================================================

    def _push(self, role: str, parts: List[Dict[str, Any]], kind: TurnKind) -> None:
        self._contents.append({"role": role, "parts": parts})
        self._last = kind

    def _lookup(
        self, key: str, category: SignatureCategory, content: Optional[str] = None
    ) -> Optional[str]:
        if self.signatures is None:
            return None
        fingerprint = content_fingerprint(content) if content is not None else None
        return self.signatures.get(key, category, fingerprint)

    # =========================================================================
    # ROLE HANDLERS
    # =========================================================================

    def _handle_user(self, message: Dict[str, Any]) -> None:
        extracted = extract_content(message.get("content"))
        self._last_user_turn = len(self._contents)
        self._push("user", [{"text": extracted.text}, *extracted.images], TurnKind.USER_MESSAGE)

    def _handle_assistant(self, message: Dict[str, Any]) -> None:
        tool_calls = message.get("tool_calls") or []
        extracted = extract_content(message.get("content"))
        text = extracted.text.rstrip()
        reasoning = message.get("reasoning_content") if self.include_thinking else None

        merge = can_merge_assistant(
            self._last, bool(tool_calls), bool(text.strip()), bool(reasoning)
        )
        turn = len(self._contents) - 1 if merge else len(self._contents)
        call_parts = [self._function_call_part(tc) for tc in tool_calls]

        if merge:
            if extracted.images:
                lib_logger.debug(
                    f"Dropping {len(extracted.images)} image(s) from tool-call-only "
                    f"assistant message merged into turn {turn}"
                )
            self._contents[-1]["parts"].extend(call_parts)
            return

        parts: List[Dict[str, Any]] = []
        if reasoning:
            parts.append(self._thinking_part(reasoning, message, turn))
        if text:
            text_part = {"text": text}
            signature = self._lookup(text_key(turn, 0), SignatureCategory.THINKING, text)
            if signature:
                text_part["thoughtSignature"] = signature
            parts.append(text_part)
        for ordinal, image in enumerate(extracted.images):
            signature = self._lookup(
                image_key(turn, ordinal),
                SignatureCategory.IMAGE,
                image.get("inlineData", {}).get("data", ""),
            )
            if signature:
                image["thoughtSignature"] = signature
            parts.append(image)
        parts.extend(call_parts)

        self._push("model", parts, TurnKind.MODEL)

    def _handle_tool(self, message: Dict[str, Any]) -> None:
        call_id = message.get("tool_call_id", "")
        name = self._call_names.get(call_id)
        if name is None:
            lib_logger.warning(
                f"[ID Mismatch] Tool response has ID '{call_id}' with no matching "
                f"functionCall. Known IDs: {list(self._call_names)}"
            )
            name = ""

        output = message.get("content")
        if isinstance(output, list):
            output = extract_text(output)

        part = {
            "functionResponse": {
                "id": call_id,
                "name": name,
                "response": {"output": output},
            }
        }

        if can_merge_tool_response(self._last):
            self._contents[-1]["parts"].append(part)
        else:
            self._push("user", [part], TurnKind.TOOL_RESPONSES)

    # =========================================================================
    # PART BUILDERS
    # =========================================================================

    def _function_call_part(self, tool_call: Dict[str, Any]) -> Dict[str, Any]:
        function = tool_call.get("function") or {}
        call_id = tool_call.get("id", "")
        name = function.get("name", "")
        self._call_names[call_id] = name

        part = {
            "functionCall": {
                "id": call_id,
                "name": name,
                # The upstream accepts the raw argument string as an opaque blob
                "args": {"query": function.get("arguments", "")},
            }
        }
        signature = tool_call.get("thought_signature") or self._lookup(
            tool_key(call_id), SignatureCategory.TOOL
        )
        if signature:
            part["thoughtSignature"] = signature
        return part

    def _thinking_part(
        self, reasoning: str, message: Dict[str, Any], turn: int
    ) -> Dict[str, Any]:
        part = {"text": reasoning, "thought": True}
        signature = message.get("thought_signature") or self._lookup(
            thinking_key(turn, 0), SignatureCategory.THINKING, reasoning
        )
        if signature:
            part["thoughtSignature"] = signature
        else:
            lib_logger.debug(f"No signature for thinking block on turn {turn}")
        return part


def transcode_messages(
    messages: List[Dict[str, Any]],
    signatures: Optional[ConversationSignatures] = None,
    include_thinking: bool = False,
) -> TranscodeResult:
    return MessageTranscoder(signatures, include_thinking).transcode(messages)

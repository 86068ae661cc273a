# src/antigravity_adapter/translation/request_builder.py
"""
Assembles the v1internal request envelope from an OpenAI-style request.

    {project, requestId, model, userAgent,
     request: {contents, tools?, toolConfig, generationConfig, sessionId,
               systemInstruction?}}
"""

import copy
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from ..config import AdapterConfig
from ..model_policy import ModelPolicy, ModelPolicyResolver
from ..signature_cache import (
    ConversationSignatures,
    FallbackSignaturePolicy,
    SignaturePolicy,
)
from .generation_config import build_generation_config
from .tool_schema import convert_tools, translate_tool_choice
from .transcoder import MessageTranscoder

lib_logger = logging.getLogger("antigravity_adapter")


@dataclass(frozen=True)
class BoundCredential:
    """
    Credential bound to one request by the credential source.

    Opaque to the adapter: project_id and session_id are copied into the
    envelope verbatim, access_token only ever goes into the auth header.
    """

    project_id: str
    session_id: str
    access_token: str


@dataclass
class RequestContext:
    """What the response side needs to know about the request it answers."""

    policy: ModelPolicy
    # Index the model turn produced by this response will occupy next time
    turn_index: int
    signature_policy: SignaturePolicy
    conversation: Optional[ConversationSignatures] = None


def _generate_request_id() -> str:
    return f"agent-{uuid.uuid4()}"


def build_system_instruction(
    system_texts: List[str], config: AdapterConfig
) -> Optional[Dict[str, Any]]:
    """
    Combine configured prompts with the client's leading system messages.

    Order is base instruction and official prompt (per
    official_prompt_position), then client system text. Returns None when
    every segment is empty.
    """
    base = (config.system_instruction or "").strip()
    official = (config.official_system_prompt or "").strip()

    if config.official_prompt_position == "after":
        configured = [base, official]
    else:
        configured = [official, base]

    segments = [s for s in configured if s]
    if system_texts:
        segments.append("\n\n".join(system_texts))

    if not segments:
        return None

    if config.merge_system_prompt:
        parts = [{"text": "\n\n".join(segments)}]
    else:
        parts = [{"text": s} for s in segments]
    return {"role": "user", "parts": parts}


def build_request_body(
    messages: List[Dict[str, Any]],
    model: str,
    parameters: Optional[Dict[str, Any]],
    tools: Optional[List[Dict[str, Any]]],
    credential: BoundCredential,
    config: Optional[AdapterConfig] = None,
    signatures: Optional[ConversationSignatures] = None,
    tool_choice: Optional[Union[str, Dict[str, Any]]] = None,
) -> Tuple[Dict[str, Any], RequestContext]:
    """
    Build the upstream envelope for one request.

    Args:
        messages: OpenAI message list, as sent by the client
        model: Client-facing model id (provider prefix allowed)
        parameters: Sampling parameters (temperature, top_p, max_tokens, ...)
        tools: OpenAI tool declarations
        credential: Bound credential for this request
        config: Adapter configuration; defaults when omitted
        signatures: Conversation signature context, if the caller keeps one
        tool_choice: OpenAI tool_choice

    Returns:
        (envelope, context) where context is handed to the response translator
    """
    config = config or AdapterConfig()
    resolver = ModelPolicyResolver(config.model_aliases, config.thinking_models)
    policy = resolver.resolve(model)

    transcoded = MessageTranscoder(
        signatures, include_thinking=policy.thinking_enabled
    ).transcode(messages)
    contents = FallbackSignaturePolicy(config.signatures.use_fallback).apply(
        transcoded.contents
    )

    # Tokens from model turns before the current user turn are never
    # requested again once this history has been sent.
    if signatures is not None and transcoded.last_user_turn > 0:
        signatures.supersede(transcoded.last_user_turn)

    request: Dict[str, Any] = {"contents": contents}

    upstream_tools = convert_tools(tools)
    if upstream_tools:
        request["tools"] = upstream_tools

    request["toolConfig"] = translate_tool_choice(tool_choice)
    request["generationConfig"] = build_generation_config(
        parameters, policy, config.defaults
    )
    request["sessionId"] = credential.session_id

    system_instruction = build_system_instruction(transcoded.system_texts, config)
    if system_instruction:
        request["systemInstruction"] = system_instruction

    envelope = {
        "project": credential.project_id,
        "requestId": _generate_request_id(),
        "model": policy.upstream_model,
        "userAgent": config.api.request_user_agent,
        "request": request,
    }

    lib_logger.debug(
        f"Built request for {policy.client_model} -> {policy.upstream_model} "
        f"(thinking={policy.thinking_enabled}, turns={len(contents)}, "
        f"tools={len(upstream_tools or [])})"
    )

    context = RequestContext(
        policy=policy,
        turn_index=len(contents),
        signature_policy=config.signatures,
        conversation=signatures,
    )
    return envelope, context


def redact_envelope(envelope: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of an envelope with inline image payloads shortened, for logs."""
    redacted = copy.deepcopy(envelope)
    for turn in redacted.get("request", {}).get("contents", []):
        for part in turn.get("parts", []):
            inline = part.get("inlineData")
            if inline and isinstance(inline.get("data"), str) and len(inline["data"]) > 64:
                inline["data"] = f"{inline['data'][:32]}...({len(inline['data'])} chars)"
    return redacted

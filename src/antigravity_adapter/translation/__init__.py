# src/antigravity_adapter/translation/__init__.py

from .content import ExtractedContent, extract_content, extract_text
from .generation_config import build_generation_config, resolve_thinking_budget
from .request_builder import (
    BoundCredential,
    RequestContext,
    build_request_body,
    build_system_instruction,
)
from .response_translator import StreamTranslator, translate_response
from .tool_schema import clean_parameters, convert_tools, translate_tool_choice
from .transcoder import MessageTranscoder, TurnKind, transcode_messages

__all__ = [
    "ExtractedContent",
    "extract_content",
    "extract_text",
    "build_generation_config",
    "resolve_thinking_budget",
    "BoundCredential",
    "RequestContext",
    "build_request_body",
    "build_system_instruction",
    "StreamTranslator",
    "translate_response",
    "clean_parameters",
    "convert_tools",
    "translate_tool_choice",
    "MessageTranscoder",
    "TurnKind",
    "transcode_messages",
]

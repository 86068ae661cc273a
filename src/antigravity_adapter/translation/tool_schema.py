# src/antigravity_adapter/translation/tool_schema.py
"""OpenAI tool declarations → Antigravity functionDeclarations."""

import logging
from typing import Any, Dict, List, Optional, Union

from ..constants import DEFAULT_FUNCTION_CALLING_MODE, EXCLUDED_SCHEMA_KEYS

lib_logger = logging.getLogger("antigravity_adapter")


def clean_parameters(schema: Any) -> Any:
    """
    Recursively copy a JSON Schema without the keywords the upstream rejects.

    Dicts and lists are rebuilt at every level (arrays of schemas included);
    any other value is returned unchanged. Idempotent.
    """
    if isinstance(schema, dict):
        return {
            key: clean_parameters(value)
            for key, value in schema.items()
            if key not in EXCLUDED_SCHEMA_KEYS
        }
    if isinstance(schema, list):
        return [clean_parameters(item) for item in schema]
    return schema


def convert_tools(
    tools: Optional[List[Dict[str, Any]]],
) -> Optional[List[Dict[str, Any]]]:
    """Build Antigravity tools from OpenAI tools. Returns None when there are none."""
    if not tools:
        return None

    converted = []
    for tool in tools:
        if not isinstance(tool, dict) or tool.get("type", "function") != "function":
            continue

        func = tool.get("function") or {}
        name = func.get("name")
        if not name:
            lib_logger.warning("Skipping tool declaration without a function name")
            continue

        func_decl = {
            "name": name,
            "description": func.get("description", ""),
        }
        params = func.get("parameters")
        if isinstance(params, dict):
            func_decl["parameters"] = clean_parameters(params)
        else:
            lib_logger.debug(f"Tool '{name}' declares no parameters schema")

        converted.append({"functionDeclarations": [func_decl]})

    return converted or None


def translate_tool_choice(
    tool_choice: Optional[Union[str, Dict[str, Any]]],
) -> Dict[str, Any]:
    """
    Translates OpenAI's `tool_choice` to Antigravity's `toolConfig`.

    Without an explicit choice the upstream's VALIDATED mode is used.
    """
    mode = DEFAULT_FUNCTION_CALLING_MODE

    if isinstance(tool_choice, str):
        if tool_choice == "none":
            mode = "NONE"
        elif tool_choice == "required":
            mode = "ANY"
    elif isinstance(tool_choice, dict) and tool_choice.get("type") == "function":
        function_name = (tool_choice.get("function") or {}).get("name")
        if function_name:
            return {
                "functionCallingConfig": {
                    "mode": "ANY",
                    "allowedFunctionNames": [function_name],
                }
            }

    return {"functionCallingConfig": {"mode": mode}}

# src/antigravity_adapter/translation/content.py
"""Pull text and inline images out of OpenAI message content."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

lib_logger = logging.getLogger("antigravity_adapter")

# data:image/{format};base64,{data}
DATA_IMAGE_URL = re.compile(r"^data:image/(\w+);base64,(.+)$", re.DOTALL)


@dataclass
class ExtractedContent:
    text: str = ""
    images: List[Dict[str, Any]] = field(default_factory=list)


def parse_image_url(url: str):
    """Return an inlineData part for a base64 data URL, or None."""
    match = DATA_IMAGE_URL.match(url or "")
    if not match:
        return None
    return {"inlineData": {"mimeType": f"image/{match.group(1)}", "data": match.group(2)}}


def extract_content(content: Any) -> ExtractedContent:
    """
    Split message content into concatenated text and inline images.

    A plain string is returned as-is. For a part list, `text` items are
    concatenated in order and `image_url` items with a base64 data URL
    become inlineData parts. Anything else is skipped.
    """
    result = ExtractedContent()

    if isinstance(content, str):
        result.text = content
        return result

    if not isinstance(content, list):
        return result

    for item in content:
        if not isinstance(item, dict):
            continue
        item_type = item.get("type")
        if item_type == "text":
            result.text += item.get("text") or ""
        elif item_type == "image_url":
            image_url = item.get("image_url")
            url = image_url.get("url", "") if isinstance(image_url, dict) else ""
            image = parse_image_url(url)
            if image:
                result.images.append(image)
            else:
                lib_logger.debug(
                    f"Skipping image_url that is not a base64 data URL: {url[:60]!r}"
                )

    return result


def extract_text(content: Any) -> str:
    """Text-only view of message content (images ignored)."""
    return extract_content(content).text

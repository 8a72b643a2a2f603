import json
import re
import logging
from typing import Optional

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def extract_json_object(text: str) -> Optional[dict]:
    """
    Extract the JSON object from an LLM reply.
    Handles markdown code blocks and chatter around the object.
    Returns None when no object can be parsed.
    """
    if not text:
        return None

    # Attempt 1: Strip Markdown code blocks
    clean_text = text
    if "```" in text:
        match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL | re.IGNORECASE)
        if match:
            clean_text = match.group(1)

    # Attempt 2: First opening brace to last closing brace
    start_idx = clean_text.find("{")
    end_idx = clean_text.rfind("}")
    if start_idx == -1 or end_idx <= start_idx:
        logger.warning("No JSON object found in LLM response")
        return None

    try:
        data = json.loads(clean_text[start_idx:end_idx + 1])
    except ValueError as e:
        logger.warning(f"JSON extraction failed: {e}")
        return None

    if not isinstance(data, dict):
        return None
    return normalize_keys(data)


def normalize_keys(data: dict) -> dict:
    """
    Normalize top-level dictionary keys to snake_case.
    "clientName" -> "client_name", "Policy Number" -> "policy_number"
    """
    new_data = {}
    for k, v in data.items():
        key = _CAMEL_BOUNDARY.sub("_", str(k).strip())
        new_data[key.lower().replace(" ", "_")] = v
    return new_data

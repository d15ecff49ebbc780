"""
Extract the plan JSON object from a generation backend response.

Backends and SDK versions return structured output in several shapes. Each
strategy below takes the raw response (a dict, usually) and returns a JSON
object or None; strategies are tried in order and the first object wins.
New shapes are supported by adding a strategy, without touching validation.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

JsonObject = Dict[str, Any]
Strategy = Callable[[Any], Optional[JsonObject]]


def _loads_object(value: Any) -> Optional[JsonObject]:
    """Parse a string as JSON, accepting only objects."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = json.loads(value)
    except (json.JSONDecodeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _outputs(response: Any) -> List[Any]:
    if not isinstance(response, dict):
        return []
    for key in ("output", "outputs", "results"):
        value = response.get(key)
        if isinstance(value, list) and value:
            return value
    return []


def _content_blocks(response: Any) -> List[Dict[str, Any]]:
    blocks = []
    for output in _outputs(response):
        if not isinstance(output, dict):
            continue
        content = output.get("content")
        if content is None and isinstance(output.get("message"), dict):
            content = output["message"].get("content")
        if isinstance(content, list):
            blocks.extend(c for c in content if isinstance(c, dict))
    return blocks


def from_raw_string(response: Any) -> Optional[JsonObject]:
    """The response itself is the JSON text."""
    return _loads_object(response)


def from_output_text(response: Any) -> Optional[JsonObject]:
    """Responses API convenience field: `output_text`."""
    if isinstance(response, dict):
        return _loads_object(response.get("output_text"))
    return None


def from_output_parsed(response: Any) -> Optional[JsonObject]:
    """SDK-parsed structured output: `output_parsed`."""
    if isinstance(response, dict) and isinstance(response.get("output_parsed"), dict):
        return response["output_parsed"]
    return None


def from_json_content(response: Any) -> Optional[JsonObject]:
    """Content blocks typed application/json or output_schema with a `data` payload, or a `json` field."""
    for block in _content_blocks(response):
        if block.get("type") in ("application/json", "output_schema") and isinstance(block.get("data"), dict):
            return block["data"]
    for block in _content_blocks(response):
        if isinstance(block.get("json"), dict):
            return block["json"]
    return None


def from_text_content(response: Any) -> Optional[JsonObject]:
    """The first content block whose `text` parses as a JSON object."""
    for block in _content_blocks(response):
        parsed = _loads_object(block.get("text"))
        if parsed is not None:
            return parsed
    return None


def from_output_item_text(response: Any) -> Optional[JsonObject]:
    """Older shape: `output[0].text`."""
    outputs = _outputs(response)
    if outputs and isinstance(outputs[0], dict):
        return _loads_object(outputs[0].get("text"))
    return None


EXTRACTION_STRATEGIES: List[Strategy] = [
    from_raw_string,
    from_output_text,
    from_output_parsed,
    from_json_content,
    from_text_content,
    from_output_item_text,
]


def extract_plan_json(response: Any, strategies: Optional[List[Strategy]] = None) -> Optional[JsonObject]:
    """Return the first JSON object any strategy finds, or None."""
    for strategy in strategies or EXTRACTION_STRATEGIES:
        result = strategy(response)
        if result is not None:
            logger.debug(f"Plan JSON extracted via {strategy.__name__}")
            return result
    return None

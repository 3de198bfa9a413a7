"""
Extraction of structured answers from model output.

All parsers return ``None`` when the text holds no usable answer; callers
decide whether that means retry or fallback.
"""
from typing import Any, List, Optional
import json
import re

import structlog

logger = structlog.get_logger(__name__)

JSON_BLOCK_PATTERN = re.compile(r"```json\n([\s\S]*?)\n```")
_ARRAY_PATTERN = re.compile(r"\[\s*{[\s\S]*?}\s*\]")
_OBJECT_PATTERN = re.compile(r"{[\s\S]*?}")
_SHOULD_RESPOND = re.compile(r"^(RESPOND|IGNORE|STOP)$", re.IGNORECASE)
_BOOLEAN = re.compile(r"^(YES|NO)$", re.IGNORECASE)


def parse_should_respond_from_text(text: str) -> Optional[str]:
    first_line = text.split("\n")[0].strip().replace("[", "").replace("]", "").upper()
    if _SHOULD_RESPOND.match(first_line):
        return first_line

    for option in ("RESPOND", "IGNORE", "STOP"):
        if option in text:
            return option
    return None


def parse_boolean_from_text(text: str) -> Optional[bool]:
    match = _BOOLEAN.match(text.strip())
    if not match:
        return None
    return match.group(0).upper() == "YES"


def parse_json_array_from_text(text: str) -> Optional[List[Any]]:
    block = JSON_BLOCK_PATTERN.search(text)
    candidate = block.group(1) if block else None
    if candidate is None:
        array_match = _ARRAY_PATTERN.search(text)
        candidate = array_match.group(0) if array_match else None

    if candidate is None:
        return None

    try:
        data = json.loads(candidate)
    except ValueError as e:
        logger.warning("Error parsing JSON array", error=str(e))
        return None

    return data if isinstance(data, list) else None


def parse_json_object_from_text(text: str) -> Optional[Any]:
    block = JSON_BLOCK_PATTERN.search(text)
    candidate = block.group(1) if block else None
    if candidate is None:
        object_match = _OBJECT_PATTERN.search(text)
        candidate = object_match.group(0) if object_match else None

    if candidate is None:
        return None

    try:
        data = json.loads(candidate)
    except ValueError as e:
        logger.warning("Error parsing JSON object", error=str(e))
        return None

    if isinstance(data, dict):
        return data
    if isinstance(data, list):
        return parse_json_array_from_text(text)
    return None

"""
Parse accumulated model output into a JSON object, repairing the most common
truncation damage (missing closing braces) before giving up.
"""

import json
import re
from typing import Any, Dict, Union

from errors import ParseFailure, ValidationFailure

_FENCE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)

MERGE_LIST_FIELDS = ("amendment_summaries", "clause_change_log", "document_incorporation_log")


def strip_code_fence(raw_text: str) -> str:
    match = _FENCE.match(raw_text or "")
    return match.group(1) if match else (raw_text or "")


def count_unclosed_braces(text: str) -> int:
    """
    Return `{` count minus `}` count, ignoring braces inside JSON string literals.
    """
    depth = 0
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
    return depth


def _decode_object(text: str) -> Dict[str, Any]:
    obj = json.loads(text)
    if not isinstance(obj, dict):
        raise ValueError(f"top-level JSON value is {type(obj).__name__}, expected object")
    return obj


def parse_structured(raw_text: str) -> Union[Dict[str, Any], ParseFailure]:
    """
    Decode raw model text into a dict.

    Tries a direct decode, then one retry with the missing closing braces
    appended. Never raises; returns ParseFailure when both attempts fail.
    """
    if not raw_text or not raw_text.strip():
        return ParseFailure(raw_text or "", "empty response text")

    text = strip_code_fence(raw_text).strip()
    try:
        return _decode_object(text)
    except ValueError as first_error:
        missing = count_unclosed_braces(text)
        if missing <= 0:
            return ParseFailure(raw_text, f"invalid JSON: {first_error}")
        try:
            return _decode_object(text + "}" * missing)
        except ValueError as repair_error:
            return ParseFailure(raw_text, f"invalid JSON after appending {missing} brace(s): {repair_error}")


def validate_classification_payload(obj: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(obj.get("documents"), list):
        raise ValidationFailure("classification response is missing a 'documents' array")
    order = obj.get("chronological_order")
    if order is not None and not isinstance(order, list):
        obj["chronological_order"] = None
    return obj


def validate_merge_payload(obj: Dict[str, Any]) -> Dict[str, Any]:
    base_summary = obj.get("base_summary")
    if not isinstance(base_summary, str) or not base_summary.strip():
        raise ValidationFailure("merge response is missing a non-empty 'base_summary'")
    for field in MERGE_LIST_FIELDS:
        if not isinstance(obj.get(field), list):
            obj[field] = []
    if not isinstance(obj.get("final_contract"), str):
        obj["final_contract"] = "" if obj.get("final_contract") is None else str(obj["final_contract"])
    return obj

"""Defensive parsing of model replies for the three extraction tasks."""

import json
import re
from typing import Any

from pydantic import BaseModel, ValidationError


class InferenceError(RuntimeError):
    """Model reply was empty, not JSON, or did not match the expected shape."""


class EtaExtraction(BaseModel):
    date: str | None = None
    text: str | None = None


class IssueFlags(BaseModel):
    isKnownIssue: bool = False
    isExpectedBehaviour: bool = False
    shouldClose: bool = False


class IssueAnalysis(BaseModel):
    currentStatus: str
    nextSteps: str
    analysis: IssueFlags


_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", flags=re.DOTALL | re.IGNORECASE)
_NO_TIMELINE_VALUES = {"", "none", "n/a", "null"}


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    stripped = (text or "").strip()
    match = _FENCE_RE.match(stripped)
    return match.group(1).strip() if match else stripped


def extract_json_object(text: str) -> dict[str, Any]:
    stripped = strip_code_fence(text)
    if not stripped:
        raise InferenceError("Empty model output.")
    start = stripped.find("{")
    end = stripped.rfind("}")
    if start < 0 or end < 0 or end <= start:
        raise InferenceError("Model output did not include a JSON object.")
    try:
        data = json.loads(stripped[start : end + 1])
    except json.JSONDecodeError as exc:
        raise InferenceError(f"Model output was not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise InferenceError("Model output JSON was not an object.")
    return data


def parse_timeline(text: str) -> str | None:
    """Return the timeline string, or None when the model found no timeline."""
    result = strip_code_fence(text).strip().strip('"').strip()
    lowered = result.lower()
    if lowered in _NO_TIMELINE_VALUES or "no timeline" in lowered:
        return None
    return result


def _is_none_value(value: str | None) -> bool:
    return value is None or value.strip().lower() in _NO_TIMELINE_VALUES


def parse_eta(text: str) -> EtaExtraction | None:
    """Return the `{date, text}` extraction, or None when either field is absent."""
    try:
        parsed = EtaExtraction.model_validate(extract_json_object(text))
    except ValidationError as exc:
        raise InferenceError(f"ETA output had unexpected shape: {exc}") from exc
    if _is_none_value(parsed.date) or _is_none_value(parsed.text):
        return None
    return parsed


def parse_analysis(text: str) -> IssueAnalysis:
    try:
        return IssueAnalysis.model_validate(extract_json_object(text))
    except ValidationError as exc:
        raise InferenceError(f"Analysis output had unexpected shape: {exc}") from exc

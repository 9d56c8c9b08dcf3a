"""
Structured Result Extractor

Pulls the JSON object out of a model reply (which may wrap it in prose or
```json fences) and validates it against the expected result shape.
Never raises: callers always get an ``Extraction`` back.
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from app.errors import MalformedResponse
from app.models import AdvisoryResult, DiagnosisResult

logger = logging.getLogger(__name__)

# First "{" through the last "}" (greedy, spans newlines)
_JSON_SPAN = re.compile(r"\{[\s\S]*\}")
_decoder = json.JSONDecoder()


@dataclass(frozen=True)
class Extraction:
    """Success carries ``result`` and the decoded ``data``; failure carries ``error``"""
    ok: bool
    result: Optional[BaseModel] = None
    data: Optional[Dict[str, Any]] = None
    error: Optional[MalformedResponse] = None

    @classmethod
    def success(cls, result: BaseModel, data: Dict[str, Any]) -> "Extraction":
        return cls(ok=True, result=result, data=data)

    @classmethod
    def failure(cls, detail: str) -> "Extraction":
        return cls(ok=False, error=MalformedResponse(detail))


def find_json_object(raw_text: str) -> Optional[Dict[str, Any]]:
    """
    Locate and decode the JSON object embedded in ``raw_text``.

    The greedy first-"{"-to-last-"}" span is tried first. When trailing prose
    contains a stray brace that span will not decode, so each "{" is then
    tried in turn with an incremental decoder. Bracket nesting too deep for
    the decoder counts as no object.
    """
    if not raw_text:
        return None

    match = _JSON_SPAN.search(raw_text)
    if not match:
        return None

    try:
        data = json.loads(match.group(0))
        if isinstance(data, dict):
            return data
    except (json.JSONDecodeError, RecursionError):
        pass

    start = raw_text.find("{")
    while start != -1:
        try:
            data, _ = _decoder.raw_decode(raw_text, start)
            if isinstance(data, dict):
                return data
        except (json.JSONDecodeError, RecursionError):
            pass
        start = raw_text.find("{", start + 1)
    return None


def _extract(raw_text: str, model: Type[BaseModel]) -> Extraction:
    data = find_json_object(raw_text)
    if data is None:
        logger.warning(f"No JSON object in model reply: {(raw_text or '')[:200]!r}")
        return Extraction.failure("No JSON object found in response")

    try:
        result = model.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        logger.warning(f"Model reply missing/invalid fields for {model.__name__}: {fields}")
        return Extraction.failure(f"Invalid or missing fields: {fields}")

    return Extraction.success(result, data)


def extract_advisory(raw_text: str) -> Extraction:
    """Expect ``{"diagnosis": str, "advice": <any JSON>}``"""
    return _extract(raw_text, AdvisoryResult)


def extract_diagnosis(raw_text: str) -> Extraction:
    """Expect ``{"diagnosis": str, "advice": str, "confidence": number}``"""
    return _extract(raw_text, DiagnosisResult)

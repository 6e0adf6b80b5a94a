"""Two-step structured output protocol.

``parse_structured`` turns raw model text into a schema-valid object or
raises ``ParseError``. On ``ParseError`` the caller gets exactly one
``repair_structured`` attempt, which asks the structured model to reformat
the same raw text; if that also fails ``RepairError`` is raised and there is
no further retry.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import jsonschema

from ..utils import log_event
from .router import AIContext

REPAIR_INPUT_MAX_CHARS = 12000

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


class ParseError(ValueError):
    pass


class RepairError(ValueError):
    pass


def extract_json(raw: str) -> Any:
    cleaned = _FENCE.sub("", str(raw or "")).strip()
    first = cleaned.find("{")
    last = cleaned.rfind("}")
    if first != -1 and last > first:
        cleaned = cleaned[first : last + 1]
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ParseError(f"invalid_json: {exc.msg}") from exc


def parse_structured(raw: str, schema: dict[str, Any]) -> dict[str, Any]:
    parsed = extract_json(raw)
    validation = _validate_json(schema, parsed)
    if not validation["ok"]:
        raise ParseError(f"schema_violation: {validation['error']}")
    return parsed


def repair_structured(
    ai: AIContext, raw: str, schema: dict[str, Any], schema_hint: str
) -> dict[str, Any]:
    prompt = (
        "Convert the text below into VALID JSON that follows this schema exactly.\n\n"
        f"SCHEMA:\n{schema_hint}\n\n"
        f"TEXT:\n{str(raw or '')[:REPAIR_INPUT_MAX_CHARS]}\n\n"
        "Rules:\n- Output only valid JSON\n- No code fences\n- No extra text"
    )
    try:
        fixed = ai.client.complete(
            "structured",
            [{"role": "user", "content": prompt}],
            temperature=0.0,
            max_tokens=ai.config.llm.max_tokens_article,
        )
        return parse_structured(fixed, schema)
    except ParseError as exc:
        raise RepairError(f"repair_failed: {exc}") from exc


def complete_structured(
    ai: AIContext,
    role: str,
    prompt: str,
    schema: dict[str, Any],
    schema_hint: str,
    *,
    temperature: float,
    max_tokens: int,
    step: str,
) -> dict[str, Any]:
    raw = ai.client.complete(
        role,
        [{"role": "user", "content": prompt}],
        temperature=temperature,
        max_tokens=max_tokens,
    )
    try:
        return parse_structured(raw, schema)
    except ParseError as exc:
        log_event(ai.logger, logging.INFO, "structured_output_repair", step=step, error=str(exc))
    return repair_structured(ai, raw, schema, schema_hint)


def _validate_json(schema: dict[str, Any], payload: Any) -> dict[str, Any]:
    try:
        jsonschema.validate(payload, schema)
        return {"ok": True}
    except jsonschema.ValidationError as exc:
        return {"ok": False, "error": exc.message}

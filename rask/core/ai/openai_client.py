from __future__ import annotations

import json
import os
from typing import Any

from rask.core.ai.contracts import SuggestionBatch, parse_suggestion_batch
from rask.core.model import Priority


class MissingApiKeyError(RuntimeError):
    pass


SYSTEM_PROMPT = """You are a project planning assistant for a Markdown task roadmap.

You MUST output a JSON object with fields:
- tasks: [{"description": ..., "priority": ..., "phase": ..., "tags": [...],
           "estimated_hours": ..., "dependencies": [...], "notes": ..., "reasoning": ...}]
- notes: ["..."]

Return ONLY the JSON object (no markdown, no extra text).

Goal: break the user's GOAL down into concrete, actionable tasks that fit the existing roadmap.

Rules:
- description: 3 to 500 characters, imperative and specific.
- priority: one of Low, Medium, High, Critical.
- phase: one of the roadmap's phases (MVP, Beta, Release, Future, Backlog or a listed custom phase).
- tags: short words using only letters, digits, '-' and '_' (no '#').
- estimated_hours: > 0 and <= 1000, or null.
- dependencies: ids of EXISTING roadmap tasks only; never reference tasks you are proposing.
- Do not duplicate tasks that already exist.
"""


# OpenAI Structured Outputs requirements:
# - every object schema sets additionalProperties to false
# - every object schema lists every property in `required`
# Optional fields are therefore nullable rather than omitted.


TASK_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "description": {"type": "string"},
        "priority": {"type": "string", "enum": [p.value for p in Priority]},
        "phase": {"type": "string"},
        "tags": {"type": "array", "items": {"type": "string"}},
        "estimated_hours": {"type": ["number", "null"]},
        "dependencies": {"type": "array", "items": {"type": "integer"}},
        "notes": {"type": ["string", "null"]},
        "reasoning": {"type": ["string", "null"]},
    },
    "required": [
        "description",
        "priority",
        "phase",
        "tags",
        "estimated_hours",
        "dependencies",
        "notes",
        "reasoning",
    ],
}


SUGGESTION_JSON_SCHEMA: dict[str, Any] = {
    "name": "task_suggestions",
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "tasks": {"type": "array", "minItems": 1, "items": TASK_SCHEMA},
            "notes": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["tasks", "notes"],
    },
}


class OpenAISuggestionClient:
    def __init__(self, *, base_url: str | None = None) -> None:
        self._base_url = base_url

    def suggest_tasks(self, *, context: dict[str, Any], model: str) -> SuggestionBatch:
        """Ask the model for task suggestions using Responses API structured outputs."""
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise MissingApiKeyError("OPENAI_API_KEY is not set")

        from openai import OpenAI, OpenAIError

        client = OpenAI(base_url=self._base_url) if self._base_url else OpenAI()

        try:
            resp = client.responses.create(
                model=model,
                temperature=0,
                input=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": _render_user_prompt(context)},
                ],
                text={
                    "format": {
                        "type": "json_schema",
                        "name": SUGGESTION_JSON_SCHEMA["name"],
                        "schema": SUGGESTION_JSON_SCHEMA["schema"],
                        "strict": True,
                    }
                },
            )
        except OpenAIError as e:
            raise RuntimeError(f"OpenAI request failed: {e}") from e

        raw_text = _extract_output_text(resp)
        try:
            obj = json.loads(raw_text)
        except json.JSONDecodeError as e:
            snippet = raw_text[:800]
            raise RuntimeError(f"Failed to parse model JSON. First 800 chars: {snippet}") from e

        return parse_suggestion_batch(obj)


def _extract_output_text(resp: Any) -> str:
    """Pull the response text out of the SDK response object."""
    raw = getattr(resp, "output_text", None)
    if isinstance(raw, str) and raw.strip():
        return raw

    texts: list[str] = []
    for item in getattr(resp, "output", None) or []:
        for c in getattr(item, "content", None) or []:
            t = getattr(c, "text", None)
            if isinstance(t, str) and t.strip():
                texts.append(t)
    if texts:
        return "\n".join(texts)

    return str(resp)


def _render_user_prompt(context: dict[str, Any]) -> str:
    return (
        "ROADMAP_JSON:\n"
        + json.dumps(context, indent=2, sort_keys=True, ensure_ascii=False)
        + "\n\nReturn only the JSON object with at least ONE task."
    )

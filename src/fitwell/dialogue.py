"""Dialogue model client."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from fitwell.config import Settings
from fitwell.errors import DialogueError
from fitwell.types import ACTION_TYPES, SERVICE_CATEGORIES, DialogueResult, SuggestedService, Turn

SYSTEM_PROMPT = """\
You are Fitwell Assistant, a friendly and safe healthcare voice assistant for patients.
- Refer the user to a General Practitioner first. Recommend a specialist or emergency services only when the \
symptoms clearly call for one (for example severe chest pain, heavy bleeding or difficulty breathing).
- Be empathetic and concise, add a brief safety disclaimer and never give a definitive diagnosis.
- The reply is spoken aloud: keep it plain language with no JSON, code blocks or action templates.
- When the user mentions symptoms, medicines, labs or appointments, answer in plain language and fill the \
structured fields (mode "service", suggestedServices, action, awaitingConfirmation) so the client can offer \
and execute bookings.
Return the structured result requested by the schema whenever possible."""

UNREADABLE_REPLY = "Sorry, I could not understand that."

OFFLINE_REPLY = (
    "I'm offline right now, so I can't answer that. "
    "If this is urgent, please contact your doctor or local emergency services."
)

_ACTION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "type": {"type": "string", "enum": list(ACTION_TYPES)},
        "params": {"type": "object"},
    },
}

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "reply": {"type": "string"},
        "mode": {"type": "string", "enum": ["chat", "service"]},
        "suggestedServices": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "type": {"type": "string", "enum": list(SERVICE_CATEGORIES)},
                    "title": {"type": "string"},
                    "description": {"type": "string"},
                    "actionTemplate": _ACTION_SCHEMA,
                },
            },
        },
        "awaitingConfirmation": {"type": "boolean"},
        "action": _ACTION_SCHEMA,
    },
}


class DialogueClient:
    """Sends the running conversation to the dialogue endpoint."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._client = client
        self._system_prompt = (settings.system_prompt or SYSTEM_PROMPT).strip()

    def build_messages(self, text: str, history: Sequence[Turn]) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": self._system_prompt}]
        messages.extend(turn.to_message() for turn in history)
        messages.append({"role": "user", "content": text})
        return messages

    async def respond(self, text: str, history: Sequence[Turn] = ()) -> DialogueResult:
        """Return the model's structured answer to ``text``.

        Raises:
            DialogueError: the endpoint failed or returned a non-JSON body.
        """
        url = self._settings.dialogue_url
        if not url:
            logger.warning("dialogue.unconfigured returning offline reply")
            return DialogueResult(reply=OFFLINE_REPLY, mode="chat")

        payload = {"messages": self.build_messages(text, history), "schema": RESPONSE_SCHEMA}
        headers = {}
        if self._settings.dialogue_api_key:
            headers["Authorization"] = f"Bearer {self._settings.dialogue_api_key}"

        try:
            response = await self._client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise DialogueError(f"dialogue request failed: {exc!r}") from exc
        if not response.is_success:
            logger.warning("dialogue.non_ok status={} body={}", response.status_code, response.text[:200])
            raise DialogueError(f"dialogue endpoint returned {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise DialogueError("dialogue endpoint returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise DialogueError("dialogue endpoint returned a non-object body")

        result = parse_dialogue_payload(data)
        logger.info(
            "dialogue.result mode={} suggestions={} confirmation={}",
            result.mode,
            len(result.suggested_services),
            result.requests_confirmation,
        )
        return result


def parse_dialogue_payload(data: dict[str, Any]) -> DialogueResult:
    """Read ``schema_data`` if present, otherwise the completion text."""

    completion = data.get("completion") or data.get("completion_text") or ""
    if not isinstance(completion, str):
        completion = str(completion)

    schema_data = data.get("schema_data")
    if isinstance(schema_data, dict):
        result = coerce_dialogue_result(schema_data)
        if not result.reply.strip():
            result.reply = completion or UNREADABLE_REPLY
        return result

    try:
        parsed = json.loads(completion)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        result = coerce_dialogue_result(parsed)
        if not result.reply.strip():
            result.reply = UNREADABLE_REPLY
        return result
    return DialogueResult(reply=completion or UNREADABLE_REPLY, mode="chat")


def coerce_dialogue_result(raw: dict[str, Any]) -> DialogueResult:
    """Validate model output field by field.

    Null fields fall back to their defaults. Malformed suggestions are skipped,
    and any other field failing validation is dropped on its own.
    """

    values: dict[str, Any] = {}
    for name, field in DialogueResult.model_fields.items():
        key = field.alias or name
        value = raw.get(key) if raw.get(key) is not None else raw.get(name)
        if value is not None:
            values[key] = value
    if "suggestedServices" in values:
        values["suggestedServices"] = _valid_services(values["suggestedServices"])

    while True:
        try:
            return DialogueResult.model_validate(values)
        except ValidationError as exc:
            invalid = {str(error["loc"][0]) for error in exc.errors() if error["loc"]} & values.keys()
            if not invalid:
                raise
            logger.warning("dialogue.result.dropped fields={}", ",".join(sorted(invalid)))
            for key in invalid:
                del values[key]


def _valid_services(items: object) -> list[SuggestedService]:
    if not isinstance(items, list):
        logger.warning("dialogue.services.not_list type={}", type(items).__name__)
        return []
    services = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            services.append(
                SuggestedService.model_validate({key: value for key, value in item.items() if value is not None})
            )
        except ValidationError as exc:
            logger.warning("dialogue.service.skipped errors={}", exc.error_count())
    return services

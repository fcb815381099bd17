"""ClaudeNarrativeClient — Anthropic Claude narrative backend."""
import json
from typing import Any

from anthropic import AsyncAnthropic

from skinscan.constants import CLAUDE_NARRATIVE_MODEL, NARRATIVE_MAX_TOKENS, NARRATIVE_TEMPERATURE
from skinscan.narrative.client import NarrativeClient, narrative_schema, parse_json_text, user_message


class ClaudeNarrativeClient(NarrativeClient):

    def __init__(self, api_key: str, model: str = CLAUDE_NARRATIVE_MODEL) -> None:
        self._api_key = api_key
        self._model = model

    async def generate(self, metrics: list[dict[str, Any]], prompt: str) -> dict[str, Any]:
        system = f"{prompt}\nFollow this JSON schema:\n{json.dumps(narrative_schema())}"
        async with AsyncAnthropic(api_key=self._api_key) as client:
            message = await client.messages.create(
                model=self._model,
                max_tokens=NARRATIVE_MAX_TOKENS,
                temperature=NARRATIVE_TEMPERATURE,
                system=system,
                messages=[{"role": "user", "content": user_message(metrics)}],
            )
        return parse_json_text(message.content[0].text)

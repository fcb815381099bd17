"""OpenAINarrativeClient — OpenAI structured-output narrative backend."""
from typing import Any

from openai import AsyncOpenAI

from skinscan.constants import (
    NARRATIVE_SCHEMA_NAME,
    NARRATIVE_TEMPERATURE,
    OPENAI_NARRATIVE_MODEL,
)
from skinscan.narrative.client import NarrativeClient, narrative_schema, parse_json_text, user_message


class OpenAINarrativeClient(NarrativeClient):

    def __init__(self, api_key: str, model: str = OPENAI_NARRATIVE_MODEL) -> None:
        self._api_key = api_key
        self._model = model

    async def generate(self, metrics: list[dict[str, Any]], prompt: str) -> dict[str, Any]:
        async with AsyncOpenAI(api_key=self._api_key) as client:
            response = await client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": prompt},
                    {"role": "user", "content": user_message(metrics)},
                ],
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": NARRATIVE_SCHEMA_NAME,
                        "strict": True,
                        "schema": narrative_schema(),
                    },
                },
                temperature=NARRATIVE_TEMPERATURE,
            )
        content = response.choices[0].message.content
        if not content:
            raise ValueError("OpenAI response missing content")
        return parse_json_text(content)

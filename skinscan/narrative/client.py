"""NarrativeClient — abstract base for report copy generation backends."""
import json
from abc import ABC, abstractmethod
from typing import Any

from skinscan.constants import DIMENSION_IDS


class NarrativeClient(ABC):
    @abstractmethod
    async def generate(self, metrics: list[dict[str, Any]], prompt: str) -> dict[str, Any]:
        """Return structured narrative text keyed by dimension id. Raises on failure."""
        ...


def narrative_schema() -> dict[str, Any]:
    """JSON schema the vendor output is asked to follow."""
    return {
        "type": "object",
        "additionalProperties": False,
        "required": ["summary_en", "summary_zh", "dimensions"],
        "properties": {
            "summary_en": {"type": "string"},
            "summary_zh": {"type": "string"},
            "dimensions": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "required": ["id", "finding", "mechanism", "action", "confidence"],
                    "properties": {
                        "id": {"type": "string", "enum": list(DIMENSION_IDS)},
                        "finding": {"type": "string"},
                        "mechanism": {"type": "string"},
                        "action": {"type": "string"},
                        "confidence": {"type": "number"},
                    },
                },
            },
        },
    }


def user_message(metrics: list[dict[str, Any]]) -> str:
    return f"Metrics:\n{json.dumps(metrics, indent=2, ensure_ascii=False)}"


def parse_json_text(text: str) -> dict[str, Any]:
    """Decode a JSON object, tolerating a ```json fenced block around it."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        cleaned = cleaned.rsplit("```", 1)[0]
    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError("narrative output is not a JSON object")
    return data

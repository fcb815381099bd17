"""Shared fakes: a virtual clock, a scripted vision vendor, a narrative stub."""
from typing import Any

import pytest

from skinscan.config import Config
from skinscan.constants import DIMENSION_IDS, YOUCAM_HD_ACTIONS
from skinscan.models import ImageInput, TaskPoll, TaskStatus
from skinscan.narrative.client import NarrativeClient
from skinscan.vision.client import VisionClient


class FakeClock:
    """Monotonic clock that only moves when sleep() or advance() is called."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeVision(VisionClient):
    """Scripted vendor. Each poll pops the next item; the last one repeats."""

    def __init__(
        self,
        polls: list[Any] | None = None,
        clock: FakeClock | None = None,
        submit_error: Exception | None = None,
        poll_cost: float = 0.0,
    ) -> None:
        self._polls = list(polls or [TaskPoll(TaskStatus.SUCCESS, vendor_body())])
        self._clock = clock
        self._submit_error = submit_error
        self._poll_cost = poll_cost
        self.submitted: list[ImageInput] = []
        self.poll_count = 0
        self.closed = False

    @property
    def channels(self) -> tuple[str, ...]:
        return YOUCAM_HD_ACTIONS

    async def init_upload(self, content_type: str, size: int, name: str) -> tuple[str, str]:
        if self._submit_error is not None:
            raise self._submit_error
        return "file-1", "https://upload.example/file-1"

    async def upload_binary(self, upload_url: str, data: bytes, content_type: str) -> None:
        self.submitted.append(ImageInput(data=data, content_type=content_type))

    async def create_task(self, asset_id: str, channels: tuple[str, ...]) -> str:
        return "task-1"

    async def get_task_status(self, task_id: str) -> TaskPoll:
        self.poll_count += 1
        if self._clock is not None:
            self._clock.advance(self._poll_cost)
        item = self._polls.pop(0) if len(self._polls) > 1 else self._polls[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


class FakeNarrative(NarrativeClient):

    def __init__(self, body: Any = None, error: Exception | None = None) -> None:
        self._body = body if body is not None else narrative_body()
        self._error = error
        self.calls: list[list[dict[str, Any]]] = []

    async def generate(self, metrics: list[dict[str, Any]], prompt: str) -> dict[str, Any]:
        self.calls.append(metrics)
        if self._error is not None:
            raise self._error
        return self._body


def vendor_body(ui: float = 80, raw: float = 70.5) -> dict[str, Any]:
    return {
        "status": 200,
        "data": {
            "task_status": "success",
            "results": {
                "output": [
                    {"type": action, "ui_score": ui, "raw_score": raw, "mask_urls": [f"{action}.png"]}
                    for action in YOUCAM_HD_ACTIONS
                ],
            },
        },
    }


def narrative_body(dimension_ids: tuple[str, ...] = DIMENSION_IDS) -> dict[str, Any]:
    return {
        "summary_en": "Vendor summary.",
        "summary_zh": "供應商摘要。",
        "dimensions": [
            {
                "id": dim_id,
                "finding": f"{dim_id} finding",
                "mechanism": f"{dim_id} mechanism",
                "action": f"{dim_id} action",
                "confidence": 0.85,
            }
            for dim_id in dimension_ids
        ],
    }


def image(value: int = 128, size: int = 70_000, content_type: str = "image/jpeg") -> ImageInput:
    return ImageInput(data=bytes([value]) * size, content_type=content_type, filename="face.jpg")


def make_config(**overrides: Any) -> Config:
    base = Config(
        log_level="INFO",
        host="127.0.0.1",
        port=8000,
        total_budget=28.0,
        call_timeout=6.0,
        narrative_timeout=15.0,
        youcam_api_key="yc-key",
        youcam_base_url="https://youcam.example/s2s/v2.0",
        openai_api_key=None,
        anthropic_api_key=None,
    )
    return Config(**{**base.__dict__, **overrides})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

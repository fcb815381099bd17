"""Value types shared by every pipeline stage."""
import enum
import hashlib
import os
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable

from skinscan.constants import DEFAULT_CONTENT_TYPE, FINGERPRINT_LENGTH, MAX_IMAGES
from skinscan.errors import ValidationError

Clock = Callable[[], float]


@dataclass(frozen=True)
class ImageInput:
    data: bytes
    content_type: str = DEFAULT_CONTENT_TYPE
    filename: str = ""

    @property
    def size(self) -> int:
        return len(self.data)


def _new_request_id() -> str:
    return f"scan_{int(time.time() * 1000)}_{os.urandom(3).hex()}"


@dataclass(frozen=True)
class ScanRequest:
    request_id: str
    images: tuple[ImageInput, ...]
    received_at: float

    @property
    def primary(self) -> ImageInput:
        return self.images[0]

    @property
    def fingerprint(self) -> str:
        """Stable digest of the primary image; identical retries share it."""
        return hashlib.sha256(self.primary.data).hexdigest()[:FINGERPRINT_LENGTH]

    @classmethod
    def create(cls, images: list[ImageInput], request_id: str | None = None) -> "ScanRequest":
        """Validate 1–3 non-empty images and freeze them into a request. Raises ValidationError."""
        match len(images):
            case 0:
                raise ValidationError("Missing image1")
            case n if n > MAX_IMAGES:
                raise ValidationError(f"At most {MAX_IMAGES} images are accepted, got {n}")
            case _:
                pass
        for idx, image in enumerate(images, start=1):
            if not image.data:
                raise ValidationError(f"image{idx} is empty")
            if not (image.content_type or "").startswith("image/"):
                raise ValidationError(
                    f"image{idx} has unsupported content type {image.content_type!r}"
                )
        return cls(
            request_id=request_id or _new_request_id(),
            images=tuple(images),
            received_at=time.time(),
        )


class TimeBudget:
    """Absolute deadline for one request, read through a monotonic clock."""

    def __init__(self, total: float, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._start = clock()
        self._deadline = self._start + total
        self._last = total

    @property
    def total(self) -> float:
        return self._deadline - self._start

    def remaining(self) -> float:
        left = max(0.0, self._deadline - self._clock())
        # a clock that steps backwards must not hand time back
        self._last = min(self._last, left)
        return self._last

    def elapsed(self) -> float:
        return self.total - self.remaining()

    def has(self, seconds: float) -> bool:
        return self.remaining() >= seconds


class PipelineStage(enum.Enum):
    INIT = "init"
    PRECHECK = "precheck"
    SUBMIT_VISION = "submit_vision"
    POLL_VISION = "poll_vision"
    EXTRACT_METRICS = "extract_metrics"
    ASSEMBLE_REPORT = "assemble_report"
    ENRICH_NARRATIVE = "enrich_narrative"
    DONE = "done"
    DEGRADED = "degraded"

    def can_advance_to(self, target: "PipelineStage") -> bool:
        match (self, target):
            case (PipelineStage.DONE, _):
                return False
            case (PipelineStage.DEGRADED, PipelineStage.DONE):
                return True
            case (PipelineStage.DEGRADED, _):
                return False
            case (_, PipelineStage.DEGRADED):
                return True
            case _:
                return target in _FORWARD.get(self, ())


_FORWARD: dict[PipelineStage, tuple[PipelineStage, ...]] = {
    PipelineStage.INIT: (PipelineStage.PRECHECK,),
    PipelineStage.PRECHECK: (PipelineStage.SUBMIT_VISION,),
    PipelineStage.SUBMIT_VISION: (PipelineStage.POLL_VISION,),
    PipelineStage.POLL_VISION: (PipelineStage.EXTRACT_METRICS,),
    PipelineStage.EXTRACT_METRICS: (PipelineStage.ASSEMBLE_REPORT,),
    # enrichment may be skipped for budget or configuration
    PipelineStage.ASSEMBLE_REPORT: (PipelineStage.ENRICH_NARRATIVE, PipelineStage.DONE),
    PipelineStage.ENRICH_NARRATIVE: (PipelineStage.DONE,),
}


class TaskStatus(enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


@dataclass
class ExternalTaskHandle:
    task_id: str
    stage: PipelineStage
    attempts: int = 0
    status: TaskStatus = TaskStatus.PENDING


@dataclass(frozen=True)
class TaskPoll:
    status: TaskStatus
    payload: dict[str, Any] = field(default_factory=dict)
    code: str | None = None


@dataclass(frozen=True)
class ChannelReading:
    ui: float
    raw: float
    masks: tuple[str, ...] = ()


@dataclass(frozen=True)
class SignalDetail:
    label_en: str
    label_zh: str
    value: int | str


@dataclass(frozen=True)
class MetricSignal:
    id: str
    title: str
    score: int
    raw_score: float
    overlays: tuple[str, ...] = ()
    title_zh: str = ""
    priority: int = 0
    details: tuple[SignalDetail, ...] = ()


@dataclass(frozen=True)
class NarrativePayload:
    finding: str
    mechanism: str
    action: str
    source: str


@dataclass(frozen=True)
class ReportDimension:
    id: str
    title: str
    score: int
    tone: str
    narrative: NarrativePayload
    confidence: float
    signals: tuple[str, ...] = ()


@dataclass(frozen=True)
class PrecheckResult:
    ok: bool
    avg_signal: float
    warnings: tuple[str, ...] = ()
    tips: tuple[str, ...] = ()


@dataclass(frozen=True)
class Report:
    request_id: str
    produced_at: float
    degraded: bool
    signals: tuple[MetricSignal, ...]
    dimensions: tuple[ReportDimension, ...]
    summary_en: str
    summary_zh: str
    precheck: PrecheckResult
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        body = asdict(self)
        body["signals"] = [
            {**s, "overlays": list(s["overlays"]), "details": list(s["details"]), "max": 100}
            for s in body["signals"]
        ]
        body["dimensions"] = [
            {**d, "signals": list(d["signals"]), "max": 100} for d in body["dimensions"]
        ]
        body["precheck"] = {
            **body["precheck"],
            "warnings": list(body["precheck"]["warnings"]),
            "tips": list(body["precheck"]["tips"]),
        }
        return body

"""RequestCoordinator — one deadline-bounded scan pipeline per inbound request.

Stages run strictly in order under a single TimeBudget. Any vision-side
failure or budget shortfall escapes to DEGRADED, which synthesizes a complete
report from the request fingerprint. Narrative enrichment failures only fall
back to template copy and never flip the ``degraded`` flag.
"""
import asyncio
import logging
import time
from typing import Any

from skinscan.assembler import NarrativeOverrides, ReportAssembler, extract_channels, parse_overrides
from skinscan.backoff import BackoffPolicy
from skinscan.config import Config
from skinscan.constants import (
    MSG_DEGRADED,
    MSG_DONE,
    MSG_NARRATIVE_FAILED,
    MSG_NARRATIVE_SKIPPED,
    MSG_NO_CHANNELS,
    MSG_NO_NARRATIVE,
    MSG_NO_VISION,
    MSG_PRECHECK_REJECTED,
    MSG_STAGE,
    MSG_UNEXPECTED,
    NARRATIVE_MIN_BUDGET_SECONDS,
    NARRATIVE_SYSTEM_PROMPT,
    POLL_MIN_CEILING_SECONDS,
    RESERVED_TAIL_SECONDS,
    RETAKE_TIPS,
    SOURCE_TEMPLATE,
    SOURCE_VENDOR,
    SUBMIT_MIN_BUDGET_SECONDS,
    SUMMARY_DEGRADED_EN,
    SUMMARY_DEGRADED_ZH,
    SUMMARY_EN,
    SUMMARY_ZH,
)
from skinscan.errors import (
    BudgetExceededError,
    ConfigurationError,
    NarrativeEnrichmentError,
    PrecheckRejectedError,
    SkinScanError,
    VendorTerminalError,
)
from skinscan.fallback import DegradedFallbackSynthesizer
from skinscan.models import (
    Clock,
    ExternalTaskHandle,
    MetricSignal,
    PipelineStage,
    PrecheckResult,
    Report,
    ReportDimension,
    ScanRequest,
    TaskPoll,
    TimeBudget,
)
from skinscan.narrative.claude import ClaudeNarrativeClient
from skinscan.narrative.client import NarrativeClient
from skinscan.narrative.openai import OpenAINarrativeClient
from skinscan.precheck import merge_prechecks, quick_precheck
from skinscan.tasks.client import AsyncTaskClient, Sleep, TaskBackend
from skinscan.vision.client import VisionClient
from skinscan.vision.youcam import YouCamVisionClient

logger = logging.getLogger(__name__)


def _retake(exc: Exception) -> dict[str, Any] | None:
    """Vendor photo rejections become retake hints instead of a bare failure."""
    text = f"{getattr(exc, 'code', '') or ''} {exc}"
    for code, tips in RETAKE_TIPS.items():
        if code in text:
            return {"code": code, "tips": list(tips)}
    return None


class RequestCoordinator:
    """Drives one ScanRequest to a Report. Build one instance per request."""

    def __init__(
        self,
        config: Config,
        vision: VisionClient | None = None,
        narrative: NarrativeClient | None = None,
        *,
        assembler: ReportAssembler | None = None,
        synthesizer: DegradedFallbackSynthesizer | None = None,
        backoff: BackoffPolicy | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config
        self._vision = vision
        self._narrative = narrative
        self._assembler = assembler or ReportAssembler(
            stable_min=config.tone_stable_min, deviation_min=config.tone_deviation_min
        )
        self._synthesizer = synthesizer or DegradedFallbackSynthesizer()
        self._backoff = backoff or BackoffPolicy()
        self._clock = clock
        self._sleep = sleep
        self._stage = PipelineStage.INIT
        self._budget: TimeBudget | None = None
        self._request_id = ""

        self._config_error: ConfigurationError | None = None
        if vision is None:
            logger.error(MSG_NO_VISION)
            self._config_error = ConfigurationError(MSG_NO_VISION)
        if narrative is None:
            logger.info(MSG_NO_NARRATIVE)

    @property
    def stage(self) -> PipelineStage:
        return self._stage

    # ── state machine ─────────────────────────────────────────────────────────

    def _advance(self, target: PipelineStage) -> None:
        if not self._stage.can_advance_to(target):
            raise RuntimeError(f"illegal stage transition {self._stage.value} → {target.value}")
        self._stage = target
        logger.info(MSG_STAGE, self._request_id, target.value, self._budget.remaining())

    def _tasks(
        self, backend: TaskBackend | None, stage: PipelineStage, call_timeout: float
    ) -> AsyncTaskClient:
        return AsyncTaskClient(
            backend,
            stage,
            backoff=self._backoff,
            call_timeout=call_timeout,
            clock=self._clock,
            sleep=self._sleep,
        )

    def _ceiling(self, minimum: float, stage: PipelineStage) -> float:
        ceiling = self._budget.remaining() - RESERVED_TAIL_SECONDS
        if ceiling < minimum:
            raise BudgetExceededError(
                f"{ceiling:.2f}s left for {stage.value}, need {minimum:.2f}s"
            )
        return ceiling

    # ── stages ────────────────────────────────────────────────────────────────

    def _precheck(self, request: ScanRequest) -> PrecheckResult:
        results = [quick_precheck(image) for image in request.images]
        if self._config.strict_precheck and not results[0].ok:
            logger.warning(MSG_PRECHECK_REJECTED, ", ".join(results[0].warnings))
            raise PrecheckRejectedError(f"primary image failed precheck: {results[0].warnings}")
        return merge_prechecks(results)

    async def _submit_vision(self, request: ScanRequest) -> ExternalTaskHandle:
        if self._config_error is not None:
            raise self._config_error
        ceiling = self._ceiling(SUBMIT_MIN_BUDGET_SECONDS, PipelineStage.SUBMIT_VISION)
        tasks = self._tasks(self._vision, PipelineStage.SUBMIT_VISION, self._config.call_timeout)
        return await tasks.submit(request.primary, ceiling)

    async def _poll_vision(self, handle: ExternalTaskHandle) -> TaskPoll:
        ceiling = self._ceiling(POLL_MIN_CEILING_SECONDS, PipelineStage.POLL_VISION)
        tasks = self._tasks(self._vision, PipelineStage.POLL_VISION, self._config.call_timeout)
        return await tasks.poll_until_terminal(handle, ceiling)

    async def _enrich(
        self, signals: list[MetricSignal], dimensions: list[ReportDimension]
    ) -> NarrativeOverrides:
        ceiling = self._budget.remaining() - RESERVED_TAIL_SECONDS
        self._advance(PipelineStage.ENRICH_NARRATIVE)
        metrics = self._assembler.metrics_payload(dimensions, signals)
        # one-shot call, no task backend behind it
        tasks = self._tasks(None, PipelineStage.ENRICH_NARRATIVE, self._config.narrative_timeout)
        try:
            body = await tasks.run_once(
                lambda: self._narrative.generate(metrics, NARRATIVE_SYSTEM_PROMPT), ceiling
            )
        except SkinScanError as exc:
            raise NarrativeEnrichmentError(str(exc)) from exc
        return parse_overrides(body)

    # ── pipeline ──────────────────────────────────────────────────────────────

    async def run(self, request: ScanRequest) -> Report:
        self._budget = TimeBudget(self._config.total_budget, clock=self._clock)
        self._stage = PipelineStage.INIT
        self._request_id = request.request_id
        meta: dict[str, Any] = {"narrative": SOURCE_TEMPLATE}
        precheck = PrecheckResult(ok=True, avg_signal=0.0)
        handle: ExternalTaskHandle | None = None

        try:
            try:
                self._advance(PipelineStage.PRECHECK)
                precheck = self._precheck(request)
                self._advance(PipelineStage.SUBMIT_VISION)
                handle = await self._submit_vision(request)
                meta["vision_task_id"] = handle.task_id
                self._advance(PipelineStage.POLL_VISION)
                poll = await self._poll_vision(handle)
                meta["vision_task_status"] = handle.status.value
                meta["vision_polls"] = handle.attempts
                self._advance(PipelineStage.EXTRACT_METRICS)
                channels = extract_channels(poll.payload)
                if not self._assembler.resolvable(channels):
                    raise VendorTerminalError(MSG_NO_CHANNELS % handle.task_id)
                signals = self._assembler.attach_details(
                    self._assembler.derive_signals(channels), request.fingerprint, channels
                )
                self._advance(PipelineStage.ASSEMBLE_REPORT)
                dimensions = self._assembler.derive_dimensions(signals, request.fingerprint)
            except SkinScanError as exc:
                return self._degrade(request, exc, precheck, meta, handle)
            except Exception as exc:
                logger.exception(MSG_UNEXPECTED, request.request_id, self._stage.value)
                return self._degrade(request, exc, precheck, meta, handle)
            summaries = (SUMMARY_EN, SUMMARY_ZH)
            if self._narrative is None:
                meta["narrative_skipped"] = "unconfigured"
            elif not self._budget.has(NARRATIVE_MIN_BUDGET_SECONDS + RESERVED_TAIL_SECONDS):
                logger.info(MSG_NARRATIVE_SKIPPED, request.request_id, self._budget.remaining())
                meta["narrative_skipped"] = "budget"
            else:
                try:
                    overrides = await self._enrich(signals, dimensions)
                    dimensions = self._assembler.apply_overrides(
                        dimensions, signals, request.fingerprint, overrides
                    )
                    summaries = (overrides.summary_en or SUMMARY_EN, overrides.summary_zh or SUMMARY_ZH)
                    meta["narrative"] = SOURCE_VENDOR
                except NarrativeEnrichmentError as exc:
                    logger.warning(MSG_NARRATIVE_FAILED, request.request_id, exc)
                    meta["narrative_error"] = str(exc)

            self._advance(PipelineStage.DONE)
            meta["elapsed"] = round(self._budget.elapsed(), 3)
            logger.info(MSG_DONE, request.request_id, self._budget.elapsed(), False)
            return self._assembler.build_report(
                request,
                signals,
                dimensions,
                degraded=False,
                precheck=precheck,
                summary_en=summaries[0],
                summary_zh=summaries[1],
                meta=meta,
            )
        finally:
            if self._vision is not None:
                await self._vision.aclose()

    def _degrade(
        self,
        request: ScanRequest,
        exc: Exception,
        precheck: PrecheckResult,
        meta: dict[str, Any],
        handle: ExternalTaskHandle | None,
    ) -> Report:
        failed_at = self._stage
        logger.warning(MSG_DEGRADED, request.request_id, failed_at.value, exc)
        self._advance(PipelineStage.DEGRADED)

        signals = self._assembler.attach_details(
            self._synthesizer.synthesize(request.fingerprint), request.fingerprint
        )
        dimensions = self._assembler.derive_dimensions(signals, request.fingerprint)
        meta["failed_stage"] = failed_at.value
        meta["degrade_reason"] = f"{type(exc).__name__}: {exc}"
        if handle is not None:
            meta["vision_task_status"] = handle.status.value
            meta["vision_polls"] = handle.attempts
        if isinstance(exc, VendorTerminalError) and (retake := _retake(exc)):
            meta["retake"] = retake

        self._advance(PipelineStage.DONE)
        meta["elapsed"] = round(self._budget.elapsed(), 3)
        logger.info(MSG_DONE, request.request_id, self._budget.elapsed(), True)
        return self._assembler.build_report(
            request,
            signals,
            dimensions,
            degraded=True,
            precheck=precheck,
            summary_en=SUMMARY_DEGRADED_EN,
            summary_zh=SUMMARY_DEGRADED_ZH,
            meta=meta,
        )


def build_coordinator(config: Config) -> RequestCoordinator:
    """Fresh backends per request: the vision client owns an HTTP pool it closes on exit."""
    vision = (
        YouCamVisionClient(
            config.youcam_api_key,
            base_url=config.youcam_base_url,
            timeout=config.call_timeout,
        )
        if config.youcam_api_key
        else None
    )
    match (config.openai_api_key, config.anthropic_api_key):
        case (str() as k, _) if k:
            narrative = OpenAINarrativeClient(k, model=config.openai_model)
        case (_, str() as k) if k:
            narrative = ClaudeNarrativeClient(k, model=config.claude_model)
        case _:
            narrative = None
    return RequestCoordinator(config, vision=vision, narrative=narrative)

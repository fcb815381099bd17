"""TDD: RequestCoordinator end-to-end pipeline tests written FIRST"""
import pytest

from conftest import FakeNarrative, FakeVision, image, make_config, vendor_body
from skinscan.constants import DIMENSION_IDS, SIGNAL_IDS, SUMMARY_DEGRADED_EN, SUMMARY_EN
from skinscan.coordinator import RequestCoordinator, build_coordinator
from skinscan.errors import SubmissionError, TransientTransportError
from skinscan.models import PipelineStage, ScanRequest, TaskPoll, TaskStatus
from skinscan.narrative.claude import ClaudeNarrativeClient
from skinscan.narrative.openai import OpenAINarrativeClient
from skinscan.vision.youcam import YouCamVisionClient

PENDING = TaskPoll(TaskStatus.PENDING)


def _request(*images):
    return ScanRequest.create(list(images) or [image()], request_id="scan_test")


def _coordinator(clock, vision=None, narrative=None, **config):
    return RequestCoordinator(
        make_config(**config),
        vision=vision,
        narrative=narrative,
        clock=clock,
        sleep=clock.sleep,
    )


def _assert_complete(report):
    assert [s.id for s in report.signals] == list(SIGNAL_IDS)
    assert [d.id for d in report.dimensions] == list(DIMENSION_IDS)
    assert all(0 <= s.score <= 100 for s in report.signals)
    assert all(0 <= d.score <= 100 for d in report.dimensions)


# ── happy path ────────────────────────────────────────────────────────────────


async def test_vendor_success_with_narrative(clock):
    vision = FakeVision(clock=clock)
    narrative = FakeNarrative()
    coordinator = _coordinator(clock, vision, narrative)

    report = await coordinator.run(_request())

    _assert_complete(report)
    assert report.degraded is False
    assert report.summary_en == "Vendor summary."
    assert all(d.narrative.source == "vendor" for d in report.dimensions)
    assert all(d.confidence == 0.85 for d in report.dimensions)
    assert report.meta["narrative"] == "vendor"
    assert report.meta["vision_task_id"] == "task-1"
    assert report.meta["vision_polls"] == 1
    assert coordinator.stage is PipelineStage.DONE
    assert vision.closed
    assert len(narrative.calls[0]) == len(DIMENSION_IDS)


async def test_vendor_success_without_narrative_uses_templates(clock):
    report = await _coordinator(clock, FakeVision(clock=clock)).run(_request())

    _assert_complete(report)
    assert report.degraded is False
    assert report.summary_en == SUMMARY_EN
    assert all(d.narrative.source == "template" for d in report.dimensions)
    assert report.meta["narrative_skipped"] == "unconfigured"


async def test_pending_then_success_polls_with_backoff(clock):
    vision = FakeVision([PENDING, PENDING, TaskPoll(TaskStatus.SUCCESS, vendor_body())], clock=clock)

    report = await _coordinator(clock, vision).run(_request())

    assert report.degraded is False
    assert vision.poll_count == 3
    assert clock.sleeps == pytest.approx([1.2, 1.92])


async def test_transient_poll_failures_do_not_degrade(clock):
    vision = FakeVision(
        [TransientTransportError("503"), TaskPoll(TaskStatus.SUCCESS, vendor_body())], clock=clock
    )

    report = await _coordinator(clock, vision).run(_request())

    assert report.degraded is False
    assert vision.poll_count == 2


async def test_vendor_report_carries_area_details(clock):
    body = vendor_body()
    body["data"]["results"]["score_info"] = {
        "hd_pore": {"forehead": {"ui_score": 61, "raw_score": 40.0}},
        "hd_wrinkle": {"nasolabial": {"ui_score": 57, "raw_score": 33.0}},
    }
    vision = FakeVision([TaskPoll(TaskStatus.SUCCESS, body)], clock=clock)

    report = await _coordinator(clock, vision).run(_request())

    details = {s.id: {d.label_en: d.value for d in s.details} for s in report.signals}
    assert report.degraded is False
    assert details["pore"]["T-Zone"] == 61
    assert details["wrinkle"]["Nasolabial"] == 57
    assert all(len(s.details) == 3 for s in report.signals)


async def test_partial_channels_are_substituted_without_degrading(clock):
    body = vendor_body()
    body["data"]["results"]["output"] = body["data"]["results"]["output"][:1]
    vision = FakeVision([TaskPoll(TaskStatus.SUCCESS, body)], clock=clock)

    report = await _coordinator(clock, vision).run(_request())

    _assert_complete(report)
    assert report.degraded is False


# ── degraded paths ────────────────────────────────────────────────────────────


async def test_success_without_usable_channels_degrades(clock):
    body = {"status": 200, "data": {"task_status": "success", "results": {}}}
    vision = FakeVision([TaskPoll(TaskStatus.SUCCESS, body)], clock=clock)

    report = await _coordinator(clock, vision).run(_request())

    _assert_complete(report)
    assert report.degraded is True
    assert report.summary_en == SUMMARY_DEGRADED_EN
    assert report.meta["failed_stage"] == "extract_metrics"
    assert report.meta["vision_task_status"] == "success"
    assert "no usable channels" in report.meta["degrade_reason"]
    assert "retake" not in report.meta
    assert vision.closed


async def test_never_terminal_task_degrades_within_budget(clock):
    vision = FakeVision([PENDING], clock=clock)
    narrative = FakeNarrative()
    start = clock.now

    report = await _coordinator(clock, vision, narrative).run(_request())

    _assert_complete(report)
    assert report.degraded is True
    assert report.summary_en == SUMMARY_DEGRADED_EN
    assert report.meta["failed_stage"] == "poll_vision"
    assert report.meta["vision_task_status"] == "timeout"
    assert "TaskTimeoutError" in report.meta["degrade_reason"]
    assert clock.now - start <= 28.0
    assert narrative.calls == []
    assert vision.closed


async def test_vendor_error_fails_fast_with_retake_tips(clock):
    body = {"status": 200, "data": {"task_status": "error", "error": "error_src_face_too_small"}}
    vision = FakeVision([TaskPoll(TaskStatus.ERROR, body, code="error_src_face_too_small")], clock=clock)

    report = await _coordinator(clock, vision).run(_request())

    assert report.degraded is True
    assert vision.poll_count == 1
    assert clock.sleeps == []
    assert report.meta["vision_polls"] == 1
    assert report.meta["vision_task_status"] == "error"
    assert report.meta["retake"]["code"] == "error_src_face_too_small"
    assert report.meta["retake"]["tips"]


async def test_missing_vision_config_degrades_without_remote_calls(clock):
    narrative = FakeNarrative()

    report = await _coordinator(clock, None, narrative, youcam_api_key=None).run(_request())

    _assert_complete(report)
    assert report.degraded is True
    assert report.meta["failed_stage"] == "submit_vision"
    assert "ConfigurationError" in report.meta["degrade_reason"]
    assert narrative.calls == []


async def test_submission_failure_degrades_without_polling(clock):
    vision = FakeVision(clock=clock, submit_error=SubmissionError("401 invalid key"))

    report = await _coordinator(clock, vision).run(_request())

    assert report.degraded is True
    assert report.meta["failed_stage"] == "submit_vision"
    assert vision.poll_count == 0
    assert vision.closed


async def test_budget_too_small_to_submit_degrades(clock):
    vision = FakeVision(clock=clock)

    report = await _coordinator(clock, vision, total_budget=7.0).run(_request())

    assert report.degraded is True
    assert "BudgetExceededError" in report.meta["degrade_reason"]
    assert vision.submitted == []


async def test_degraded_reports_are_stable_for_identical_images(clock):
    first = await _coordinator(clock, None).run(_request(image(99)))
    second = await _coordinator(clock, None).run(_request(image(99)))

    assert [s.score for s in first.signals] == [s.score for s in second.signals]
    assert [d.confidence for d in first.dimensions] == [d.confidence for d in second.dimensions]
    assert [s.details for s in first.signals] == [s.details for s in second.signals]
    assert all(len(s.details) == 3 for s in first.signals)


async def test_strict_precheck_rejects_poor_primary_image(clock):
    vision = FakeVision(clock=clock)

    report = await _coordinator(clock, vision, strict_precheck=True).run(_request(image(20)))

    assert report.degraded is True
    assert report.meta["failed_stage"] == "precheck"
    assert vision.submitted == []


async def test_lenient_precheck_only_warns(clock):
    report = await _coordinator(clock, FakeVision(clock=clock)).run(_request(image(20), image(240)))

    assert report.degraded is False
    assert report.precheck.ok is False
    assert report.precheck.warnings == ("TOO_DARK", "TOO_BRIGHT")


# ── narrative enrichment ──────────────────────────────────────────────────────


async def test_narrative_skipped_when_budget_is_low(clock):
    # the single poll eats 22s of the 28s budget
    vision = FakeVision(clock=clock, poll_cost=22.0)
    narrative = FakeNarrative()

    report = await _coordinator(clock, vision, narrative).run(_request())

    assert report.degraded is False
    assert narrative.calls == []
    assert report.meta["narrative_skipped"] == "budget"
    assert all(d.narrative.source == "template" for d in report.dimensions)


async def test_narrative_failure_keeps_templates_and_is_not_degraded(clock):
    narrative = FakeNarrative(error=RuntimeError("429 rate limited"))

    report = await _coordinator(clock, FakeVision(clock=clock), narrative).run(_request())

    _assert_complete(report)
    assert report.degraded is False
    assert report.summary_en == SUMMARY_EN
    assert report.meta["narrative"] == "template"
    assert "429" in report.meta["narrative_error"]


async def test_malformed_narrative_output_keeps_templates(clock):
    narrative = FakeNarrative(body={"summary_en": "no dimensions here"})

    report = await _coordinator(clock, FakeVision(clock=clock), narrative).run(_request())

    assert report.degraded is False
    assert all(d.narrative.source == "template" for d in report.dimensions)


# ── factory ───────────────────────────────────────────────────────────────────


def test_build_coordinator_picks_backends_from_config():
    coordinator = build_coordinator(make_config(anthropic_api_key="ak", openai_api_key="sk"))

    assert isinstance(coordinator._vision, YouCamVisionClient)
    assert isinstance(coordinator._narrative, OpenAINarrativeClient)


def test_build_coordinator_falls_back_to_claude_then_none():
    claude = build_coordinator(make_config(anthropic_api_key="ak"))
    bare = build_coordinator(make_config(youcam_api_key=None))

    assert isinstance(claude._narrative, ClaudeNarrativeClient)
    assert bare._vision is None
    assert bare._narrative is None

async def test_only_vision_stages_get_a_task_backend(clock, monkeypatch):
    vision = FakeVision(clock=clock)
    coordinator = _coordinator(clock, vision, FakeNarrative())
    seen = []
    build = coordinator._tasks

    def spy(backend, stage, call_timeout):
        seen.append((backend, stage))
        return build(backend, stage, call_timeout)

    monkeypatch.setattr(coordinator, "_tasks", spy)

    report = await coordinator.run(_request())

    assert report.meta["narrative"] == "vendor"
    assert seen == [
        (vision, PipelineStage.SUBMIT_VISION),
        (vision, PipelineStage.POLL_VISION),
        (None, PipelineStage.ENRICH_NARRATIVE),
    ]

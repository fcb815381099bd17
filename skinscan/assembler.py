"""ReportAssembler — vendor channels → signals → dimensions → Report.

Both the vendor path and the degraded path end here, so every report carries
the same fixed set of signals and dimensions.
"""
import logging
import math
import time
from dataclasses import dataclass, field, replace
from typing import Any

from skinscan.constants import (
    CHANNEL_KEYS,
    DETAIL_AREA_CHANNELS,
    DIMENSION_IDS,
    DIMENSION_TITLES,
    DIMENSION_WEIGHTS,
    MISSING_CHANNEL_SCORE,
    MSG_BAD_OVERRIDE,
    MSG_MISSING_CHANNEL,
    SIGNAL_DETAILS,
    SIGNAL_FORMULAS,
    SIGNAL_IDS,
    SIGNAL_PRIORITY,
    SIGNAL_TITLES,
    SIGNAL_TITLES_ZH,
    SOURCE_VENDOR,
    TONE_DEVIATION,
    TONE_DEVIATION_MIN,
    TONE_STABLE,
    TONE_STABLE_MIN,
    TONE_THRESHOLD,
)
from skinscan.errors import NarrativeEnrichmentError
from skinscan.fallback import confidence, jitter
from skinscan.models import (
    ChannelReading,
    MetricSignal,
    NarrativePayload,
    PrecheckResult,
    Report,
    ReportDimension,
    ScanRequest,
    SignalDetail,
)
from skinscan.templates import template_for

logger = logging.getLogger(__name__)


# ── pure helpers ──────────────────────────────────────────────────────────────


def clamp_score(x: Any) -> int:
    try:
        n = float(x)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(n):
        return 0
    return max(0, min(100, round(n)))


def _number(x: Any, default: float = 0.0) -> float:
    try:
        n = float(x)
    except (TypeError, ValueError):
        return default
    return n if math.isfinite(n) else default


def _reading(entry: dict[str, Any]) -> ChannelReading | None:
    ui = entry.get("ui_score", entry.get("uiScore"))
    raw = entry.get("raw_score", entry.get("rawScore"))
    if ui is None or raw is None:
        return None
    masks = entry.get("mask_urls") or entry.get("output_mask_name") or []
    masks = [masks] if isinstance(masks, str) else masks
    return ChannelReading(ui=_number(ui), raw=_number(raw), masks=tuple(map(str, masks)))


def extract_channels(body: dict[str, Any]) -> dict[str, ChannelReading]:
    """Collect every channel reading from a finished vendor task body."""
    results = ((body or {}).get("data") or {}).get("results") or {}
    channels: dict[str, ChannelReading] = {}

    for entry in results.get("output") or []:
        match entry:
            case {"type": kind}:
                reading = _reading(entry) or ChannelReading(
                    ui=_number(entry.get("ui_score")), raw=_number(entry.get("raw_score"))
                )
                channels[str(kind)] = reading
            case _:
                pass

    score_info = results.get("score_info") or results.get("scoreInfo") or {}
    for key, value in (score_info.items() if isinstance(score_info, dict) else ()):
        if not isinstance(value, dict):
            continue
        match (_reading(value), value.get("whole")):
            case (ChannelReading() as reading, _):
                channels[key] = reading
            case (None, dict() as whole) if _reading(whole):
                channels[key] = _reading(whole)
            case _:
                for area, sub in value.items():
                    if isinstance(sub, dict) and (reading := _reading(sub)):
                        channels[f"{key}.{area}"] = reading
    return channels


@dataclass(frozen=True)
class NarrativeOverrides:
    dimensions: dict[str, tuple[NarrativePayload, float | None]] = field(default_factory=dict)
    summary_en: str | None = None
    summary_zh: str | None = None


def _text(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None


def parse_overrides(body: Any) -> NarrativeOverrides:
    """Validate narrative vendor output. Malformed entries are dropped one by one."""
    match body:
        case {"dimensions": list() as entries}:
            pass
        case _:
            raise NarrativeEnrichmentError("narrative output has no dimensions list")

    accepted: dict[str, tuple[NarrativePayload, float | None]] = {}
    for entry in entries:
        match entry:
            case {"id": str() as dim_id} if dim_id in DIMENSION_IDS:
                pass
            case _:
                logger.warning(MSG_BAD_OVERRIDE, entry.get("id") if isinstance(entry, dict) else entry)
                continue
        finding, mechanism, action = (_text(entry.get(k)) for k in ("finding", "mechanism", "action"))
        if not (finding and mechanism and action):
            logger.warning(MSG_BAD_OVERRIDE, dim_id)
            continue
        match entry.get("confidence"):
            case bool():
                conf = None
            case int() | float() as c if 0 <= c <= 1:
                conf = float(c)
            case _:
                conf = None
        accepted[dim_id] = (
            NarrativePayload(finding=finding, mechanism=mechanism, action=action, source=SOURCE_VENDOR),
            conf,
        )

    if not accepted:
        raise NarrativeEnrichmentError("narrative output had no usable dimension entries")
    return NarrativeOverrides(
        dimensions=accepted,
        summary_en=_text(body.get("summary_en")),
        summary_zh=_text(body.get("summary_zh")),
    )


# ── assembler ─────────────────────────────────────────────────────────────────


class ReportAssembler:

    def __init__(
        self,
        stable_min: int = TONE_STABLE_MIN,
        deviation_min: int = TONE_DEVIATION_MIN,
        missing_score: int = MISSING_CHANNEL_SCORE,
    ) -> None:
        self._stable_min = stable_min
        self._deviation_min = deviation_min
        self._missing_score = missing_score

    def tone_for(self, score: int) -> str:
        match score:
            case s if s >= self._stable_min:
                return TONE_STABLE
            case s if s >= self._deviation_min:
                return TONE_DEVIATION
            case _:
                return TONE_THRESHOLD

    def _resolve(self, channels: dict[str, ChannelReading], name: str) -> ChannelReading:
        for key in CHANNEL_KEYS[name]:
            if key in channels:
                return channels[key]
        logger.warning(MSG_MISSING_CHANNEL, name, self._missing_score)
        return ChannelReading(ui=self._missing_score, raw=self._missing_score)

    def resolvable(self, channels: dict[str, ChannelReading]) -> tuple[str, ...]:
        """Formula inputs the vendor actually returned, under any alias."""
        return tuple(
            name for name, keys in CHANNEL_KEYS.items() if any(key in channels for key in keys)
        )

    def derive_signals(self, channels: dict[str, ChannelReading]) -> list[MetricSignal]:
        """Apply the fixed per-signal formulas. Always returns every signal, clamped."""
        resolved = {name: self._resolve(channels, name) for name in CHANNEL_KEYS}
        signals = []
        for signal_id in SIGNAL_IDS:
            terms = SIGNAL_FORMULAS[signal_id]
            value = sum(
                weight * ((100 - clamp_score(resolved[ch].ui)) if inverted else clamp_score(resolved[ch].ui))
                for ch, weight, inverted in terms
            )
            match terms:
                case ((channel, _, _),):
                    raw, overlays = resolved[channel].raw, resolved[channel].masks
                case _:
                    raw, overlays = value, ()
            signals.append(MetricSignal(
                id=signal_id,
                title=SIGNAL_TITLES[signal_id],
                score=clamp_score(value),
                raw_score=raw,
                overlays=overlays,
                title_zh=SIGNAL_TITLES_ZH[signal_id],
                priority=SIGNAL_PRIORITY[signal_id],
            ))
        return signals

    def _detail(
        self,
        signal_id: str,
        spec: tuple,
        scores: dict[str, int],
        seed: str,
        channels: dict[str, ChannelReading],
    ) -> SignalDetail:
        label_en, label_zh, recipe = spec
        match recipe:
            case (source, float() as factor, bool() as inverted, int() as amp):
                area = DETAIL_AREA_CHANNELS.get((signal_id, label_en))
                if area in channels:
                    value = clamp_score(channels[area].ui)
                else:
                    base = scores.get(source, self._missing_score) * factor
                    base = 100 - base if inverted else base
                    value = clamp_score(jitter(base, seed, f"{signal_id}:{label_en}", amp))
            case (source, tuple() as bands, str() as fallback):
                score = scores.get(source, self._missing_score)
                value = next((label for above, label in bands if score > above), fallback)
            case _:
                raise ValueError(f"unknown detail recipe for {signal_id}: {recipe!r}")
        return SignalDetail(label_en=label_en, label_zh=label_zh, value=value)

    def attach_details(
        self,
        signals: list[MetricSignal],
        seed: str,
        channels: dict[str, ChannelReading] | None = None,
    ) -> list[MetricSignal]:
        """Fill the three sub-metric details of every signal.

        Numeric details are jittered around the signal scores with ``seed``.
        Per-area vendor readings (pore and wrinkle zones) replace them when present.
        """
        scores = {s.id: s.score for s in signals}
        channels = channels or {}
        return [
            replace(
                s,
                details=tuple(
                    self._detail(s.id, spec, scores, seed, channels) for spec in SIGNAL_DETAILS[s.id]
                ),
            )
            for s in signals
        ]

    def derive_dimensions(
        self,
        signals: list[MetricSignal],
        seed: str,
        overrides: NarrativeOverrides | None = None,
    ) -> list[ReportDimension]:
        """Group signals into the fixed dimension set. Never fails."""
        by_id = {s.id: s.score for s in signals}
        vendor = overrides.dimensions if overrides else {}
        dimensions = []
        for dim_id in DIMENSION_IDS:
            weights = DIMENSION_WEIGHTS[dim_id]
            score = clamp_score(sum(w * by_id.get(sig, self._missing_score) for sig, w in weights.items()))
            title = DIMENSION_TITLES[dim_id]
            match vendor.get(dim_id):
                case (NarrativePayload() as narrative, float() as conf):
                    pass
                case (NarrativePayload() as narrative, None):
                    conf = confidence(f"{seed}:{dim_id}", score)
                case _:
                    narrative = template_for(dim_id, title)
                    conf = confidence(f"{seed}:{dim_id}", score)
            dimensions.append(ReportDimension(
                id=dim_id,
                title=title,
                score=score,
                tone=self.tone_for(score),
                narrative=narrative,
                confidence=conf,
                signals=tuple(weights),
            ))
        return dimensions

    def apply_overrides(
        self,
        dimensions: list[ReportDimension],
        signals: list[MetricSignal],
        seed: str,
        overrides: NarrativeOverrides,
    ) -> list[ReportDimension]:
        return self.derive_dimensions(signals, seed, overrides) if overrides.dimensions else dimensions

    @staticmethod
    def metrics_payload(dimensions: list[ReportDimension], signals: list[MetricSignal]) -> list[dict[str, Any]]:
        """Structured input for the narrative vendor."""
        by_id = {s.id: s for s in signals}
        return [
            {
                "id": d.id,
                "title": d.title,
                "score": d.score,
                "tone": d.tone,
                "signals": [
                    {
                        "id": sid,
                        "score": by_id[sid].score,
                        "details": [
                            {"label": detail.label_en, "value": detail.value} for detail in by_id[sid].details
                        ],
                    }
                    for sid in d.signals
                    if sid in by_id
                ],
            }
            for d in dimensions
        ]

    @staticmethod
    def build_report(
        request: ScanRequest,
        signals: list[MetricSignal],
        dimensions: list[ReportDimension],
        *,
        degraded: bool,
        precheck: PrecheckResult,
        summary_en: str,
        summary_zh: str,
        meta: dict[str, Any],
    ) -> Report:
        return Report(
            request_id=request.request_id,
            produced_at=time.time(),
            degraded=degraded,
            signals=tuple(signals),
            dimensions=tuple(dimensions),
            summary_en=summary_en,
            summary_zh=summary_zh,
            precheck=precheck,
            meta=meta,
        )

"""DegradedFallbackSynthesizer — seed-pure synthetic signals for degraded reports.

The same seed always yields the same signals, so a user retrying under a full
vendor outage sees a stable reading, and tests can pin exact values.
"""
from skinscan.constants import (
    CONFIDENCE_BASE,
    CONFIDENCE_BOOST,
    CONFIDENCE_BOOST_ABOVE,
    CONFIDENCE_BOOST_BELOW,
    CONFIDENCE_SPAN,
    FNV_OFFSET,
    FNV_PRIME,
    SIGNAL_IDS,
    SIGNAL_PRIORITY,
    SIGNAL_TITLES,
    SIGNAL_TITLES_ZH,
    SYNTH_SCORE_HIGH,
    SYNTH_SCORE_LOW,
)
from skinscan.models import MetricSignal


def fnv1a32(text: str) -> int:
    """32-bit FNV-1a over the UTF-16 code units of ``text``."""
    h = FNV_OFFSET
    encoded = text.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        h ^= encoded[i] | (encoded[i + 1] << 8)
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return h


def _unit(seed: str, key: str) -> float:
    return (fnv1a32(f"{seed}:{key}") % 1000) / 1000


def jitter(base: float, seed: str, key: str, amp: float) -> int:
    return round(base + (_unit(seed, key) - 0.5) * 2 * amp)


def confidence(seed: str, primary: int) -> float:
    base = CONFIDENCE_BASE + _unit(seed, "conf") * CONFIDENCE_SPAN
    boost = CONFIDENCE_BOOST if primary > CONFIDENCE_BOOST_ABOVE or primary < CONFIDENCE_BOOST_BELOW else 0.0
    return round(base + boost, 2)


class DegradedFallbackSynthesizer:

    def __init__(self, low: int = SYNTH_SCORE_LOW, high: int = SYNTH_SCORE_HIGH) -> None:
        if not 0 <= low <= high <= 100:
            raise ValueError("synthesizer bounds must satisfy 0 <= low <= high <= 100")
        self._low = low
        self._high = high

    def synthesize(self, seed: str) -> list[MetricSignal]:
        span = self._high - self._low
        signals = []
        for channel in SIGNAL_IDS:
            h = fnv1a32(f"{seed}:{channel}")
            score = round(self._low + (h % 1000) / 1000 * span)
            raw = round(self._low + ((h >> 12) % 10000) / 10000 * span, 2)
            signals.append(MetricSignal(
                id=channel,
                title=SIGNAL_TITLES[channel],
                score=score,
                raw_score=raw,
                title_zh=SIGNAL_TITLES_ZH[channel],
                priority=SIGNAL_PRIORITY[channel],
            ))
        return signals

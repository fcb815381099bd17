"""Cheap image-quality precheck run before any remote call."""
from skinscan.constants import (
    PRECHECK_BRIGHT_ABOVE,
    PRECHECK_DARK_BELOW,
    PRECHECK_DEFAULT_SIGNAL,
    PRECHECK_MIN_KB,
    PRECHECK_SAMPLE_STRIDE,
    TIP_LOW_RESOLUTION,
    TIP_TOO_BRIGHT,
    TIP_TOO_DARK,
    TIP_WHITE_BALANCE,
    WARN_LOW_RESOLUTION,
    WARN_TOO_BRIGHT,
    WARN_TOO_DARK,
)
from skinscan.models import ImageInput, PrecheckResult


def quick_precheck(image: ImageInput) -> PrecheckResult:
    warnings: list[str] = []
    tips: list[str] = []

    if image.size / 1024 < PRECHECK_MIN_KB:
        warnings.append(WARN_LOW_RESOLUTION)
        tips.append(TIP_LOW_RESOLUTION)

    # mean of a strided byte sample is a rough proxy for exposure
    sample = image.data[::PRECHECK_SAMPLE_STRIDE]
    avg = sum(sample) / len(sample) if sample else PRECHECK_DEFAULT_SIGNAL

    if avg < PRECHECK_DARK_BELOW:
        warnings.append(WARN_TOO_DARK)
        tips.append(TIP_TOO_DARK)
    if avg > PRECHECK_BRIGHT_ABOVE:
        warnings.append(WARN_TOO_BRIGHT)
        tips.append(TIP_TOO_BRIGHT)

    tips.append(TIP_WHITE_BALANCE)
    return PrecheckResult(ok=not warnings, avg_signal=avg, warnings=tuple(warnings), tips=tuple(tips))


def merge_prechecks(results: list[PrecheckResult]) -> PrecheckResult:
    """Fold per-image results into one, keeping first-seen order and dropping duplicates."""
    warnings = dict.fromkeys(w for r in results for w in r.warnings)
    tips = dict.fromkeys(t for r in results for t in r.tips)
    avg = results[0].avg_signal if results else PRECHECK_DEFAULT_SIGNAL
    return PrecheckResult(
        ok=all(r.ok for r in results),
        avg_signal=avg,
        warnings=tuple(warnings),
        tips=tuple(tips),
    )

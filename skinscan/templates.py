"""Static per-dimension narrative used whenever no vendor narrative is available."""
from skinscan.constants import SOURCE_TEMPLATE
from skinscan.models import NarrativePayload

DIMENSION_TEMPLATES: dict[str, tuple[str, str, str]] = {
    "surface": (
        "Surface signal registers near the lower cohort threshold, indicating measurable "
        "irregularity in stratum corneum integrity. Micro-roughness clusters concentrate in "
        "high-expression zones.",
        "Uneven desquamation cadence raises light scatter, which reads as dullness and lowers "
        "the uptake efficiency of later skincare layers.",
        "Prioritize barrier re-stabilization with ceramide-dominant formulations and humectant "
        "layering. Re-scan every two weeks; smoothness typically shifts within 18–24 days "
        "(model projection, not a guarantee).",
    ),
    "barrier": (
        "Retention metrics sit below the optimal reference band, signalling reduced "
        "water-binding capacity and elevated trans-epidermal water loss.",
        "Surface hydration shows an acute deficit while the deep reservoir keeps partial "
        "function, a pattern that points at barrier function rather than systemic dehydration.",
        "Stack ceramides with humectants (hyaluronic acid, glycerin, betaine). Expect a 14–21 "
        "day TEWL normalization window; re-assess every two weeks.",
    ),
}

GENERIC_TEMPLATE: tuple[str, str, str] = (
    "The {title} dimension reflects multi-signal extraction from high-resolution imaging. "
    "The current score sits at a stable baseline with minor variance in localized zones.",
    "Member signals stay inside their normal fluctuation band and do not form a cascade "
    "risk; this is a monitoring priority rather than an intervention target.",
    "Maintain the current routine with a consistency-first approach. Expect ±3–5 points of "
    "natural fluctuation over 30 days and re-scan monthly.",
)


def template_for(dimension_id: str, title: str) -> NarrativePayload:
    match DIMENSION_TEMPLATES.get(dimension_id):
        case (finding, mechanism, action):
            pass
        case _:
            finding, mechanism, action = (
                part.format(title=title.lower()) for part in GENERIC_TEMPLATE
            )
    return NarrativePayload(
        finding=finding, mechanism=mechanism, action=action, source=SOURCE_TEMPLATE
    )

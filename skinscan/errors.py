"""Error taxonomy for the scan pipeline.

Only ValidationError reaches the caller as a client error. Everything else is
absorbed by the coordinator into a degraded report.
"""


class SkinScanError(Exception):
    """Base for every error the pipeline raises on purpose."""


class ValidationError(SkinScanError):
    """Bad or missing input. Rejected before any remote call."""


class ConfigurationError(SkinScanError):
    """A required credential or setting is absent or malformed."""


class SubmissionError(SkinScanError):
    """The vendor rejected job creation or returned a malformed body."""


class VendorTerminalError(SkinScanError):
    """The vendor reported a terminal error status for a job."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class TransientTransportError(SkinScanError):
    """Network failure or per-call timeout during a single call."""


class TaskTimeoutError(SkinScanError):
    """The poll ceiling elapsed before the job reached a terminal state."""


class BudgetExceededError(SkinScanError):
    """Not enough wall-clock budget left to safely start a stage."""


class NarrativeEnrichmentError(SkinScanError):
    """Narrative enrichment failed. Only narrative content degrades."""


class PrecheckRejectedError(SkinScanError):
    """The primary image failed the quality precheck in strict mode."""

from dataclasses import dataclass
from typing import Optional
import os
from dotenv import load_dotenv

from skinscan.constants import (
    CALL_TIMEOUT_SECONDS,
    CLAUDE_NARRATIVE_MODEL,
    NARRATIVE_CALL_TIMEOUT_SECONDS,
    OPENAI_NARRATIVE_MODEL,
    RESERVED_TAIL_SECONDS,
    TONE_DEVIATION_MIN,
    TONE_STABLE_MIN,
    TOTAL_BUDGET_SECONDS,
    YOUCAM_BASE_URL,
)
from skinscan.errors import ConfigurationError


def _parse_float(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Config:
    log_level: str
    host: str
    port: int
    total_budget: float
    call_timeout: float
    narrative_timeout: float
    youcam_api_key: Optional[str]
    youcam_base_url: str
    openai_api_key: Optional[str]
    anthropic_api_key: Optional[str]
    openai_model: str = OPENAI_NARRATIVE_MODEL
    claude_model: str = CLAUDE_NARRATIVE_MODEL
    tone_stable_min: int = TONE_STABLE_MIN
    tone_deviation_min: int = TONE_DEVIATION_MIN
    strict_precheck: bool = False

    @classmethod
    def from_env(cls) -> "Config":
        load_dotenv()

        log_level = os.getenv("LOG_LEVEL", "INFO")
        host = os.getenv("HOST", "0.0.0.0")
        port = os.getenv("PORT", "8000")
        total_budget = os.getenv("SCAN_TOTAL_BUDGET", str(TOTAL_BUDGET_SECONDS))
        call_timeout = os.getenv("SCAN_CALL_TIMEOUT", str(CALL_TIMEOUT_SECONDS))
        narrative_timeout = os.getenv("NARRATIVE_TIMEOUT", str(NARRATIVE_CALL_TIMEOUT_SECONDS))
        youcam_api_key = os.getenv("YOUCAM_API_KEY") or None
        youcam_base_url = os.getenv("YOUCAM_BASE_URL") or YOUCAM_BASE_URL
        openai_api_key = os.getenv("OPENAI_API_KEY") or None
        anthropic_api_key = os.getenv("ANTHROPIC_API_KEY") or None
        openai_model = os.getenv("OPENAI_NARRATIVE_MODEL") or OPENAI_NARRATIVE_MODEL
        claude_model = os.getenv("CLAUDE_NARRATIVE_MODEL") or CLAUDE_NARRATIVE_MODEL
        stable_min = os.getenv("TONE_STABLE_MIN", str(TONE_STABLE_MIN))
        deviation_min = os.getenv("TONE_DEVIATION_MIN", str(TONE_DEVIATION_MIN))
        strict = os.getenv("STRICT_PRECHECK", "0")

        return cls._validate(
            log_level=log_level,
            host=host,
            port=_parse_int("PORT", port),
            total_budget=_parse_float("SCAN_TOTAL_BUDGET", total_budget),
            call_timeout=_parse_float("SCAN_CALL_TIMEOUT", call_timeout),
            narrative_timeout=_parse_float("NARRATIVE_TIMEOUT", narrative_timeout),
            youcam_api_key=youcam_api_key,
            youcam_base_url=youcam_base_url.rstrip("/"),
            openai_api_key=openai_api_key,
            anthropic_api_key=anthropic_api_key,
            openai_model=openai_model,
            claude_model=claude_model,
            tone_stable_min=_parse_int("TONE_STABLE_MIN", stable_min),
            tone_deviation_min=_parse_int("TONE_DEVIATION_MIN", deviation_min),
            strict_precheck=strict.strip().lower() in ("1", "true", "yes"),
        )

    @staticmethod
    def _validate(
        log_level: str,
        host: str,
        port: int,
        total_budget: float,
        call_timeout: float,
        narrative_timeout: float,
        youcam_api_key: Optional[str],
        youcam_base_url: str,
        openai_api_key: Optional[str],
        anthropic_api_key: Optional[str],
        openai_model: str,
        claude_model: str,
        tone_stable_min: int,
        tone_deviation_min: int,
        strict_precheck: bool,
    ) -> "Config":
        match total_budget:
            case b if b <= RESERVED_TAIL_SECONDS:
                raise ConfigurationError(
                    f"SCAN_TOTAL_BUDGET must exceed the reserved tail ({RESERVED_TAIL_SECONDS}s)"
                )
            case _:
                pass

        match (call_timeout, narrative_timeout):
            case (call, narrative) if call <= 0 or narrative <= 0:
                raise ConfigurationError("SCAN_CALL_TIMEOUT and NARRATIVE_TIMEOUT must be positive")
            case _:
                pass

        match (tone_deviation_min, tone_stable_min):
            case (low, high) if not 0 <= low <= high <= 100:
                raise ConfigurationError(
                    "Tone bands must satisfy 0 <= TONE_DEVIATION_MIN <= TONE_STABLE_MIN <= 100"
                )
            case _:
                pass

        return Config(
            log_level=log_level,
            host=host,
            port=port,
            total_budget=total_budget,
            call_timeout=call_timeout,
            narrative_timeout=narrative_timeout,
            youcam_api_key=youcam_api_key,
            youcam_base_url=youcam_base_url,
            openai_api_key=openai_api_key,
            anthropic_api_key=anthropic_api_key,
            openai_model=openai_model,
            claude_model=claude_model,
            tone_stable_min=tone_stable_min,
            tone_deviation_min=tone_deviation_min,
            strict_precheck=strict_precheck,
        )

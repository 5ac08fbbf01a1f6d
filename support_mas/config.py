"""
Centralized configuration with environment variable overrides.

Escalation thresholds, customer-facing fallback messages, retry counts
and API binding are configurable here. Nothing is hardcoded in the
orchestration logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from support_mas.logging_context import LOG_DATE_FORMAT, LOG_FORMAT, install_session_filter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class EscalationConfig:
    """Thresholds and messages for human takeover."""

    intent_diversity_threshold: int = _safe_int("INTENT_DIVERSITY_THRESHOLD", "3")
    max_tool_failures: int = _safe_int("MAX_TOOL_FAILURES", "2")
    ack_message: str = os.getenv(
        "ESCALATION_ACK_MESSAGE",
        "Thanks for your patience. I'm connecting you with our team, "
        "and a specialist will follow up with you shortly.",
    )


@dataclass(frozen=True)
class RuntimeConfig:
    """Per-message orchestration settings."""

    response_retries: int = _safe_int("RESPONSE_RETRIES", "1")
    blocked_message: str = os.getenv(
        "BLOCKED_MESSAGE",
        "I'm sorry, I can't help with that request here. "
        "Please reach out to our support team by email for further assistance.",
    )


@dataclass(frozen=True)
class ApiConfig:
    """HTTP surface binding."""

    host: str = os.getenv("API_HOST", "127.0.0.1")
    port: int = _safe_int("API_PORT", "3001")


@dataclass(frozen=True)
class EvalConfig:
    """Judge harness targets."""

    target_total_score: float = _safe_float("TARGET_TOTAL_SCORE", "0.90")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    escalation: EscalationConfig = field(default_factory=EscalationConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    evaluation: EvalConfig = field(default_factory=EvalConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    brand_name: str = os.getenv("BRAND_NAME", "NATPAT")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.escalation.intent_diversity_threshold < 2:
        raise ValueError(
            "INTENT_DIVERSITY_THRESHOLD must be >= 2, "
            f"got {config.escalation.intent_diversity_threshold}"
        )
    if config.escalation.max_tool_failures < 1:
        raise ValueError(
            f"MAX_TOOL_FAILURES must be >= 1, got {config.escalation.max_tool_failures}"
        )
    if config.runtime.response_retries < 0:
        raise ValueError(
            f"RESPONSE_RETRIES must be >= 0, got {config.runtime.response_retries}"
        )
    if not 1 <= config.api.port <= 65535:
        raise ValueError(f"API_PORT must be between 1 and 65535, got {config.api.port}")
    if not 0.0 <= config.evaluation.target_total_score <= 1.0:
        raise ValueError(
            "TARGET_TOTAL_SCORE must be between 0.0 and 1.0, "
            f"got {config.evaluation.target_total_score}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    install_session_filter(logging.getLogger().handlers)
    logger.info("Configuration loaded for brand '%s'", config.brand_name)
    return config


# Singleton instance
settings = load_config()

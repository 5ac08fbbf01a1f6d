"""Shared utilities used across the support orchestrator."""

from datetime import datetime, timezone


def normalize_email(value: str) -> str:
    """Normalize an email address for lookups and storage.

    Examples:
        >>> normalize_email("  Baki@LookFor.ai ")
        'baki@lookfor.ai'
    """
    return value.strip().lower()


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)

"""
Structured token extraction from free-text customer messages.

Pure pattern matching with no state. Every occurrence is reported,
duplicates included; de-duplication happens when SessionMemory merges
the result into the session context.
"""

import re
from dataclasses import dataclass, field

_ORDER_NUMBER_RE = re.compile(r"#[A-Za-z0-9]+")
_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")


@dataclass
class ExtractedEntities:
    """Entities found in one message, in order of appearance."""

    order_numbers: list[str] = field(default_factory=list)
    emails: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.order_numbers and not self.emails


def extract_entities(text: str) -> ExtractedEntities:
    """Pull order numbers (``#NP2001002``) and email addresses out of ``text``.

    Examples:
        >>> extract_entities("Is #NP1 the same as #NP1? mail me at a@b.co").order_numbers
        ['#NP1', '#NP1']
    """
    return ExtractedEntities(
        order_numbers=_ORDER_NUMBER_RE.findall(text),
        emails=_EMAIL_RE.findall(text),
    )

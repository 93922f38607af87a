"""
Severity scale shared by every stage of the audit pipeline.

This module is the single source of truth for severity ordering. Filtering,
sorting and gate evaluation all compare severities through rank()/compare()
so that changing the rank table here changes behaviour everywhere at once.
"""

from enum import Enum
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class SeverityLevel(Enum):
    """Canonical severity levels, ordered Critical > High > Medium > Low > Unknown."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNKNOWN = "unknown"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def __str__(self) -> str:
        return self.value


_RANKS: Dict[SeverityLevel, int] = {
    SeverityLevel.CRITICAL: 4,
    SeverityLevel.HIGH: 3,
    SeverityLevel.MEDIUM: 2,
    SeverityLevel.LOW: 1,
    SeverityLevel.UNKNOWN: 0,
}

# Provider wording -> canonical level. Anything else is Unknown.
SEVERITY_SYNONYMS: Dict[str, SeverityLevel] = {
    "critical": SeverityLevel.CRITICAL,
    "high": SeverityLevel.HIGH,
    "medium": SeverityLevel.MEDIUM,
    "moderate": SeverityLevel.MEDIUM,
    "low": SeverityLevel.LOW,
    "minor": SeverityLevel.LOW,
    "unknown": SeverityLevel.UNKNOWN,
}

# Highest first; used for histograms and display ordering.
SEVERITY_LEVELS_DESCENDING = sorted(SeverityLevel, key=lambda level: _RANKS[level], reverse=True)


def rank(level: Optional[SeverityLevel]) -> int:
    """Integer rank of a level. A missing level ranks as Unknown (0)."""
    if level is None:
        return _RANKS[SeverityLevel.UNKNOWN]
    return _RANKS[level]


def lookup(raw: Any) -> Optional[SeverityLevel]:
    """
    Resolve raw provider text through the synonym table.

    Returns None when the text is not a recognised severity word, which lets
    callers tell "explicitly unknown" apart from "not a severity at all".
    """
    if isinstance(raw, SeverityLevel):
        return raw
    if not isinstance(raw, str):
        return None
    return SEVERITY_SYNONYMS.get(raw.strip().lower())


def parse(raw: Any) -> SeverityLevel:
    """
    Normalize raw severity text to a canonical level.

    Case-insensitive; missing, empty or unrecognised input becomes Unknown.
    """
    level = lookup(raw)
    if level is None:
        if raw not in (None, ""):
            logger.debug(f"Unrecognised severity {raw!r}, treating as unknown")
        return SeverityLevel.UNKNOWN
    return level


def compare(a: Optional[SeverityLevel], b: Optional[SeverityLevel]) -> int:
    """Returns 1 if a ranks above b, 0 if equal, -1 if below."""
    rank_a, rank_b = rank(a), rank(b)
    return (rank_a > rank_b) - (rank_a < rank_b)


def meets_threshold(level: Optional[SeverityLevel], threshold: SeverityLevel) -> bool:
    """True if level is at or above threshold."""
    return compare(level, threshold) >= 0

"""
Filtering and ordering of findings by severity.
"""

from typing import Iterable, List, Optional

from .findings import Finding
from .severity import SeverityLevel, meets_threshold, rank


def filter_findings(findings: Iterable[Finding], report_threshold: Optional[SeverityLevel]) -> List[Finding]:
    """
    Keeps findings at or above the report threshold, in their original order.

    A missing threshold is treated as Unknown, which keeps everything.
    """
    threshold = report_threshold or SeverityLevel.UNKNOWN
    return [finding for finding in findings if meets_threshold(finding.severity, threshold)]


def rank_findings(findings: Iterable[Finding]) -> List[Finding]:
    """Most severe first. Equal severities keep their encounter order (sorted() is stable)."""
    return sorted(findings, key=lambda finding: rank(finding.severity), reverse=True)


def filter_and_rank(findings: Iterable[Finding], report_threshold: Optional[SeverityLevel]) -> List[Finding]:
    return rank_findings(filter_findings(findings, report_threshold))

"""
Canonical vulnerability records and run thresholds.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union
import logging

from .severity import SeverityLevel, lookup, parse

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"

# Values accepted as "gate disabled" for the fail threshold.
DISABLED_THRESHOLD_VALUES = {"", "none", "off", "disabled", "false", "null"}


class FindingSource(Enum):
    """Which audit tool or provider produced a raw advisory."""
    COMPOSER = "composer"
    NPM = "npm"
    CUSTOM = "custom"

    @property
    def display_name(self) -> str:
        return {"composer": "Composer", "npm": "NPM", "custom": "Custom CVE API"}[self.value]


@dataclass
class Finding:
    """
    A single normalized vulnerability.

    Everything except `explanation` and `custom_info` is fixed once the
    normalizer creates the record. Enrichment only ever fills those two fields
    when they are still empty; use fill_explanation()/fill_custom_info().
    """
    source: FindingSource
    package_name: str = NOT_AVAILABLE
    cve: Optional[str] = None
    title: str = NOT_AVAILABLE
    severity: SeverityLevel = SeverityLevel.UNKNOWN
    affected_versions: str = NOT_AVAILABLE
    link: Optional[str] = None
    fix_available: Union[str, bool, None] = None
    explanation: Optional[str] = None
    custom_info: Optional[Dict[str, Any]] = None
    raw_data: Dict[str, Any] = field(default_factory=dict)

    def fill_explanation(self, explanation: Optional[str]) -> bool:
        """Sets the explanation if none is present. Returns True if it was set."""
        if self.explanation or not explanation:
            return False
        self.explanation = explanation
        return True

    def fill_custom_info(self, custom_info: Optional[Dict[str, Any]]) -> bool:
        """Sets custom info if none is present. Returns True if it was set."""
        if self.custom_info or not custom_info:
            return False
        self.custom_info = custom_info
        return True

    @property
    def has_cve(self) -> bool:
        """True when the advisory carries a usable identifier (not the N/A sentinel)."""
        return bool(self.cve) and self.cve != NOT_AVAILABLE

    @property
    def identifier(self) -> str:
        """Short label for log messages."""
        return f"{self.source.value}:{self.package_name}:{self.cve or self.title}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source.value,
            "package_name": self.package_name,
            "cve": self.cve,
            "title": self.title,
            "severity": self.severity.value,
            "affected_versions": self.affected_versions,
            "link": self.link,
            "fix_available": self.fix_available,
            "explanation": self.explanation,
            "custom_info": self.custom_info,
        }


@dataclass(frozen=True)
class ReportThresholds:
    """
    Severity thresholds for one run.

    report: minimum severity for a finding to be reported.
    fail:   minimum severity that fails the gate; None disables severity gating.
    """
    report: SeverityLevel = SeverityLevel.MEDIUM
    fail: Optional[SeverityLevel] = SeverityLevel.HIGH

    @classmethod
    def from_strings(cls, report: Optional[str], fail: Optional[str]) -> "ReportThresholds":
        """
        Build thresholds from configuration text.

        An unrecognised report threshold behaves like Unknown (everything is
        reported). An empty, disabled or unrecognised fail threshold turns
        severity gating off.
        """
        report_level = parse(report) if report else SeverityLevel.MEDIUM

        fail_level = None
        if fail is not None and fail.strip().lower() not in DISABLED_THRESHOLD_VALUES:
            fail_level = lookup(fail)
            if fail_level is None:
                logger.warning(f"Fail severity '{fail}' is not a recognised severity; severity gating is disabled.")

        return cls(report=report_level, fail=fail_level)

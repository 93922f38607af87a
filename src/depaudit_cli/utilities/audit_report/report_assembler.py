"""
Turns filtered, ranked findings into a render-agnostic Report.

Nothing here prints or sends anything; table/JSON renderers and the
notifiers consume the Report structure.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .findings import Finding, NOT_AVAILABLE
from .severity import SEVERITY_LEVELS_DESCENDING, SeverityLevel

TRUNCATE_LIMIT = 50
ELLIPSIS = "..."

REPORT_HEADERS = [
    "Severity",
    "Package",
    "CVE",
    "Title",
    "Affected Versions",
    "Link",
    "Explanation (AI)",
    "Custom Info",
]


def truncate(text: Optional[str], limit: int = TRUNCATE_LIMIT) -> str:
    """
    Shortens text longer than limit to exactly limit characters, ending in "...".
    """
    if text is None:
        return NOT_AVAILABLE
    text = str(text)
    if len(text) > limit:
        return text[:limit - len(ELLIPSIS)] + ELLIPSIS
    return text


def format_custom_info(custom_info: Optional[Dict[str, Any]]) -> str:
    """
    Status and solution hint from a custom CVE record.

    Other keys are ignored, so a record with neither renders as an empty string.
    """
    if not custom_info:
        return NOT_AVAILABLE
    details = []
    if custom_info.get("vuln_status") is not None:
        details.append(f"Status: {custom_info['vuln_status']}")
    if custom_info.get("ai_solution") is not None:
        details.append(f"Solution Hint: {truncate(custom_info['ai_solution'])}")
    return " | ".join(details)


@dataclass
class ReportRow:
    severity: str
    package: str
    cve: str
    title: str
    affected_versions: str
    link: str
    explanation: str
    custom_info: str

    @classmethod
    def from_finding(cls, finding: Finding) -> "ReportRow":
        return cls(
            severity=finding.severity.value.upper(),
            package=finding.package_name or NOT_AVAILABLE,
            cve=finding.cve or NOT_AVAILABLE,
            title=truncate(finding.title or NOT_AVAILABLE),
            affected_versions=finding.affected_versions or NOT_AVAILABLE,
            link=finding.link or NOT_AVAILABLE,
            explanation=truncate(finding.explanation or NOT_AVAILABLE),
            custom_info=format_custom_info(finding.custom_info),
        )

    def as_list(self) -> List[str]:
        return [
            self.severity,
            self.package,
            self.cve,
            self.title,
            self.affected_versions,
            self.link,
            self.explanation,
            self.custom_info,
        ]


@dataclass
class Report:
    """
    Everything a renderer or notifier needs about one run's reported findings.

    `findings` holds the same objects, in the same order, as `rows`.
    """
    report_threshold: SeverityLevel
    findings: List[Finding] = field(default_factory=list)
    rows: List[ReportRow] = field(default_factory=list)
    severity_counts: Dict[str, int] = field(default_factory=dict)
    summary: str = ""
    notification_body: str = ""
    generated_at: str = ""

    @property
    def total(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def headers(self) -> List[str]:
        return list(REPORT_HEADERS)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "report_threshold": self.report_threshold.value,
            "total_vulnerabilities": self.total,
            "summary": self.summary,
            "severity_breakdown": dict(self.severity_counts),
            "vulnerabilities": [finding.to_dict() for finding in self.findings],
        }


def count_by_severity(findings: List[Finding]) -> Dict[str, int]:
    """Histogram over all five levels, highest first; zero counts included."""
    counts = {level.value: 0 for level in SEVERITY_LEVELS_DESCENDING}
    for finding in findings:
        counts[finding.severity.value] += 1
    return counts


def build_summary(severity_counts: Dict[str, int], report_threshold: SeverityLevel) -> str:
    total = sum(severity_counts.values())
    if total == 0:
        return f"✅ No vulnerabilities found matching the severity threshold ({report_threshold.value})."

    critical = severity_counts.get(SeverityLevel.CRITICAL.value, 0)
    high = severity_counts.get(SeverityLevel.HIGH.value, 0)
    if critical > 0:
        return (f"🚨 CRITICAL: Found {total} vulnerabilities including {critical} critical issues "
                f"that require immediate attention!")
    if high > 0:
        return (f"⚠️ HIGH PRIORITY: Found {total} vulnerabilities including {high} high-severity issues "
                f"that should be addressed quickly.")
    return f"ℹ️ Found {total} vulnerabilities that should be reviewed and addressed."


def format_notification_line(finding: Finding) -> str:
    return "[{}] {} ({}) - {}".format(
        finding.severity.value.upper(),
        finding.package_name or NOT_AVAILABLE,
        finding.cve or NOT_AVAILABLE,
        finding.title or NOT_AVAILABLE,
    )


def assemble_report(findings: List[Finding], report_threshold: SeverityLevel = SeverityLevel.MEDIUM) -> Report:
    """
    Builds the Report from findings that are already filtered and ranked.

    Row order and notification line order follow the input order.
    """
    severity_counts = count_by_severity(findings)
    return Report(
        report_threshold=report_threshold,
        findings=list(findings),
        rows=[ReportRow.from_finding(finding) for finding in findings],
        severity_counts=severity_counts,
        summary=build_summary(severity_counts, report_threshold),
        notification_body="\n".join(format_notification_line(finding) for finding in findings),
        generated_at=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
    )

"""
Build-fail decision from the fail severity threshold.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .findings import Finding
from .severity import SeverityLevel, lookup, meets_threshold

logger = logging.getLogger(__name__)

GATE_SCOPE_REPORTED = "reported"
GATE_SCOPE_ALL = "all"
GATE_SCOPES = (GATE_SCOPE_REPORTED, GATE_SCOPE_ALL)


@dataclass
class GateResult:
    """Outcome of the severity gate."""
    failed: bool
    threshold: Optional[SeverityLevel]
    scope: str
    matching: int = 0

    @property
    def enabled(self) -> bool:
        return self.threshold is not None

    @property
    def message(self) -> str:
        if not self.enabled:
            return "Severity gate disabled."
        if self.failed:
            return f"{self.matching} finding(s) at or above '{self.threshold.value}' severity."
        return f"No findings at or above '{self.threshold.value}' severity."


def _resolve_threshold(fail_threshold) -> Optional[SeverityLevel]:
    # Accepts a level or raw text; anything unrecognised disables gating.
    if fail_threshold is None:
        return None
    return lookup(fail_threshold)


def should_fail(findings: Iterable[Finding], fail_threshold) -> bool:
    """
    True iff at least one finding is at or above the fail threshold.

    A disabled (None) or unrecognised threshold always passes, even when
    critical findings are present.
    """
    threshold = _resolve_threshold(fail_threshold)
    if threshold is None:
        return False
    return any(meets_threshold(finding.severity, threshold) for finding in findings)


def evaluate_gate(
    reportable: List[Finding],
    all_findings: List[Finding],
    fail_threshold,
    scope: str = GATE_SCOPE_REPORTED
) -> GateResult:
    """
    Evaluates the gate against the reported set (default) or every finding.

    With the default scope a finding excluded by the report threshold can never
    fail the build.
    """
    if scope not in GATE_SCOPES:
        raise ValueError(f"Unknown gate scope '{scope}', expected one of {', '.join(GATE_SCOPES)}")

    threshold = _resolve_threshold(fail_threshold)
    candidates = all_findings if scope == GATE_SCOPE_ALL else reportable
    if threshold is None:
        logger.debug("Severity gate disabled; build will not fail on severity")
        return GateResult(failed=False, threshold=None, scope=scope)

    matching = sum(1 for finding in candidates if meets_threshold(finding.severity, threshold))
    result = GateResult(
        failed=should_fail(candidates, threshold),
        threshold=threshold,
        scope=scope,
        matching=matching,
    )
    logger.debug(f"Gate ({scope}): {result.message}")
    return result

# depaudit_cli/utilities/audit_workflows.py

"""
Orchestration of one audit run: collect raw output per source, then normalize,
enrich, filter, rank, gate and assemble the report.
"""

import argparse
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..exceptions import AllSourcesFailedError, ConfigurationError, FileSystemError, SourceUnavailableError
from ..api import CustomCveAPI
from .audit_tools import AuditTools
from .audit_report.enrichment import EnrichmentProvider, EnrichmentSummary, enrich_findings
from .audit_report.findings import Finding, FindingSource, ReportThresholds
from .audit_report.gates import GATE_SCOPE_REPORTED, GateResult, evaluate_gate
from .audit_report.normalizers import normalize_sources
from .audit_report.ranking import filter_and_rank
from .audit_report.report_assembler import Report, assemble_report
from .enrichment_providers import build_enrichment_providers
from .notifications import EmailSettings, send_notifications
from .report_output import display_report, save_report_to_file

logger = logging.getLogger("depaudit-cli")

COMPOSER_SOURCE_AUDIT = "composer_audit"
COMPOSER_SOURCE_CUSTOM_API = "custom_cve_api"
COMPOSER_SOURCES = (COMPOSER_SOURCE_AUDIT, COMPOSER_SOURCE_CUSTOM_API)

SUPPORTED_AUDITS = ("composer", "npm")

ON_ALL_FAILED_FAIL = "fail"
ON_ALL_FAILED_PASS = "pass"

RawOutput = Union[str, bytes, Dict[str, Any], None]


@dataclass
class SourceOutcome:
    """
    What one audit source produced.

    raw_output None with no error means the source had nothing to audit
    (lockfile missing); that still counts as a successful run.
    """
    source: FindingSource
    raw_output: RawOutput = None
    error: Optional[Exception] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class PipelineResult:
    all_findings: List[Finding]
    reportable: List[Finding]
    report: Report
    gate: GateResult
    source_errors: Dict[str, str] = field(default_factory=dict)
    sources_succeeded: int = 0
    enrichment: Optional[EnrichmentSummary] = None

    @property
    def should_fail(self) -> bool:
        return self.gate.failed

    @property
    def all_sources_failed(self) -> bool:
        return bool(self.source_errors) and self.sources_succeeded == 0


def determine_audits_to_run(params: argparse.Namespace) -> List[str]:
    """
    Resolves --audits plus the --composer/--npm switches into an ordered list.

    Raises:
        ConfigurationError: If an unknown audit name is requested or nothing is selected
    """
    requested = [name.strip().lower() for name in (getattr(params, 'audits', None) or "").split(",") if name.strip()]
    if getattr(params, 'composer', False):
        requested.append("composer")
    if getattr(params, 'npm', False):
        requested.append("npm")

    unknown = [name for name in requested if name not in SUPPORTED_AUDITS]
    if unknown:
        raise ConfigurationError(
            f"Unknown audit(s): {', '.join(unknown)}. Supported audits: {', '.join(SUPPORTED_AUDITS)}"
        )

    audits = [name for name in SUPPORTED_AUDITS if name in requested]
    if not audits:
        raise ConfigurationError("No audits selected. Use --audits, --composer or --npm.")
    return audits


def validate_composer_source(params: argparse.Namespace) -> str:
    """
    Raises:
        ConfigurationError: If the source is unknown, or custom_cve_api is chosen without a URL
    """
    composer_source = getattr(params, 'composer_source', COMPOSER_SOURCE_AUDIT) or COMPOSER_SOURCE_AUDIT
    if composer_source not in COMPOSER_SOURCES:
        raise ConfigurationError(
            f"Unknown Composer data source '{composer_source}'. Expected one of: {', '.join(COMPOSER_SOURCES)}"
        )
    if composer_source == COMPOSER_SOURCE_CUSTOM_API and not getattr(params, 'cve_api_url', None):
        raise ConfigurationError(
            "Composer data source 'custom_cve_api' requires --cve-api-url (or DEPAUDIT_CVE_API_URL)."
        )
    return composer_source


def _collect_composer(params: argparse.Namespace, project_path: str) -> SourceOutcome:
    composer_source = validate_composer_source(params)
    if composer_source == COMPOSER_SOURCE_CUSTOM_API:
        cve_api = CustomCveAPI(
            params.cve_api_url,
            api_token=getattr(params, 'cve_api_token', None),
            auth_type=getattr(params, 'cve_api_auth_type', 'bearer'),
            timeout=getattr(params, 'api_timeout', 30),
        )
        return SourceOutcome(FindingSource.CUSTOM, AuditTools.run_custom_cve_lookup(project_path, cve_api))
    return SourceOutcome(FindingSource.COMPOSER, AuditTools.run_composer_audit(project_path))


def _collect_npm(params: argparse.Namespace, project_path: str) -> SourceOutcome:
    return SourceOutcome(FindingSource.NPM, AuditTools.run_npm_audit(project_path))


def _source_for_audit(audit: str, params: argparse.Namespace) -> FindingSource:
    if audit == "npm":
        return FindingSource.NPM
    if getattr(params, 'composer_source', COMPOSER_SOURCE_AUDIT) == COMPOSER_SOURCE_CUSTOM_API:
        return FindingSource.CUSTOM
    return FindingSource.COMPOSER


COLLECTORS = {
    "composer": _collect_composer,
    "npm": _collect_npm,
}


def collect_audit_outputs(params: argparse.Namespace) -> List[SourceOutcome]:
    """
    Runs every selected audit against params.path.

    A source that cannot run is recorded on its outcome and the others still
    run. Configuration errors are raised before any source runs.
    """
    project_path = os.path.abspath(params.path)
    audits = determine_audits_to_run(params)
    if "composer" in audits:
        validate_composer_source(params)

    outcomes = []
    for audit in audits:
        print(f"\nRunning {audit} audit in {project_path}...")
        try:
            outcome = COLLECTORS[audit](params, project_path)
        except SourceUnavailableError as e:
            logger.warning(f"{audit} audit unavailable: {e.message}")
            outcome = SourceOutcome(_source_for_audit(audit, params), error=e)
        if outcome.raw_output is None and not outcome.failed:
            print(f"No lockfile for {audit}; nothing to audit.")
        outcomes.append(outcome)
    return outcomes


def load_imported_outputs(params: argparse.Namespace) -> List[SourceOutcome]:
    """
    Reads previously captured audit JSON files for import-results.

    Raises:
        FileSystemError: If a file cannot be read
    """
    imports = [
        (FindingSource.COMPOSER, getattr(params, 'composer_json', None)),
        (FindingSource.NPM, getattr(params, 'npm_json', None)),
    ]
    outcomes = []
    for source, path in imports:
        if not path:
            continue
        try:
            with open(path, 'r', encoding='utf-8') as f:
                outcomes.append(SourceOutcome(source, f.read()))
        except (IOError, OSError) as e:
            raise FileSystemError(f"Failed to read {source.display_name} results from {path}: {e}", details={"path": path})
        logger.debug(f"Loaded {source.display_name} audit results from {path}")
    return outcomes


def run_audit_pipeline(
    raw_outputs: Sequence[Tuple[FindingSource, RawOutput]],
    providers: Sequence[EnrichmentProvider],
    thresholds: ReportThresholds,
    gate_scope: str = GATE_SCOPE_REPORTED,
    max_workers: int = 1,
    source_errors: Optional[Dict[str, str]] = None
) -> PipelineResult:
    """
    Normalizes, enriches, filters, ranks, gates and assembles one run.

    A None raw output is a source that ran with nothing to audit. Parse
    failures are recorded next to any collection errors passed in.
    """
    errors = dict(source_errors or {})
    to_normalize = [(source, raw) for source, raw in raw_outputs if raw is not None]
    succeeded = len(raw_outputs) - len(to_normalize)

    findings, parse_failures = normalize_sources(to_normalize)
    for failure in parse_failures:
        errors[failure.source] = failure.message
    succeeded += len(to_normalize) - len(parse_failures)
    logger.info(f"Normalized {len(findings)} findings from {succeeded} source(s)")

    enrichment = enrich_findings(findings, providers, max_workers=max_workers)

    reportable = filter_and_rank(findings, thresholds.report)
    logger.info(f"{len(reportable)} of {len(findings)} findings at or above '{thresholds.report.value}'")

    gate = evaluate_gate(reportable, findings, thresholds.fail, scope=gate_scope)
    report = assemble_report(reportable, thresholds.report)

    return PipelineResult(
        all_findings=findings,
        reportable=reportable,
        report=report,
        gate=gate,
        source_errors=errors,
        sources_succeeded=succeeded,
        enrichment=enrichment,
    )


def run_from_outcomes(
    outcomes: Sequence[SourceOutcome],
    providers: Sequence[EnrichmentProvider],
    params: argparse.Namespace
) -> PipelineResult:
    """Runs the pipeline over collected outcomes and applies --on-all-sources-failed."""
    source_errors = {outcome.source.value: str(outcome.error) for outcome in outcomes if outcome.failed}
    raw_outputs = [(outcome.source, outcome.raw_output) for outcome in outcomes if not outcome.failed]

    result = run_audit_pipeline(
        raw_outputs,
        providers,
        ReportThresholds.from_strings(params.report_severity, params.fail_severity),
        gate_scope=getattr(params, 'gate_scope', GATE_SCOPE_REPORTED),
        max_workers=getattr(params, 'enrichment_workers', 1),
        source_errors=source_errors,
    )

    if result.all_sources_failed:
        if getattr(params, 'on_all_sources_failed', ON_ALL_FAILED_FAIL) == ON_ALL_FAILED_FAIL:
            raise AllSourcesFailedError(
                f"All {len(result.source_errors)} audit source(s) failed; no findings could be produced.",
                failures=result.source_errors,
            )
        logger.warning("All audit sources failed; treating the run as 'nothing to audit'")
    return result


def print_source_warnings(result: PipelineResult) -> None:
    if not result.source_errors:
        return
    print("\n⚠️ Some audit sources did not produce results:")
    for source, message in result.source_errors.items():
        print(f"  - {source}: {message}")


def format_duration(duration_seconds: Optional[Union[int, float]]) -> str:
    """Formats a duration in seconds into a 'X minutes, Y seconds' string."""
    if duration_seconds is None:
        return "N/A"
    try:
        duration_seconds = round(float(duration_seconds))
    except (ValueError, TypeError):
        return "Invalid Duration"

    minutes, seconds = divmod(int(duration_seconds), 60)
    if minutes > 0 and seconds > 0:
        return f"{minutes} minutes, {seconds} seconds"
    elif minutes > 0:
        return f"{minutes} minutes"
    elif seconds == 1:
        return "1 second"
    return f"{seconds} seconds"


def print_operation_summary(params: argparse.Namespace, result: PipelineResult, started_at: float) -> None:
    """Prints a summary of what ran, with which settings, and the gate outcome."""
    print(f"\n--- Operation Summary ---")
    if params.command == 'audit':
        print(f"  - Method: Audit (using --path)")
        print(f"  - Project Path: {getattr(params, 'path', 'N/A')}")
        print(f"  - Composer Data Source: {getattr(params, 'composer_source', COMPOSER_SOURCE_AUDIT)}")
    elif params.command == 'import-results':
        print(f"  - Method: Import Audit Results")
        if getattr(params, 'composer_json', None):
            print(f"  - Composer Results: {params.composer_json}")
        if getattr(params, 'npm_json', None):
            print(f"  - NPM Results: {params.npm_json}")

    print(f"  - Report Severity Threshold: {params.report_severity}")
    print(f"  - Fail Severity Threshold: {params.fail_severity or 'disabled'}")
    print(f"  - Gate Scope: {getattr(params, 'gate_scope', GATE_SCOPE_REPORTED)}")

    print("\nResults:")
    print(f"  - Findings Normalized: {len(result.all_findings)}")
    print(f"  - Findings Reported: {len(result.reportable)}")
    if result.enrichment and result.enrichment.findings:
        print(f"  - AI Explanations Added: {result.enrichment.explanations_added}")
        print(f"  - Custom CVE Records Added: {result.enrichment.custom_info_added}")
    print(f"  - Gate: {'FAILED' if result.gate.failed else 'PASSED'} ({result.gate.message})")
    print(f"  - Duration: {format_duration(time.monotonic() - started_at)}")
    print("------------------------------------")


def build_email_settings(params: argparse.Namespace) -> EmailSettings:
    recipients = [r.strip() for r in (getattr(params, 'email_recipients', None) or "").split(",") if r.strip()]
    return EmailSettings(
        recipients=recipients,
        smtp_host=getattr(params, 'smtp_host', None),
        smtp_port=getattr(params, 'smtp_port', 587),
        smtp_username=getattr(params, 'smtp_username', None),
        smtp_password=getattr(params, 'smtp_password', None),
        sender=getattr(params, 'smtp_from', None),
        use_tls=not getattr(params, 'smtp_no_tls', False),
    )


def report_and_gate(outcomes: Sequence[SourceOutcome], params: argparse.Namespace, started_at: float) -> PipelineResult:
    """
    Shared tail of the audit and import-results commands: run the pipeline,
    render, save, notify and summarize.
    """
    providers = build_enrichment_providers(params)
    result = run_from_outcomes(outcomes, providers, params)

    print_source_warnings(result)
    display_report(result.report, getattr(params, 'format', 'table'))
    if getattr(params, 'output', None):
        save_report_to_file(params.output, result.report)

    send_notifications(
        result.report,
        webhook_url=getattr(params, 'webhook_url', None),
        email_settings=build_email_settings(params),
        silent=getattr(params, 'silent', False),
    )

    print_operation_summary(params, result, started_at)
    return result

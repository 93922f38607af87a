# tests/unit/utilities/test_audit_workflows.py
"""
Tests for audit_workflows: source selection, collection, the end-to-end
pipeline over raw audit output and the shared report/gate tail.
"""

import argparse
import json

import pytest
from unittest.mock import MagicMock, patch

from depaudit_cli.exceptions import (
    AllSourcesFailedError,
    ConfigurationError,
    FileSystemError,
    NetworkError,
    SourceUnavailableError,
)
from depaudit_cli.utilities.audit_report.enrichment import EnrichmentProvider
from depaudit_cli.utilities.audit_report.findings import FindingSource, NOT_AVAILABLE, ReportThresholds
from depaudit_cli.utilities.audit_report.gates import GATE_SCOPE_ALL
from depaudit_cli.utilities.audit_report.severity import SeverityLevel
from depaudit_cli.utilities.audit_tools import AuditTools
from depaudit_cli.utilities.audit_workflows import (
    SourceOutcome,
    build_email_settings,
    collect_audit_outputs,
    determine_audits_to_run,
    format_duration,
    load_imported_outputs,
    report_and_gate,
    run_audit_pipeline,
    run_from_outcomes,
    validate_composer_source,
)

# ============================================================================
# TEST CONSTANTS
# ============================================================================

EMPTY_COMPOSER = '{"advisories": []}'
EMPTY_NPM = '{"auditReportVersion": 2, "vulnerabilities": {}}'


@pytest.fixture
def workflow_params(tmp_path):
    return argparse.Namespace(
        command="audit",
        path=str(tmp_path),
        audits="composer",
        composer=False,
        npm=False,
        composer_source="composer_audit",
        report_severity="medium",
        fail_severity="high",
        gate_scope="reported",
        on_all_sources_failed="fail",
        openai_api_key=None,
        openai_model="gpt-3.5-turbo",
        cve_api_url=None,
        cve_api_token=None,
        cve_api_auth_type="bearer",
        skip_openai=False,
        skip_custom_cve=False,
        api_timeout=30,
        enrichment_workers=1,
        format="table",
        output=None,
        silent=True,
        webhook_url=None,
        email_recipients=None,
        smtp_host=None,
        smtp_port=587,
        smtp_username=None,
        smtp_password=None,
        smtp_from=None,
        smtp_no_tls=False,
        log="INFO",
    )


class FailingExplainer(EnrichmentProvider):
    name = "openai"
    supports_explanation = True

    def try_explain(self, request):
        raise NetworkError("Failed to connect to https://api.openai.com/v1")


# ============================================================================
# SOURCE SELECTION
# ============================================================================

class TestDetermineAuditsToRun:
    def test_default(self, workflow_params):
        assert determine_audits_to_run(workflow_params) == ["composer"]

    def test_comma_separated_and_switches(self, workflow_params):
        workflow_params.audits = " NPM , composer"
        assert determine_audits_to_run(workflow_params) == ["composer", "npm"]

        workflow_params.audits = ""
        workflow_params.npm = True
        assert determine_audits_to_run(workflow_params) == ["npm"]

    def test_unknown_audit(self, workflow_params):
        workflow_params.audits = "composer,pip"
        with pytest.raises(ConfigurationError, match="Unknown audit"):
            determine_audits_to_run(workflow_params)

    def test_nothing_selected(self, workflow_params):
        workflow_params.audits = ""
        with pytest.raises(ConfigurationError, match="No audits selected"):
            determine_audits_to_run(workflow_params)


class TestValidateComposerSource:
    def test_custom_api_requires_url(self, workflow_params):
        workflow_params.composer_source = "custom_cve_api"
        with pytest.raises(ConfigurationError, match="requires --cve-api-url"):
            validate_composer_source(workflow_params)

        workflow_params.cve_api_url = "https://cve.example.com/api"
        assert validate_composer_source(workflow_params) == "custom_cve_api"

    def test_unknown_source(self, workflow_params):
        workflow_params.composer_source = "packagist"
        with pytest.raises(ConfigurationError, match="Unknown Composer data source"):
            validate_composer_source(workflow_params)


# ============================================================================
# COLLECTION
# ============================================================================

class TestCollectAuditOutputs:
    @patch.object(AuditTools, "run_npm_audit", return_value=EMPTY_NPM)
    @patch.object(AuditTools, "run_composer_audit", return_value=EMPTY_COMPOSER)
    def test_runs_selected_audits(self, mock_composer, mock_npm, workflow_params):
        workflow_params.audits = "composer,npm"

        outcomes = collect_audit_outputs(workflow_params)

        assert [o.source for o in outcomes] == [FindingSource.COMPOSER, FindingSource.NPM]
        assert outcomes[0].raw_output == EMPTY_COMPOSER
        assert not any(o.failed for o in outcomes)

    @patch.object(AuditTools, "run_npm_audit", return_value=EMPTY_NPM)
    @patch.object(AuditTools, "run_composer_audit")
    def test_unavailable_source_does_not_stop_others(self, mock_composer, mock_npm, workflow_params):
        mock_composer.side_effect = SourceUnavailableError("composer", "'composer' not found in PATH", code="tool_missing")
        workflow_params.audits = "composer,npm"

        outcomes = collect_audit_outputs(workflow_params)

        assert outcomes[0].failed
        assert outcomes[0].source is FindingSource.COMPOSER
        assert outcomes[1].raw_output == EMPTY_NPM
        mock_npm.assert_called_once()

    @patch.object(AuditTools, "run_custom_cve_lookup", return_value={"advisories": {}})
    def test_custom_cve_api_source(self, mock_lookup, workflow_params):
        workflow_params.composer_source = "custom_cve_api"
        workflow_params.cve_api_url = "https://cve.example.com/api"

        outcomes = collect_audit_outputs(workflow_params)

        assert outcomes[0].source is FindingSource.CUSTOM
        assert outcomes[0].raw_output == {"advisories": {}}
        assert mock_lookup.call_args.args[1].base_url == "https://cve.example.com/api"

    @patch.object(AuditTools, "run_composer_audit")
    def test_configuration_checked_before_running(self, mock_composer, workflow_params):
        workflow_params.composer_source = "custom_cve_api"
        with pytest.raises(ConfigurationError):
            collect_audit_outputs(workflow_params)
        mock_composer.assert_not_called()


class TestLoadImportedOutputs:
    def test_reads_files(self, tmp_path, workflow_params, npm_audit_output):
        npm_file = tmp_path / "npm.json"
        npm_file.write_text(json.dumps(npm_audit_output), encoding="utf-8")
        workflow_params.composer_json = None
        workflow_params.npm_json = str(npm_file)

        outcomes = load_imported_outputs(workflow_params)

        assert len(outcomes) == 1
        assert outcomes[0].source is FindingSource.NPM
        assert json.loads(outcomes[0].raw_output) == npm_audit_output

    def test_unreadable_file(self, tmp_path, workflow_params):
        workflow_params.composer_json = str(tmp_path / "missing.json")
        workflow_params.npm_json = None
        with pytest.raises(FileSystemError, match="Failed to read Composer results"):
            load_imported_outputs(workflow_params)


# ============================================================================
# PIPELINE
# ============================================================================

class TestRunAuditPipeline:
    def test_empty_advisories_pass(self):
        result = run_audit_pipeline(
            [(FindingSource.COMPOSER, EMPTY_COMPOSER), (FindingSource.NPM, EMPTY_NPM)],
            providers=[],
            thresholds=ReportThresholds(),
        )

        assert result.report.is_empty
        assert result.report.summary.startswith("✅ No vulnerabilities found")
        assert result.should_fail is False
        assert result.sources_succeeded == 2

    def test_filters_ranks_and_gates(self, composer_audit_output, npm_audit_output):
        result = run_audit_pipeline(
            [(FindingSource.COMPOSER, composer_audit_output), (FindingSource.NPM, npm_audit_output)],
            providers=[],
            thresholds=ReportThresholds.from_strings("medium", "critical"),
        )

        assert len(result.all_findings) == 4
        assert [f.severity for f in result.reportable] == [
            SeverityLevel.CRITICAL, SeverityLevel.HIGH, SeverityLevel.MEDIUM,
        ]
        assert result.should_fail is True
        assert result.report.total == 3

    def test_failing_enrichment_still_reports(self, composer_audit_output):
        result = run_audit_pipeline(
            [(FindingSource.COMPOSER, composer_audit_output)],
            providers=[FailingExplainer()],
            thresholds=ReportThresholds(),
        )

        assert result.report.total == 2
        assert all(f.explanation is None for f in result.reportable)
        assert all(row.explanation == NOT_AVAILABLE for row in result.report.rows)
        assert result.enrichment.provider_failures == 2

    def test_parse_failure_is_recorded(self, composer_audit_output):
        result = run_audit_pipeline(
            [(FindingSource.NPM, "npm ERR! code ENOLOCK"), (FindingSource.COMPOSER, composer_audit_output)],
            providers=[],
            thresholds=ReportThresholds(),
        )

        assert "npm" in result.source_errors
        assert result.sources_succeeded == 1
        assert result.report.total == 2

    def test_gate_scope_all(self, composer_audit_output):
        result = run_audit_pipeline(
            [(FindingSource.COMPOSER, composer_audit_output)],
            providers=[],
            thresholds=ReportThresholds.from_strings("critical", "high"),
            gate_scope=GATE_SCOPE_ALL,
        )

        assert result.reportable == []
        assert result.should_fail is True

    def test_missing_lockfile_counts_as_success(self):
        result = run_audit_pipeline([(FindingSource.COMPOSER, None)], providers=[], thresholds=ReportThresholds())
        assert result.sources_succeeded == 1
        assert not result.all_sources_failed


class TestRunFromOutcomes:
    def test_all_sources_failed_raises(self, workflow_params):
        outcomes = [
            SourceOutcome(FindingSource.COMPOSER, error=SourceUnavailableError("composer", "not installed")),
            SourceOutcome(FindingSource.NPM, error=SourceUnavailableError("npm", "not installed")),
        ]
        with pytest.raises(AllSourcesFailedError) as exc_info:
            run_from_outcomes(outcomes, [], workflow_params)
        assert set(exc_info.value.details) == {"composer", "npm"}

    def test_all_sources_failed_pass_policy(self, workflow_params):
        workflow_params.on_all_sources_failed = "pass"
        outcomes = [SourceOutcome(FindingSource.NPM, "not json at all")]

        result = run_from_outcomes(outcomes, [], workflow_params)

        assert result.all_sources_failed
        assert result.should_fail is False

    def test_partial_failure_continues(self, workflow_params, composer_audit_output):
        outcomes = [
            SourceOutcome(FindingSource.COMPOSER, composer_audit_output),
            SourceOutcome(FindingSource.NPM, error=SourceUnavailableError("npm", "not installed")),
        ]

        result = run_from_outcomes(outcomes, [], workflow_params)

        assert result.source_errors == {"npm": "not installed"}
        assert result.should_fail is True

    def test_disabled_gate(self, workflow_params, composer_audit_output):
        workflow_params.fail_severity = "none"
        result = run_from_outcomes([SourceOutcome(FindingSource.COMPOSER, composer_audit_output)], [], workflow_params)
        assert result.should_fail is False
        assert not result.gate.enabled


# ============================================================================
# REPORT AND GATE
# ============================================================================

class TestReportAndGate:
    @patch("depaudit_cli.utilities.audit_workflows.send_notifications")
    def test_empty_run(self, mock_notify, workflow_params, capsys):
        result = report_and_gate([SourceOutcome(FindingSource.COMPOSER, EMPTY_COMPOSER)], workflow_params, 0.0)

        out = capsys.readouterr().out
        assert "No vulnerabilities found matching the severity threshold (medium)" in out
        assert "Gate: PASSED" in out
        assert result.should_fail is False
        assert mock_notify.call_args.kwargs["silent"] is True

    @patch("depaudit_cli.utilities.audit_workflows.save_report_to_file")
    @patch("depaudit_cli.utilities.audit_workflows.send_notifications")
    def test_saves_and_warns(self, mock_notify, mock_save, workflow_params, composer_audit_output, tmp_path, capsys):
        workflow_params.output = str(tmp_path / "report.json")
        outcomes = [
            SourceOutcome(FindingSource.COMPOSER, composer_audit_output),
            SourceOutcome(FindingSource.NPM, error=SourceUnavailableError("npm", "npm command not found")),
        ]

        result = report_and_gate(outcomes, workflow_params, 0.0)

        out = capsys.readouterr().out
        assert "npm: npm command not found" in out
        assert "Gate: FAILED" in out
        mock_save.assert_called_once_with(workflow_params.output, result.report)
        assert result.should_fail is True

    @patch("depaudit_cli.utilities.audit_workflows.build_enrichment_providers")
    @patch("depaudit_cli.utilities.audit_workflows.send_notifications")
    def test_uses_configured_providers(self, mock_notify, mock_build, workflow_params, composer_audit_output):
        provider = MagicMock(spec=EnrichmentProvider)
        provider.name = "openai"
        provider.supports_explanation = True
        provider.supports_custom_info = False
        provider.try_explain.return_value = "Explained."
        mock_build.return_value = [provider]

        result = report_and_gate([SourceOutcome(FindingSource.COMPOSER, composer_audit_output)], workflow_params, 0.0)

        assert all(f.explanation == "Explained." for f in result.all_findings)


# ============================================================================
# HELPERS
# ============================================================================

@pytest.mark.parametrize("seconds, expected", [
    (None, "N/A"),
    ("abc", "Invalid Duration"),
    (0, "0 seconds"),
    (1, "1 second"),
    (59.6, "1 minutes"),
    (125, "2 minutes, 5 seconds"),
])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_build_email_settings(workflow_params):
    workflow_params.email_recipients = "dev@example.com, sec@example.com,"
    workflow_params.smtp_host = "smtp.example.com"
    workflow_params.smtp_no_tls = True

    settings = build_email_settings(workflow_params)

    assert settings.recipients == ["dev@example.com", "sec@example.com"]
    assert settings.configured
    assert settings.use_tls is False

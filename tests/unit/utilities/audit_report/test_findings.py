# tests/unit/utilities/audit_report/test_findings.py

import pytest

from depaudit_cli.utilities.audit_report.findings import (
    Finding,
    FindingSource,
    NOT_AVAILABLE,
    ReportThresholds,
)
from depaudit_cli.utilities.audit_report.severity import SeverityLevel


class TestFinding:
    def test_defaults(self):
        finding = Finding(source=FindingSource.NPM)
        assert finding.package_name == NOT_AVAILABLE
        assert finding.severity is SeverityLevel.UNKNOWN
        assert finding.cve is None
        assert finding.explanation is None
        assert finding.raw_data == {}

    def test_fill_explanation_only_when_absent(self, make_finding):
        finding = make_finding()
        assert finding.fill_explanation("first") is True
        assert finding.fill_explanation("second") is False
        assert finding.explanation == "first"

    def test_fill_explanation_ignores_empty_values(self, make_finding):
        finding = make_finding()
        assert finding.fill_explanation("") is False
        assert finding.fill_explanation(None) is False
        assert finding.explanation is None

    def test_fill_custom_info_only_when_absent(self, make_finding):
        finding = make_finding(custom_info={"vuln_status": "confirmed"})
        assert finding.fill_custom_info({"vuln_status": "other"}) is False
        assert finding.custom_info == {"vuln_status": "confirmed"}

    @pytest.mark.parametrize("cve, expected", [
        ("CVE-2024-1", True),
        ("PKSA-123", True),
        (NOT_AVAILABLE, False),
        (None, False),
        ("", False),
    ])
    def test_has_cve(self, make_finding, cve, expected):
        assert make_finding(cve=cve).has_cve is expected

    def test_to_dict_uses_plain_values(self, make_finding):
        data = make_finding(severity=SeverityLevel.HIGH, fix_available="pkg@1.0.0").to_dict()
        assert data["source"] == "composer"
        assert data["severity"] == "high"
        assert data["fix_available"] == "pkg@1.0.0"
        assert "raw_data" not in data

    def test_source_display_names(self):
        assert FindingSource.COMPOSER.display_name == "Composer"
        assert FindingSource.NPM.display_name == "NPM"
        assert FindingSource.CUSTOM.display_name == "Custom CVE API"


class TestReportThresholds:
    def test_defaults(self):
        thresholds = ReportThresholds()
        assert thresholds.report is SeverityLevel.MEDIUM
        assert thresholds.fail is SeverityLevel.HIGH

    def test_from_strings(self):
        thresholds = ReportThresholds.from_strings("LOW", "moderate")
        assert thresholds.report is SeverityLevel.LOW
        assert thresholds.fail is SeverityLevel.MEDIUM

    @pytest.mark.parametrize("fail", [None, "", "none", "OFF", "disabled"])
    def test_disabled_fail_threshold(self, fail):
        thresholds = ReportThresholds.from_strings("medium", fail)
        assert thresholds.fail is None

    def test_unrecognised_fail_threshold_disables_gate(self):
        assert ReportThresholds.from_strings("medium", "catastrophic").fail is None

    def test_missing_report_threshold_defaults_to_medium(self):
        assert ReportThresholds.from_strings(None, "high").report is SeverityLevel.MEDIUM

    def test_unrecognised_report_threshold_reports_everything(self):
        assert ReportThresholds.from_strings("everything", "high").report is SeverityLevel.UNKNOWN

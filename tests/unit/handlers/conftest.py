# tests/unit/handlers/conftest.py

import pytest
import argparse

from depaudit_cli.utilities.audit_report.findings import ReportThresholds
from depaudit_cli.utilities.audit_report.gates import GateResult
from depaudit_cli.utilities.audit_report.report_assembler import assemble_report
from depaudit_cli.utilities.audit_workflows import PipelineResult


# Fixture for mock params object (parsed arguments)
@pytest.fixture
def mock_params(mocker):
    """Provides a mocked argparse.Namespace for handler tests."""
    params = mocker.MagicMock(spec=argparse.Namespace)
    params.command = 'audit'
    params.log = "INFO"

    # Audit parameters
    params.path = "/fake/project"
    params.audits = "composer"
    params.composer = False
    params.npm = False
    params.composer_source = "composer_audit"

    # Import-results parameters
    params.composer_json = None
    params.npm_json = None

    # Severity & gate parameters
    params.report_severity = "medium"
    params.fail_severity = "high"
    params.gate_scope = "reported"
    params.on_all_sources_failed = "fail"

    return params


@pytest.fixture
def make_pipeline_result():
    """Factory for PipelineResult objects with a given gate outcome."""
    def _make(gate_failed=False):
        thresholds = ReportThresholds()
        return PipelineResult(
            all_findings=[],
            reportable=[],
            report=assemble_report([], thresholds.report),
            gate=GateResult(failed=gate_failed, threshold=thresholds.fail, scope="reported"),
        )
    return _make

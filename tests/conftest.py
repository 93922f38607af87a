import json

import pytest
import requests
from unittest.mock import MagicMock

from depaudit_cli.utilities.audit_report.findings import Finding, FindingSource
from depaudit_cli.utilities.audit_report.severity import SeverityLevel


@pytest.fixture
def make_finding():
    """Factory for Finding objects with sensible defaults."""
    def _make(severity=SeverityLevel.MEDIUM, package_name="vendor/package", cve="CVE-2024-0001",
              title="Example vulnerability", source=FindingSource.COMPOSER, **kwargs):
        return Finding(
            source=source,
            package_name=package_name,
            cve=cve,
            title=title,
            severity=severity,
            affected_versions=kwargs.pop("affected_versions", "<1.2.3"),
            link=kwargs.pop("link", "https://example.com/advisory"),
            **kwargs
        )
    return _make


@pytest.fixture
def composer_audit_output():
    """Representative `composer audit --format=json` document."""
    return {
        "advisories": {
            "symfony/http-kernel": [
                {
                    "advisoryId": "PKSA-1234",
                    "packageName": "symfony/http-kernel",
                    "affectedVersions": ">=5.0.0,<5.4.20",
                    "title": "CVE-2022-24894: Prevent storing cookie headers in HttpCache",
                    "cve": "CVE-2022-24894",
                    "link": "https://symfony.com/cve-2022-24894",
                    "reportedAt": "2023-02-01T08:00:00+00:00",
                    "sources": [{"name": "GitHub", "remoteId": "GHSA-h7vf-5wrv-9fhv"}],
                    "severity": "high",
                }
            ],
            "guzzlehttp/psr7": [
                {
                    "advisoryId": "PKSA-5678",
                    "affectedVersions": "<1.9.1",
                    "title": "Improper header validation",
                    "cve": None,
                    "link": "https://github.com/guzzle/psr7/security/advisories/GHSA-wxmh-65f7-jcvw",
                    "severity": "moderate",
                }
            ],
        }
    }


@pytest.fixture
def npm_audit_output():
    """Representative `npm audit --json` (v7+) document."""
    return {
        "auditReportVersion": 2,
        "vulnerabilities": {
            "minimist": {
                "name": "minimist",
                "severity": "critical",
                "isDirect": False,
                "via": [
                    {
                        "source": 1179,
                        "name": "minimist",
                        "dependency": "minimist",
                        "title": "Prototype Pollution in minimist",
                        "url": "https://github.com/advisories/GHSA-xvch-5gv4-984h",
                        "severity": "critical",
                        "range": "<0.2.4",
                    }
                ],
                "effects": ["mkdirp"],
                "range": "<0.2.4",
                "nodes": ["node_modules/minimist"],
                "fixAvailable": {"name": "mkdirp", "version": "0.5.6", "isSemVerMajor": False},
            },
            "mkdirp": {
                "name": "mkdirp",
                "severity": "low",
                "isDirect": True,
                "via": ["minimist"],
                "effects": [],
                "range": "0.4.1 - 0.5.1",
                "nodes": ["node_modules/mkdirp"],
                "fixAvailable": True,
            },
        },
        "metadata": {"vulnerabilities": {"critical": 1, "low": 1, "total": 2}},
    }


@pytest.fixture
def npm_legacy_audit_output():
    """Representative npm v6 `npm audit --json` document."""
    return {
        "advisories": {
            "1179": {
                "id": 1179,
                "module_name": "minimist",
                "title": "Prototype Pollution",
                "cves": ["CVE-2020-7598"],
                "url": "https://npmjs.com/advisories/1179",
                "vulnerable_versions": "<0.2.1 || >=1.0.0 <1.2.3",
                "patched_versions": ">=1.2.3",
                "severity": "low",
                "overview": "Affected versions of minimist are vulnerable to prototype pollution.",
            }
        }
    }


@pytest.fixture
def mock_session(mocker):
    """
    Create a mock requests.Session that can be used in place of the real session.
    """
    mock_session = MagicMock(spec=requests.Session)
    mock_response = MagicMock(spec=requests.Response)
    mock_response.status_code = 200
    mock_response.text = json.dumps({})
    mock_response.json.return_value = {}
    mock_response.raise_for_status.return_value = None
    mock_session.request.return_value = mock_response
    return mock_session


@pytest.fixture
def make_response():
    """Factory for mocked requests.Response objects."""
    def _make(status_code=200, json_data=None, text=None):
        response = MagicMock(spec=requests.Response)
        response.status_code = status_code
        response.text = text if text is not None else json.dumps(json_data)
        if json_data is None and text is not None:
            response.json.side_effect = ValueError("No JSON object could be decoded")
        else:
            response.json.return_value = json_data
        if status_code >= 400:
            response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} Error")
        else:
            response.raise_for_status.return_value = None
        return response
    return _make

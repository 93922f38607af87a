import logging

import pytest
from unittest.mock import MagicMock, patch

import depaudit_cli.main as main_module
from depaudit_cli.cli import parse_cmdline_args

ENV_VARS = [
    "DEPAUDIT_REPORT_SEVERITY",
    "DEPAUDIT_FAIL_SEVERITY",
    "DEPAUDIT_GATE_SCOPE",
    "DEPAUDIT_ENABLED_AUDITS",
    "DEPAUDIT_COMPOSER_SOURCE",
    "DEPAUDIT_OPENAI_MODEL",
    "DEPAUDIT_CVE_API_URL",
    "DEPAUDIT_CVE_API_TOKEN",
    "DEPAUDIT_CVE_API_AUTH_TYPE",
    "DEPAUDIT_API_TIMEOUT",
    "DEPAUDIT_WEBHOOK_URL",
    "DEPAUDIT_EMAIL_RECIPIENTS",
    "DEPAUDIT_SMTP_HOST",
    "DEPAUDIT_SMTP_PORT",
    "DEPAUDIT_SMTP_USERNAME",
    "DEPAUDIT_SMTP_PASSWORD",
    "DEPAUDIT_SMTP_FROM",
    "OPENAI_API_KEY",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's shell configuration out of argument defaults."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_path_exists():
    """Mock os.path.exists to return True by default."""
    with patch('os.path.exists', return_value=True) as mock:
        yield mock


@pytest.fixture
def arg_parser():
    """Parse an argument list without touching the real sys.argv."""
    def _parse(args_list):
        with patch('sys.argv', args_list):
            return parse_cmdline_args()
    return _parse


class ArgBuilder:
    """Builder pattern for constructing test arguments."""

    def __init__(self):
        self.args = ['depaudit-cli']

    def log_level(self, level='INFO'):
        self.args.extend(['--log', level])
        return self

    def audit(self, path='.'):
        self.args.extend(['audit', '--path', path])
        return self

    def import_results(self, composer_json=None, npm_json=None):
        self.args.append('import-results')
        if composer_json:
            self.args.extend(['--composer-json', composer_json])
        if npm_json:
            self.args.extend(['--npm-json', npm_json])
        return self

    def audits(self, value):
        self.args.extend(['--audits', value])
        return self

    def report_severity(self, level):
        self.args.extend(['--report-severity', level])
        return self

    def fail_severity(self, level):
        self.args.extend(['--fail-severity', level])
        return self

    def extra(self, *values):
        self.args.extend(values)
        return self

    def build(self):
        return self.args.copy()


@pytest.fixture
def args():
    """Fixture providing the ArgBuilder for constructing test arguments."""
    return ArgBuilder


@pytest.fixture
def main_handlers(monkeypatch, tmp_path):
    """
    Replace the command handlers dispatched by main() and run from a temp dir
    so the log file does not land in the working tree.
    """
    monkeypatch.chdir(tmp_path)
    handlers = {
        "audit": MagicMock(name="handle_audit", return_value=True),
        "import-results": MagicMock(name="handle_import_results", return_value=True),
    }
    monkeypatch.setattr(main_module, "COMMAND_HANDLERS", handlers)
    root_handlers = list(logging.getLogger().handlers)
    yield handlers
    for handler in list(logging.getLogger().handlers):
        if handler not in root_handlers:
            logging.getLogger().removeHandler(handler)
            handler.close()

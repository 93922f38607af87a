# depaudit_cli/cli.py

import argparse
import os
import logging
from argparse import RawTextHelpFormatter

from .exceptions import ValidationError
from .utilities.audit_report.findings import DISABLED_THRESHOLD_VALUES
from .utilities.audit_report.gates import GATE_SCOPES
from .utilities.audit_report.severity import lookup

logger = logging.getLogger(__name__)

SEVERITY_CHOICES_HELP = "critical, high, medium (moderate), low (minor), unknown"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"Environment variable {name} must be an integer, got '{value}'")


# --- Helper functions for common arguments ---
def add_common_audit_options(subparser):
    audit_args = subparser.add_argument_group("Severity & Gate Options")
    audit_args.add_argument(
        "--report-severity",
        help=f"Minimum severity to report ({SEVERITY_CHOICES_HELP}).\n"
             "Overrides DEPAUDIT_REPORT_SEVERITY env var. (Default: medium)",
        default=os.getenv("DEPAUDIT_REPORT_SEVERITY", "medium"),
        metavar="LEVEL"
    )
    audit_args.add_argument(
        "--fail-severity",
        help="Minimum severity that fails the build. Use 'none' to disable severity gating.\n"
             "Overrides DEPAUDIT_FAIL_SEVERITY env var. (Default: high)",
        default=os.getenv("DEPAUDIT_FAIL_SEVERITY", "high"),
        metavar="LEVEL"
    )
    audit_args.add_argument(
        "--gate-scope",
        help="Which findings the fail threshold is evaluated against:\n"
             "  'reported' - only findings at or above --report-severity\n"
             "  'all'      - every normalized finding\n"
             "Overrides DEPAUDIT_GATE_SCOPE env var. (Default: reported)",
        choices=list(GATE_SCOPES),
        default=os.getenv("DEPAUDIT_GATE_SCOPE", "reported")
    )
    audit_args.add_argument(
        "--on-all-sources-failed",
        help="Outcome when every audit source fails: 'fail' exits with an error, 'pass' treats it as nothing to audit. (Default: fail)",
        choices=["fail", "pass"],
        default="fail"
    )


def add_common_enrichment_options(subparser):
    enrichment_args = subparser.add_argument_group("Enrichment Options")
    enrichment_args.add_argument(
        "--openai-api-key",
        help="OpenAI API key for AI explanations. Overrides OPENAI_API_KEY env var.",
        default=os.getenv("OPENAI_API_KEY"),
        metavar="KEY"
    )
    enrichment_args.add_argument(
        "--openai-model",
        help="OpenAI chat model. Overrides DEPAUDIT_OPENAI_MODEL env var. (Default: gpt-3.5-turbo)",
        default=os.getenv("DEPAUDIT_OPENAI_MODEL", "gpt-3.5-turbo"),
        metavar="MODEL"
    )
    enrichment_args.add_argument(
        "--cve-api-url",
        help="Custom CVE API endpoint. Overrides DEPAUDIT_CVE_API_URL env var.",
        default=os.getenv("DEPAUDIT_CVE_API_URL"),
        metavar="URL"
    )
    enrichment_args.add_argument(
        "--cve-api-token",
        help="Custom CVE API token. Overrides DEPAUDIT_CVE_API_TOKEN env var.",
        default=os.getenv("DEPAUDIT_CVE_API_TOKEN"),
        metavar="TOKEN"
    )
    enrichment_args.add_argument(
        "--cve-api-auth-type",
        help="How the custom CVE API token is sent:\n"
             "  'bearer' - Authorization: Bearer <token>\n"
             "  'header' - X-API-KEY: <token>\n"
             "  'none'   - no authentication\n"
             "Overrides DEPAUDIT_CVE_API_AUTH_TYPE env var. (Default: bearer)",
        choices=["bearer", "header", "none"],
        default=os.getenv("DEPAUDIT_CVE_API_AUTH_TYPE", "bearer")
    )
    enrichment_args.add_argument("--skip-openai", help="Do not request AI explanations for this run.", action="store_true", default=False)
    enrichment_args.add_argument("--skip-custom-cve", help="Do not request custom CVE info for this run.", action="store_true", default=False)
    enrichment_args.add_argument(
        "--api-timeout",
        help="Timeout in seconds for each enrichment API call. Overrides DEPAUDIT_API_TIMEOUT env var. (Default: 30)",
        type=int,
        default=_env_int("DEPAUDIT_API_TIMEOUT", 30),
        metavar="SECONDS"
    )
    enrichment_args.add_argument(
        "--enrichment-workers",
        help="Number of findings enriched in parallel (Default: 1, sequential)",
        type=int,
        default=1,
        metavar="N"
    )


def add_common_output_options(subparser):
    output_args = subparser.add_argument_group("Report Output Options")
    output_args.add_argument("--format", help="Console report format (Default: table)", choices=["table", "json"], default="table")
    output_args.add_argument("--output", help="Saves the JSON report to this file.", metavar="PATH")


def add_common_notification_options(subparser):
    notify_args = subparser.add_argument_group("Notification Options")
    notify_args.add_argument("--silent", help="Do not send webhook or email notifications.", action="store_true", default=False)
    notify_args.add_argument(
        "--webhook-url",
        help="Webhook (e.g. Slack) URL to notify. Overrides DEPAUDIT_WEBHOOK_URL env var.",
        default=os.getenv("DEPAUDIT_WEBHOOK_URL"),
        metavar="URL"
    )
    notify_args.add_argument(
        "--email-recipients",
        help="Comma-separated email recipients. Overrides DEPAUDIT_EMAIL_RECIPIENTS env var.",
        default=os.getenv("DEPAUDIT_EMAIL_RECIPIENTS"),
        metavar="ADDRESSES"
    )
    notify_args.add_argument("--smtp-host", help="SMTP server host. Overrides DEPAUDIT_SMTP_HOST env var.", default=os.getenv("DEPAUDIT_SMTP_HOST"), metavar="HOST")
    notify_args.add_argument("--smtp-port", help="SMTP server port. Overrides DEPAUDIT_SMTP_PORT env var. (Default: 587)", type=int, default=_env_int("DEPAUDIT_SMTP_PORT", 587), metavar="PORT")
    notify_args.add_argument("--smtp-username", help="SMTP username. Overrides DEPAUDIT_SMTP_USERNAME env var.", default=os.getenv("DEPAUDIT_SMTP_USERNAME"), metavar="USER")
    notify_args.add_argument("--smtp-password", help="SMTP password. Overrides DEPAUDIT_SMTP_PASSWORD env var.", default=os.getenv("DEPAUDIT_SMTP_PASSWORD"), metavar="PASSWORD")
    notify_args.add_argument("--smtp-from", help="Sender address. Overrides DEPAUDIT_SMTP_FROM env var.", default=os.getenv("DEPAUDIT_SMTP_FROM"), metavar="ADDRESS")
    notify_args.add_argument("--smtp-no-tls", help="Do not use STARTTLS when talking to the SMTP server.", action="store_true", default=False)


def _validate_severity(value: str, flag: str, allow_disabled: bool = False) -> None:
    if allow_disabled and (value or "").strip().lower() in DISABLED_THRESHOLD_VALUES:
        return
    if lookup(value) is None:
        raise ValidationError(f"Invalid value for {flag}: '{value}'. Expected one of: {SEVERITY_CHOICES_HELP}")


# --- Main Parsing Function ---
def parse_cmdline_args():
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed command line arguments

    Raises:
        ValidationError: If required arguments are missing or invalid
    """
    parser = argparse.ArgumentParser(
        description="Dependency Audit CLI - audits Composer and npm dependencies for known vulnerabilities.",
        formatter_class=RawTextHelpFormatter,
        epilog="""
Environment Variables:
  DEPAUDIT_REPORT_SEVERITY  : Minimum severity to report
  DEPAUDIT_FAIL_SEVERITY    : Minimum severity that fails the build ('none' disables)
  DEPAUDIT_ENABLED_AUDITS   : Comma-separated audits to run (composer,npm)
  OPENAI_API_KEY            : Enables AI explanations
  DEPAUDIT_CVE_API_URL      : Enables the custom CVE API

Exit Codes:
  0   : Audit completed and the severity gate passed (or is disabled)
  1   : Findings at or above the fail severity were reported
  2   : The audit could not be completed
  130 : Interrupted

Example Usage:
  # Audit Composer and npm dependencies, fail on critical findings
  depaudit-cli audit --path . --audits composer,npm --fail-severity critical

  # Report everything, never fail the build, post to Slack
  depaudit-cli audit --path . --report-severity low --fail-severity none --webhook-url https://hooks.slack.com/...

  # Use the custom CVE API instead of 'composer audit'
  depaudit-cli audit --path . --composer-source custom_cve_api --cve-api-url https://cve.example.com/api/check

  # Report on audit output captured by an earlier CI step
  depaudit-cli import-results --composer-json composer-audit.json --npm-json npm-audit.json --format json
"""
    )

    # --- Global Arguments (apply to all subcommands) ---
    global_args = parser.add_argument_group("Global Arguments")
    global_args.add_argument(
        "--log",
        help="Logging level (Default: INFO)",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
    )

    # --- Subparsers ---
    subparsers = parser.add_subparsers(dest='command', help='Available commands', required=True, metavar='COMMAND')

    # --- 'audit' Subcommand ---
    audit_parser = subparsers.add_parser(
        'audit',
        help='Run Composer/npm audits in a project directory.',
        description='Run the selected package-manager audits in a project directory, enrich, report and gate the findings.',
        formatter_class=RawTextHelpFormatter
    )
    audit_parser.add_argument("--path", help="Project directory containing composer.lock / package-lock.json.", required=True, metavar="PATH")
    audit_parser.add_argument(
        "--audits",
        help="Comma-separated audits to run: composer, npm.\n"
             "Overrides DEPAUDIT_ENABLED_AUDITS env var. (Default: composer)",
        default=os.getenv("DEPAUDIT_ENABLED_AUDITS", "composer"),
        metavar="LIST"
    )
    audit_parser.add_argument("--composer", help="Include the Composer audit regardless of --audits.", action="store_true", default=False)
    audit_parser.add_argument("--npm", help="Include the npm audit regardless of --audits.", action="store_true", default=False)
    audit_parser.add_argument(
        "--composer-source",
        help="Where Composer vulnerability data comes from:\n"
             "  'composer_audit' - run 'composer audit'\n"
             "  'custom_cve_api' - query the custom CVE API for each package in composer.lock\n"
             "Overrides DEPAUDIT_COMPOSER_SOURCE env var. (Default: composer_audit)",
        choices=["composer_audit", "custom_cve_api"],
        default=os.getenv("DEPAUDIT_COMPOSER_SOURCE", "composer_audit")
    )
    add_common_audit_options(audit_parser)
    add_common_enrichment_options(audit_parser)
    add_common_output_options(audit_parser)
    add_common_notification_options(audit_parser)

    # --- 'import-results' Subcommand ---
    import_parser = subparsers.add_parser(
        'import-results',
        help='Report on previously captured audit JSON.',
        description='Run the report pipeline over JSON saved from composer audit --format=json / npm audit --json.',
        formatter_class=RawTextHelpFormatter
    )
    import_parser.add_argument("--composer-json", help="Path to saved 'composer audit --format=json' output.", metavar="FILE")
    import_parser.add_argument("--npm-json", help="Path to saved 'npm audit --json' output.", metavar="FILE")
    add_common_audit_options(import_parser)
    add_common_enrichment_options(import_parser)
    add_common_output_options(import_parser)
    add_common_notification_options(import_parser)

    args = parser.parse_args()

    # --- Post-parse validation ---
    _validate_severity(args.report_severity, "--report-severity")
    _validate_severity(args.fail_severity, "--fail-severity", allow_disabled=True)

    if args.api_timeout <= 0:
        raise ValidationError("--api-timeout must be a positive number of seconds")
    if args.enrichment_workers < 1:
        raise ValidationError("--enrichment-workers must be at least 1")

    if args.command == 'audit':
        if not os.path.exists(args.path):
            raise ValidationError(f"Path does not exist: {args.path}")
    elif args.command == 'import-results':
        if not args.composer_json and not args.npm_json:
            raise ValidationError("At least one of --composer-json or --npm-json must be provided")

    return args

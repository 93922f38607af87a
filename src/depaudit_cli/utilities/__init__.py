"""
Utilities package for the Dependency Audit CLI.

This package contains the audit report pipeline, the audit tool runners,
enrichment providers, notifications, report output and error handling.
"""

from .error_handling import format_and_print_error, handler_error_wrapper
from .audit_workflows import (
    collect_audit_outputs,
    load_imported_outputs,
    run_audit_pipeline,
    run_from_outcomes,
    print_source_warnings,
    format_duration,
    print_operation_summary,
    report_and_gate,
)
from .audit_tools import AuditTools
from .enrichment_providers import build_enrichment_providers
from .notifications import EmailSettings, send_notifications
from .report_output import display_report, save_report_to_file

__all__ = [
    # Error handling
    'format_and_print_error',
    'handler_error_wrapper',
    # Audit workflows
    'collect_audit_outputs',
    'load_imported_outputs',
    'run_audit_pipeline',
    'run_from_outcomes',
    'print_source_warnings',
    'format_duration',
    'print_operation_summary',
    'report_and_gate',
    # Audit tools
    'AuditTools',
    # Enrichment
    'build_enrichment_providers',
    # Notifications
    'EmailSettings',
    'send_notifications',
    # Report output
    'display_report',
    'save_report_to_file',
]

# depaudit_cli/handlers/audit.py

import argparse
import os
import time

from ..utilities.error_handling import handler_error_wrapper
from ..exceptions import FileSystemError, ValidationError
from ..utilities.audit_workflows import collect_audit_outputs, report_and_gate

# Get logger from the handlers package
from . import logger


@handler_error_wrapper
def handle_audit(params: argparse.Namespace) -> bool:
    """
    Handler for the 'audit' command. Runs the selected audit tools in a project
    directory and reports the findings.

    Args:
        params: Command line parameters

    Returns:
        bool: True if the severity gate passed (or is disabled), False if it failed
    """
    print(f"\n--- Running {params.command.upper()} Command ---")
    started_at = time.monotonic()

    if not params.path:
        raise ValidationError("A project path must be provided for the audit command.")
    if not os.path.exists(params.path):
        raise FileSystemError(f"The provided path does not exist: {params.path}")
    if not os.path.isdir(params.path):
        raise ValidationError(f"The provided path must be a directory: {params.path}")

    outcomes = collect_audit_outputs(params)
    logger.debug(f"Collected {len(outcomes)} audit outcome(s)")

    result = report_and_gate(outcomes, params, started_at)
    return not result.should_fail

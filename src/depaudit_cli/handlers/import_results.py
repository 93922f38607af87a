# depaudit_cli/handlers/import_results.py

import argparse
import os
import time

from ..utilities.error_handling import handler_error_wrapper
from ..exceptions import FileSystemError, ValidationError
from ..utilities.audit_workflows import load_imported_outputs, report_and_gate

# Get logger from the handlers package
from . import logger


def _validate_input_file(path: str, label: str) -> None:
    if not os.path.exists(path):
        raise FileSystemError(f"The provided {label} file does not exist: {path}")
    if not os.path.isfile(path):
        raise ValidationError(f"The provided {label} path must be a file: {path}")


@handler_error_wrapper
def handle_import_results(params: argparse.Namespace) -> bool:
    """
    Handler for the 'import-results' command. Runs the report pipeline over
    Composer/npm audit JSON captured earlier (for example by a CI step).

    Returns:
        bool: True if the severity gate passed (or is disabled), False if it failed
    """
    print(f"\n--- Running {params.command.upper()} Command ---")
    started_at = time.monotonic()

    if not getattr(params, 'composer_json', None) and not getattr(params, 'npm_json', None):
        raise ValidationError("At least one of --composer-json or --npm-json must be provided.")
    if params.composer_json:
        _validate_input_file(params.composer_json, "Composer results")
    if params.npm_json:
        _validate_input_file(params.npm_json, "NPM results")

    outcomes = load_imported_outputs(params)
    logger.debug(f"Loaded {len(outcomes)} audit result file(s)")

    result = report_and_gate(outcomes, params, started_at)
    return not result.should_fail

# depaudit_cli/handlers/__init__.py

import logging

# Common logger for all handlers
logger = logging.getLogger("depaudit-cli")

# Import handlers
from .audit import handle_audit
from .import_results import handle_import_results

__all__ = [
    'handle_audit',
    'handle_import_results',
]

"""
Error handling utilities for the Dependency Audit CLI.

This module contains functions for standardized error handling and formatting
across all CLI handlers.
"""

import logging
import argparse
import functools
from typing import Callable

from ..exceptions import (
    DepAuditCLIError,
    AllSourcesFailedError,
    ApiError,
    AuthenticationError,
    ConfigurationError,
    FileSystemError,
    NetworkError,
    ParseFailureError,
    SourceUnavailableError,
    ValidationError,
)

logger = logging.getLogger("depaudit-cli")


def format_and_print_error(error: Exception, handler_name: str, params: argparse.Namespace):
    """
    Formats and prints a standardized error message for CLI users.

    Args:
        error: The exception that occurred
        handler_name: Name of the handler where the error occurred
        params: Command line parameters
    """
    command = getattr(params, 'command', 'unknown')

    error_message = getattr(error, 'message', str(error))
    error_code = getattr(error, 'code', None)
    error_details = getattr(error, 'details', {})

    if isinstance(error, AllSourcesFailedError):
        print(f"\n❌ No audit source could be run")
        print(f"   {error_message}")
        for source, reason in error_details.items():
            print(f"   • {source}: {reason}")
        print(f"\n💡 Please check:")
        print(f"   • composer / npm are installed and on your PATH")
        print(f"   • The project path contains the expected lockfiles: {getattr(params, 'path', '<not specified>')}")
        print(f"   • Use --on-all-sources-failed pass to treat this as 'nothing to audit'")

    elif isinstance(error, AuthenticationError):
        print(f"\n❌ Authentication failed")
        print(f"   {error_message}")
        print(f"\n💡 Please check:")
        print(f"   • Your OpenAI API key or custom CVE API token is correct and not expired")
        print(f"   • The custom CVE API auth type matches the server: {getattr(params, 'cve_api_auth_type', '<not specified>')}")

    elif isinstance(error, NetworkError):
        print(f"\n❌ Network connectivity issue")
        print(f"   {error_message}")
        print(f"\n💡 Please check:")
        print(f"   • The service is reachable from this machine")
        print(f"   • The custom CVE API URL is correct: {getattr(params, 'cve_api_url', None) or '<not specified>'}")

    elif isinstance(error, ApiError):
        print(f"\n❌ API error")
        print(f"   {error_message}")
        if error_code:
            print(f"   Error code: {error_code}")

    elif isinstance(error, (SourceUnavailableError, ParseFailureError)):
        print(f"\n❌ Audit source '{getattr(error, 'source', 'unknown')}' failed")
        print(f"   {error_message}")

    elif isinstance(error, FileSystemError):
        print(f"\n❌ File system error")
        print(f"   {error_message}")
        print(f"\n💡 Please check:")
        print(f"   • File permissions are correct")
        print(f"   • All specified paths exist")
        if getattr(params, 'path', None):
            print(f"   • Path specified: {params.path}")

    elif isinstance(error, ValidationError):
        print(f"\n❌ Invalid input or configuration")
        print(f"   {error_message}")
        print(f"\n💡 Please check your command-line arguments and input files")

    elif isinstance(error, ConfigurationError):
        print(f"\n❌ Configuration error")
        print(f"   {error_message}")
        print(f"\n💡 Please check your command-line arguments and environment variables")

    else:
        print(f"\n❌ Error executing '{command}' command: {error_message}")

    # The plain ApiError branch already prints its code.
    if error_code and not (type(error) is ApiError or isinstance(error, AllSourcesFailedError)):
        print(f"\nError code: {error_code}")

    if getattr(params, 'log', 'INFO') == 'DEBUG' and error_details and not isinstance(error, AllSourcesFailedError):
        print("\nDetailed error information:")
        for key, value in error_details.items():
            print(f"  • {key}: {value}")

    print(f"\nFor more details, run with --log DEBUG for verbose output")


def handler_error_wrapper(handler_func: Callable) -> Callable:
    """
    A decorator that wraps handler functions with standardized error handling.

    Expected CLI errors are printed in a standard format and re-raised so main()
    can pick the exit code. Anything else is logged with a traceback and wrapped
    in DepAuditCLIError.

    Example:
        @handler_error_wrapper
        def handle_audit(params):
            ...
    """
    @functools.wraps(handler_func)
    def wrapper(params):
        try:
            handler_name = handler_func.__name__
            command_name = params.command if hasattr(params, 'command') else 'unknown'
            logger.debug(f"Starting {handler_name} for command '{command_name}'")

            return handler_func(params)

        except DepAuditCLIError as e:
            logger.debug(f"Expected error in {handler_func.__name__}: {type(e).__name__}: {e.message}")
            format_and_print_error(e, handler_func.__name__, params)
            raise

        except Exception as e:
            logger.error(f"Unexpected error in {handler_func.__name__}: {e}", exc_info=True)

            cli_error = DepAuditCLIError(
                f"Failed to execute {params.command if hasattr(params, 'command') else 'command'}: {str(e)}",
                details={"error": str(e), "handler": handler_func.__name__}
            )
            format_and_print_error(cli_error, handler_func.__name__, params)
            raise cli_error

    return wrapper

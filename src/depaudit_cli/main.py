import sys
import time
import logging
from typing import Optional

# Import from other modules in the package
from .cli import parse_cmdline_args
from .utilities.audit_workflows import format_duration
from .exceptions import (
    DepAuditCLIError,
    AllSourcesFailedError,
    ApiError,
    AuthenticationError,
    ConfigurationError,
    FileSystemError,
    NetworkError,
    ValidationError,
)
from .handlers import (
    handle_audit,
    handle_import_results,
)

EXIT_SUCCESS = 0
EXIT_GATE_FAILED = 1
EXIT_ERROR = 2
EXIT_INTERRUPTED = 130

# Parameters never printed in clear text unless --log DEBUG
SECRET_PARAMS = {'openai_api_key', 'cve_api_token', 'smtp_password'}

COMMAND_HANDLERS = {
    "audit": handle_audit,
    "import-results": handle_import_results,
}


def _setup_logging(log_level_name: str) -> logging.Logger:
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    # Configure file handler (overwrite mode) and stream handler
    logging.basicConfig(level=log_level,
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                        handlers=[logging.FileHandler("depaudit-cli-log.txt", mode='w')],
                        force=True)

    # Add console handler separately to control its level independently
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    console_handler.setLevel(log_level)
    logging.getLogger().addHandler(console_handler)

    return logging.getLogger("depaudit-cli")


def _print_configuration(params) -> None:
    print("--- Dependency Audit CLI Configuration ---")
    print(f"Command: {params.command}")
    for k, v in sorted(params.__dict__.items()):
        if k == 'command':
            continue
        display_val = v
        if k in SECRET_PARAMS and params.log.upper() != 'DEBUG':
            display_val = "****" if v else "Not Set"
        print(f"  {k:<30} = {display_val}")
    print("------------------------------------")


def main() -> int:
    """
    Main function to parse arguments, set up logging and dispatch to the
    appropriate command handler.

    Returns an exit code: 0 success, 1 severity gate failed, 2 the audit
    could not be completed, 130 interrupted.
    """
    start_time = time.monotonic()
    exit_code = EXIT_ERROR
    logger: Optional[logging.Logger] = None

    try:
        params = parse_cmdline_args()
        logger = _setup_logging(params.log)

        _print_configuration(params)
        logger.debug("Parsed parameters: %s", {k: ("****" if k in SECRET_PARAMS and v else v) for k, v in vars(params).items()})

        handler = COMMAND_HANDLERS.get(params.command)
        if handler:
            gate_passed = handler(params)  # Handlers raise exceptions on failure
            if gate_passed:
                exit_code = EXIT_SUCCESS
                print("\nDependency Audit CLI finished successfully (Gate Passed).")
            else:
                exit_code = EXIT_GATE_FAILED
                print("\nDependency Audit CLI finished (Gate FAILED).")
        else:
            print(f"Error: Unknown command '{params.command}'.")
            logger.error(f"Unknown command '{params.command}' encountered in main dispatch.")
            exit_code = EXIT_ERROR

    # --- Unified Exception Handling ---
    except KeyboardInterrupt:
        print("\nInterrupted.")
        if logger: logger.warning("Run interrupted by user")
        return EXIT_INTERRUPTED
    except (AuthenticationError, ConfigurationError, ValidationError) as e:
        # Errors typically due to user input/setup, less need for full traceback in log
        print(f"\nDetailed Error Information:")
        print(f"Runtime Error: {e.message}")
        if logger: logger.error("%s: %s", type(e).__name__, e.message, exc_info=False)
        return EXIT_ERROR
    except AllSourcesFailedError as e:
        print(f"\nDetailed Error Information:")
        print(f"Runtime Error: {e.message}")
        if logger: logger.error("%s: %s | %s", type(e).__name__, e.message, e.details, exc_info=False)
        return EXIT_ERROR
    except (ApiError, NetworkError, FileSystemError) as e:
        # Errors during runtime interaction, traceback can be useful
        print(f"\nDetailed Error Information:")
        print(f"Runtime Error: {e.message}")
        if logger: logger.error("%s: %s", type(e).__name__, e.message, exc_info=True)
        return EXIT_ERROR
    except DepAuditCLIError as e:
        print(f"\nDetailed Error Information:")
        print(f"Dependency Audit CLI Error: {e.message}")
        if logger: logger.error("Unhandled DepAuditCLIError: %s", e.message, exc_info=True)
        return EXIT_ERROR
    except Exception as e:
        # Catch truly unexpected errors
        print(f"\nDetailed Error Information:")
        print(f"Unexpected Error: {e}")
        if logger: logger.critical("Unexpected error occurred", exc_info=True)
        return EXIT_ERROR
    finally:
        duration_str = format_duration(time.monotonic() - start_time)
        print(f"\nTotal Execution Time: {duration_str}")
        if logger: logger.info("Total execution time: %s", duration_str)

    return exit_code


if __name__ == "__main__":
    sys.exit(main())

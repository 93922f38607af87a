# depaudit_cli/utilities/audit_tools.py

import json
import os
import subprocess
import logging
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from ..exceptions import SourceUnavailableError

if TYPE_CHECKING:
    from ..api import CustomCveAPI

logger = logging.getLogger("depaudit-cli")


class AuditTools:
    """
    Runs the package-manager audit tools and the custom CVE API lookup.

    Every runner returns the raw audit document (text or dict) for the
    normalizers, or None when the project has nothing for that tool to audit
    (no lockfile). A tool that cannot run raises SourceUnavailableError.
    """

    COMPOSER_LOCK = 'composer.lock'
    NPM_LOCK = 'package-lock.json'

    DEFAULT_TIMEOUTS = {
        'version_check': 30,    # composer/npm --version
        'audit': 300,           # composer audit / npm audit
    }

    # composer audit exits 1 when it finds vulnerabilities
    COMPOSER_OK_EXIT_CODES = (0, 1)

    @staticmethod
    def _lockfile_path(project_path: str, lockfile: str) -> str:
        return os.path.join(project_path, lockfile)

    @staticmethod
    def check_tool_installation(tool: str, project_path: Optional[str] = None) -> Tuple[bool, str]:
        """
        Check if an audit tool is installed and accessible.

        Returns:
            Tuple[bool, str]: (is_available, version_or_error_message)
        """
        try:
            result = subprocess.run(
                [tool, '--version'],
                cwd=project_path,
                capture_output=True,
                text=True,
                timeout=AuditTools.DEFAULT_TIMEOUTS['version_check']
            )
            if result.returncode == 0:
                version = result.stdout.strip()
                logger.debug(f"{tool} found: {version}")
                return True, version
            error_msg = f"{tool} --version failed: {result.stderr.strip()}"
            logger.error(error_msg)
            return False, error_msg
        except subprocess.TimeoutExpired:
            error_msg = f"{tool} --version timed out"
            logger.error(error_msg)
            return False, error_msg
        except FileNotFoundError:
            error_msg = f"{tool} not found in PATH. Please install {tool} and ensure it's in your PATH."
            logger.error(error_msg)
            return False, error_msg

    @staticmethod
    def _run_audit_command(source: str, cmd: List[str], project_path: str) -> subprocess.CompletedProcess:
        logger.debug(f"Running: {' '.join(cmd)} (cwd={project_path})")
        try:
            return subprocess.run(
                cmd,
                cwd=project_path,
                capture_output=True,
                text=True,
                timeout=AuditTools.DEFAULT_TIMEOUTS['audit']
            )
        except subprocess.TimeoutExpired:
            raise SourceUnavailableError(
                source,
                f"'{' '.join(cmd)}' timed out after {AuditTools.DEFAULT_TIMEOUTS['audit']} seconds",
                code="timeout",
            )
        except FileNotFoundError:
            raise SourceUnavailableError(source, f"'{cmd[0]}' not found in PATH", code="tool_missing")

    @staticmethod
    def run_composer_audit(project_path: str) -> Optional[str]:
        """
        Runs `composer audit --format=json` in the project.

        Returns:
            The JSON text, or None when composer.lock is missing.

        Raises:
            SourceUnavailableError: composer is not installed or the audit failed to run
        """
        lock_path = AuditTools._lockfile_path(project_path, AuditTools.COMPOSER_LOCK)
        if not os.path.isfile(lock_path):
            logger.warning(f"Composer audit skipped: {AuditTools.COMPOSER_LOCK} not found at {lock_path}")
            return None

        available, message = AuditTools.check_tool_installation('composer', project_path)
        if not available:
            raise SourceUnavailableError("composer", f"Composer command is not available: {message}", code="tool_missing")

        result = AuditTools._run_audit_command(
            "composer", ['composer', 'audit', '--format=json'], project_path
        )
        if result.returncode not in AuditTools.COMPOSER_OK_EXIT_CODES:
            logger.error(
                f"Composer audit exited with code {result.returncode}: {result.stderr.strip()[:500]}"
            )
            raise SourceUnavailableError(
                "composer",
                f"Composer audit failed with exit code {result.returncode}",
                code="process_failed",
                details={"exit_code": result.returncode, "stderr": result.stderr.strip()[:500]},
            )
        return result.stdout

    @staticmethod
    def run_npm_audit(project_path: str) -> Optional[str]:
        """
        Runs `npm audit --json` in the project.

        npm exits non-zero when it finds vulnerabilities, so a failure exit code
        with JSON on stdout is a normal result.

        Returns:
            The JSON text, or None when package-lock.json is missing.

        Raises:
            SourceUnavailableError: npm is not installed or the audit produced nothing
        """
        available, message = AuditTools.check_tool_installation('npm', project_path)
        if not available:
            raise SourceUnavailableError(
                "npm",
                "npm command not found or failed. Please ensure Node.js and npm are installed and accessible.",
                code="tool_missing",
                details={"error": message},
            )

        lock_path = AuditTools._lockfile_path(project_path, AuditTools.NPM_LOCK)
        if not os.path.isfile(lock_path):
            logger.warning(f"NPM audit skipped: {AuditTools.NPM_LOCK} not found in {project_path}")
            return None

        result = AuditTools._run_audit_command("npm", ['npm', 'audit', '--json'], project_path)
        stdout = result.stdout or ""
        if stdout.strip():
            if result.returncode != 0:
                logger.debug(f"npm audit exited with code {result.returncode} (vulnerabilities found)")
            return stdout

        stderr = (result.stderr or "").strip()
        if result.returncode != 0:
            raise SourceUnavailableError(
                "npm",
                f"NPM audit command failed with exit code {result.returncode}",
                code="process_failed",
                details={"exit_code": result.returncode, "stderr": stderr[:500]},
            )
        if stderr:
            logger.warning(f"NPM audit completed with errors: {stderr[:500]}")
        # Clean exit with no output: nothing to report.
        return json.dumps({"vulnerabilities": {}})

    @staticmethod
    def load_composer_lock_packages(project_path: str) -> Optional[List[Dict[str, Any]]]:
        """
        Reads packages and packages-dev from composer.lock.

        Returns None when composer.lock is missing.

        Raises:
            SourceUnavailableError: the lockfile cannot be read or decoded
        """
        lock_path = AuditTools._lockfile_path(project_path, AuditTools.COMPOSER_LOCK)
        if not os.path.isfile(lock_path):
            logger.warning(f"Custom CVE API check skipped: {AuditTools.COMPOSER_LOCK} not found at {lock_path}")
            return None
        try:
            with open(lock_path, 'r', encoding='utf-8') as f:
                lock_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SourceUnavailableError(
                "custom", f"Failed to read {AuditTools.COMPOSER_LOCK}: {e}", code="lockfile_unreadable"
            )
        if not isinstance(lock_data, dict):
            raise SourceUnavailableError(
                "custom", f"Unexpected {AuditTools.COMPOSER_LOCK} structure", code="lockfile_unreadable"
            )
        packages = lock_data.get('packages') or []
        packages_dev = lock_data.get('packages-dev') or []
        return [package for package in list(packages) + list(packages_dev) if isinstance(package, dict)]

    @staticmethod
    def run_custom_cve_lookup(project_path: str, cve_api: 'CustomCveAPI') -> Optional[Dict[str, Any]]:
        """
        Queries the custom CVE API for every package in composer.lock and maps
        the results into the Composer advisories shape.

        Per-package request failures are logged and skipped.

        Returns:
            {"advisories": {package: [advisory, ...]}}, or None when composer.lock is missing.
        """
        packages = AuditTools.load_composer_lock_packages(project_path)
        if packages is None:
            return None
        if not packages:
            logger.info(f"No packages found in {AuditTools.COMPOSER_LOCK} for Custom CVE API check.")
            return {"advisories": {}}

        advisories: Dict[str, List[Dict[str, Any]]] = {}
        queried = 0
        failures = 0
        for package in packages:
            name, version = package.get('name'), package.get('version')
            if not name or not version:
                continue
            queried += 1
            try:
                vulnerabilities = cve_api.search_package_vulnerabilities(name, version)
            except Exception as e:
                failures += 1
                logger.warning(f"Custom CVE API request failed for package {name}: {e}")
                continue
            if not vulnerabilities:
                continue
            mapped = advisories.setdefault(name, [])
            for vuln in vulnerabilities:
                advisory = {
                    'title': vuln.get('title') or 'Unknown Vulnerability',
                    'link': vuln.get('link') or '#',
                    'cve': vuln.get('cve'),
                    'affectedVersions': vuln.get('affected_versions') or '*',
                }
                if vuln.get('severity') is not None:
                    advisory['severity'] = vuln['severity']
                for key in ('description', 'overview'):
                    if vuln.get(key):
                        advisory[key] = vuln[key]
                mapped.append(advisory)

        if failures and failures == queried:
            raise SourceUnavailableError(
                "custom",
                f"Custom CVE API lookup failed for all {failures} packages",
                code="api_unreachable",
            )
        logger.debug(f"Custom CVE API returned advisories for {len(advisories)} packages ({failures} lookups failed)")
        return {"advisories": advisories}

"""
Normalization of raw audit output into canonical Findings.

Each audit source emits its own JSON shape:

  Composer / custom CVE API:
      {"advisories": {"<package>": [ {advisory}, ... ]}}
  npm (v7+):
      {"vulnerabilities": {"<package>": {"name", "severity", "via": [...], "range", "fixAvailable"}}}
  npm (legacy, v6):
      {"advisories": {"<id>": {"module_name", "title", "cves", "url", "vulnerable_versions", ...}}}

The functions here never drop an advisory because an optional field is missing;
missing values resolve to "N/A", None or Unknown. A document whose top level is
not what the source should produce raises ParseFailureError for that source only.
Output order is package order, then advisory order, as encountered in the
document (JSON objects decode into insertion-ordered dicts).
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ...exceptions import ParseFailureError
from .findings import Finding, FindingSource, NOT_AVAILABLE
from .severity import parse

logger = logging.getLogger(__name__)

CVE_PATTERN = re.compile(r"(CVE-\d{4}-\d{4,})", re.IGNORECASE)

RAW_EXCERPT_LENGTH = 500

COMPOSER_UNKNOWN_TITLE = "Unknown vulnerability"
NPM_UNKNOWN_TITLE = "Unknown Vulnerability"
CUSTOM_UNKNOWN_TITLE = "Unknown Vulnerability"


def load_raw_output(source: FindingSource, raw: Union[str, bytes, Mapping[str, Any], None]) -> Dict[str, Any]:
    """
    Decodes raw tool output into a dict, raising ParseFailureError on bad JSON
    or a non-object top level.
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")

    if isinstance(raw, str):
        if not raw.strip():
            raise ParseFailureError(source.value, f"{source.display_name} audit produced no output", raw_excerpt="")
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to decode {source.display_name} audit output: {e.msg}")
            raise ParseFailureError(
                source.value,
                f"{source.display_name} audit output could not be parsed as JSON: {e.msg}",
                raw_excerpt=raw[:RAW_EXCERPT_LENGTH],
            )

    if not isinstance(raw, Mapping):
        raise ParseFailureError(
            source.value,
            f"Unexpected {source.display_name} audit output: expected a JSON object, got {type(raw).__name__}",
            raw_excerpt=repr(raw)[:RAW_EXCERPT_LENGTH],
        )
    return dict(raw)


def _unexpected_shape(source: FindingSource, document: Dict[str, Any], expected: str) -> ParseFailureError:
    message = f"Unexpected {source.display_name} audit output: missing {expected}"
    error = document.get("error")
    if isinstance(error, dict):
        error = error.get("summary") or error.get("detail") or error.get("code")
    if error:
        message += f" (tool reported: {error})"
    return ParseFailureError(source.value, message, raw_excerpt=json.dumps(document, default=str)[:RAW_EXCERPT_LENGTH])


def _iter_entries(container: Any) -> Iterable[Any]:
    """
    Composer encodes empty maps as [] and sparse lists as objects; accept both.
    An object whose values are not all objects is a single advisory.
    """
    if isinstance(container, Mapping):
        if all(isinstance(value, Mapping) for value in container.values()):
            return container.values()
        return [container]
    if isinstance(container, list):
        return container
    return []


def _iter_package_map(source: FindingSource, document: Dict[str, Any], key: str) -> Iterable[Tuple[str, Any]]:
    container = document.get(key)
    if isinstance(container, Mapping):
        return container.items()
    if isinstance(container, list) and not container:
        return []
    raise _unexpected_shape(source, document, f"'{key}' object")


def _text(value: Any, default: Optional[str] = None) -> Optional[str]:
    if value is None or value == "":
        return default
    return str(value)


# --- Composer ----------------------------------------------------------------

def _composer_finding(package_name: str, advisory: Mapping[str, Any], source: FindingSource) -> Finding:
    return Finding(
        source=source,
        package_name=_text(package_name, NOT_AVAILABLE),
        cve=_text(advisory.get("cve")) or _text(advisory.get("advisoryId")) or NOT_AVAILABLE,
        title=_text(advisory.get("title"), COMPOSER_UNKNOWN_TITLE),
        severity=parse(advisory.get("severity")),
        affected_versions=_text(advisory.get("affectedVersions"), NOT_AVAILABLE),
        link=_text(advisory.get("link")),
        raw_data=dict(advisory),
    )


def normalize_composer(raw: Union[str, bytes, Mapping[str, Any]]) -> List[Finding]:
    """Normalizes `composer audit --format=json` output."""
    document = load_raw_output(FindingSource.COMPOSER, raw)
    findings = []
    for package_name, advisories in _iter_package_map(FindingSource.COMPOSER, document, "advisories"):
        for advisory in _iter_entries(advisories):
            if not isinstance(advisory, Mapping):
                logger.warning(f"Skipping non-object Composer advisory for package '{package_name}': {advisory!r}")
                advisory = {}
            findings.append(_composer_finding(package_name, advisory, FindingSource.COMPOSER))
    logger.debug(f"Normalized {len(findings)} Composer advisories")
    return findings


# --- Custom CVE API ------------------------------------------------------------

def normalize_custom(raw: Union[str, bytes, Mapping[str, Any]]) -> List[Finding]:
    """
    Normalizes advisories produced by the custom CVE API data source.

    The data provider maps the API response into the Composer advisories shape
    before it gets here. Severity goes through the same synonym table as every
    other source; if the API supplies none the finding is Unknown.
    """
    document = load_raw_output(FindingSource.CUSTOM, raw)
    findings = []
    for package_name, advisories in _iter_package_map(FindingSource.CUSTOM, document, "advisories"):
        for advisory in _iter_entries(advisories):
            if not isinstance(advisory, Mapping):
                logger.warning(f"Skipping non-object custom advisory for package '{package_name}': {advisory!r}")
                advisory = {}
            findings.append(Finding(
                source=FindingSource.CUSTOM,
                package_name=_text(package_name, NOT_AVAILABLE),
                cve=_text(advisory.get("cve")),
                title=_text(advisory.get("title"), CUSTOM_UNKNOWN_TITLE),
                severity=parse(advisory.get("severity")),
                affected_versions=_text(advisory.get("affectedVersions"), NOT_AVAILABLE),
                link=_text(advisory.get("link")),
                raw_data=dict(advisory),
            ))
    logger.debug(f"Normalized {len(findings)} custom CVE API advisories")
    return findings


# --- npm -----------------------------------------------------------------------

def find_cve(via: Iterable[Any]) -> Optional[str]:
    """
    Finds a CVE id in an npm `via` list.

    First object with a `cve` field wins; otherwise the first object whose url
    or title contains a CVE-looking id. Plain string entries are ignored.
    """
    objects = [item for item in via if isinstance(item, Mapping)]
    for item in objects:
        if item.get("cve"):
            return str(item["cve"])
    for item in objects:
        for key in ("url", "title"):
            value = item.get(key)
            if value:
                match = CVE_PATTERN.search(str(value))
                if match:
                    return match.group(1)
    return None


def find_link(via: Iterable[Any]) -> Optional[str]:
    for item in via:
        if isinstance(item, Mapping) and item.get("url"):
            return str(item["url"])
    return None


def generate_npm_title(details: Mapping[str, Any]) -> str:
    """
    npm does not report a title per vulnerable package, so one is built from `via`.

    When `via` holds advisory objects, every string/title/name entry is joined in
    order. A `via` made only of plain strings (names of vulnerable dependencies)
    falls back to the package's own name first.
    """
    via = details.get("via")
    via = via if isinstance(via, list) else []

    parts = []
    has_advisory = False
    for item in via:
        if isinstance(item, str):
            if item:
                parts.append(item)
        elif isinstance(item, Mapping):
            label = item.get("title") or item.get("name")
            if label:
                parts.append(str(label))
                has_advisory = True

    if parts and has_advisory:
        return ", ".join(parts)
    if details.get("name"):
        return str(details["name"])
    if parts:
        return ", ".join(parts)
    return NPM_UNKNOWN_TITLE


def _npm_fix_available(fix: Any) -> Union[str, bool]:
    if isinstance(fix, Mapping):
        name, version = fix.get("name"), fix.get("version")
        if name and version:
            return f"{name}@{version}"
        return False
    return fix is True


def _normalize_npm_vulnerabilities(document: Dict[str, Any]) -> List[Finding]:
    findings = []
    for package_name, details in _iter_package_map(FindingSource.NPM, document, "vulnerabilities"):
        if not isinstance(details, Mapping):
            logger.warning(f"Skipping non-object npm vulnerability entry for package '{package_name}': {details!r}")
            details = {}
        via = details.get("via")
        via = via if isinstance(via, list) else []
        findings.append(Finding(
            source=FindingSource.NPM,
            package_name=_text(details.get("name")) or _text(package_name, NOT_AVAILABLE),
            cve=find_cve(via),
            title=generate_npm_title(details),
            severity=parse(details.get("severity")),
            affected_versions=_text(details.get("range"), NOT_AVAILABLE),
            link=find_link(via),
            fix_available=_npm_fix_available(details.get("fixAvailable")),
            raw_data=dict(details),
        ))
    return findings


def _normalize_npm_advisories(document: Dict[str, Any]) -> List[Finding]:
    findings = []
    for advisory_id, details in _iter_package_map(FindingSource.NPM, document, "advisories"):
        if not isinstance(details, Mapping):
            logger.warning(f"Skipping non-object npm advisory '{advisory_id}': {details!r}")
            details = {}
        cves = details.get("cves")
        findings.append(Finding(
            source=FindingSource.NPM,
            package_name=_text(details.get("module_name"), NOT_AVAILABLE),
            cve=_text(cves[0]) if isinstance(cves, list) and cves else None,
            title=_text(details.get("title"), NOT_AVAILABLE),
            severity=parse(details.get("severity")),
            affected_versions=_text(details.get("vulnerable_versions"), NOT_AVAILABLE),
            link=_text(details.get("url")),
            fix_available=_text(details.get("patched_versions")) or False,
            raw_data=dict(details),
        ))
    return findings


def normalize_npm(raw: Union[str, bytes, Mapping[str, Any]]) -> List[Finding]:
    """Normalizes `npm audit --json` output in either the current or the legacy shape."""
    document = load_raw_output(FindingSource.NPM, raw)
    if "vulnerabilities" in document:
        findings = _normalize_npm_vulnerabilities(document)
    elif "advisories" in document:
        findings = _normalize_npm_advisories(document)
    else:
        raise _unexpected_shape(FindingSource.NPM, document, "'vulnerabilities' or 'advisories' object")
    logger.debug(f"Normalized {len(findings)} npm advisories")
    return findings


# --- Dispatch ------------------------------------------------------------------

NORMALIZERS = {
    FindingSource.COMPOSER: normalize_composer,
    FindingSource.NPM: normalize_npm,
    FindingSource.CUSTOM: normalize_custom,
}


def normalize_source(source: FindingSource, raw: Union[str, bytes, Mapping[str, Any]]) -> List[Finding]:
    """Normalizes one source's raw output. Raises ParseFailureError on bad input."""
    return NORMALIZERS[source](raw)


def normalize_sources(
    raw_outputs: Iterable[Tuple[FindingSource, Union[str, bytes, Mapping[str, Any]]]]
) -> Tuple[List[Finding], List[ParseFailureError]]:
    """
    Normalizes several sources, isolating parse failures per source.

    Returns the flat list of findings (in source order) and the parse failures
    that were absorbed along the way.
    """
    findings: List[Finding] = []
    failures: List[ParseFailureError] = []
    for source, raw in raw_outputs:
        try:
            findings.extend(normalize_source(source, raw))
        except ParseFailureError as e:
            logger.error(f"{e.message} | raw output: {e.details.get('raw_output', '')}")
            failures.append(e)
    return findings, failures

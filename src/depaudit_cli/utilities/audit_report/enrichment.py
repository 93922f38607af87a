"""
Enrichment of normalized findings with AI explanations and custom CVE intelligence.

Providers declare what they can do through `supports_explanation` and
`supports_custom_info`; the coordinator only ever talks to that interface.
A provider failure for one finding is logged and treated as "no data".
Only empty fields are filled, and for each field the first provider in
priority order that returns something wins.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .findings import Finding, NOT_AVAILABLE

logger = logging.getLogger(__name__)

# Upper bound on the advisory description passed to an explainer.
DESCRIPTION_EXCERPT_LENGTH = 500

# rawData keys that hold a free-text advisory description, in lookup order.
DESCRIPTION_KEYS = ("description", "overview")


@dataclass(frozen=True)
class ExplanationRequest:
    """What an explainer gets to see about one finding."""
    package_name: str
    title: str
    cve: Optional[str]
    affected_versions: str
    link: Optional[str]
    description: Optional[str] = None
    description_label: str = "Description"

    @classmethod
    def from_finding(cls, finding: Finding) -> "ExplanationRequest":
        description, label = None, "Description"
        for key in DESCRIPTION_KEYS:
            value = finding.raw_data.get(key)
            if isinstance(value, str) and value.strip():
                description = value[:DESCRIPTION_EXCERPT_LENGTH]
                label = key.capitalize()
                break
        return cls(
            package_name=finding.package_name,
            title=finding.title,
            cve=finding.cve if finding.has_cve else None,
            affected_versions=finding.affected_versions,
            link=finding.link,
            description=description,
            description_label=label,
        )


class EnrichmentProvider:
    """
    Base class for enrichment providers.

    Subclasses set the capability flags they support and override the
    matching method. Both methods may raise; the coordinator absorbs it.
    """
    name = "provider"
    supports_explanation = False
    supports_custom_info = False

    def try_explain(self, request: ExplanationRequest) -> Optional[str]:
        return None

    def try_custom_info(self, cve: str) -> Optional[Dict[str, Any]]:
        return None


@dataclass
class EnrichmentSummary:
    """Counts from one enrichment pass, for logging and the run summary."""
    findings: int = 0
    explanations_added: int = 0
    custom_info_added: int = 0
    provider_failures: int = 0
    interrupted: bool = False

    def merge(self, other: "EnrichmentSummary") -> None:
        self.explanations_added += other.explanations_added
        self.custom_info_added += other.custom_info_added
        self.provider_failures += other.provider_failures


def _log_provider_failure(provider: EnrichmentProvider, capability: str, finding: Finding, error: Exception) -> None:
    logger.warning(
        f"{capability} provider '{provider.name}' failed for package '{finding.package_name}' "
        f"({finding.cve or NOT_AVAILABLE}, '{finding.title}'): {error}"
    )


def enrich_finding(finding: Finding, providers: Sequence[EnrichmentProvider]) -> EnrichmentSummary:
    """
    Runs every provider against one finding, in priority order.

    Explanation and custom info are independent: a provider that fails to
    explain may still supply custom info and vice versa.
    """
    summary = EnrichmentSummary(findings=1)

    for provider in providers:
        if not finding.explanation and provider.supports_explanation:
            try:
                explanation = provider.try_explain(ExplanationRequest.from_finding(finding))
                if finding.fill_explanation(explanation):
                    summary.explanations_added += 1
                    logger.debug(f"Explanation for {finding.identifier} supplied by '{provider.name}'")
            except Exception as e:
                summary.provider_failures += 1
                _log_provider_failure(provider, "Explanation", finding, e)

        if not finding.custom_info and finding.has_cve and provider.supports_custom_info:
            try:
                if finding.fill_custom_info(provider.try_custom_info(finding.cve)):
                    summary.custom_info_added += 1
                    logger.debug(f"Custom info for {finding.identifier} supplied by '{provider.name}'")
            except Exception as e:
                summary.provider_failures += 1
                _log_provider_failure(provider, "Custom info", finding, e)

    return summary


def enrich_findings(
    findings: List[Finding],
    providers: Sequence[EnrichmentProvider],
    max_workers: int = 1
) -> EnrichmentSummary:
    """
    Enriches findings in place.

    With max_workers > 1 findings are spread over a thread pool. Each finding is
    handled by exactly one task, so every field still has a single writer and
    provider priority decides which value lands. On KeyboardInterrupt pending
    work is cancelled and the interrupt re-raised; findings enriched so far
    keep their values.
    """
    summary = EnrichmentSummary(findings=len(findings))
    if not findings or not providers:
        logger.debug("Skipping enrichment: no findings or no providers configured")
        return summary

    names = ", ".join(provider.name for provider in providers)
    logger.info(f"Enriching {len(findings)} findings using: {names}")

    if max_workers <= 1 or len(findings) == 1:
        for finding in findings:
            summary.merge(enrich_finding(finding, providers))
    else:
        executor = ThreadPoolExecutor(max_workers=max_workers)
        try:
            future_to_finding = {
                executor.submit(enrich_finding, finding, providers): finding
                for finding in findings
            }
            completed = 0
            for future in as_completed(future_to_finding):
                completed += 1
                summary.merge(future.result())
                if completed % 10 == 0 or completed == len(findings):
                    logger.info(f"Enriched {completed}/{len(findings)} findings")
        except KeyboardInterrupt:
            summary.interrupted = True
            logger.warning("Enrichment interrupted; keeping findings enriched so far")
            raise
        finally:
            executor.shutdown(wait=not summary.interrupted, cancel_futures=summary.interrupted)

    logger.info(
        f"Enrichment complete: {summary.explanations_added} explanations, "
        f"{summary.custom_info_added} custom info records, {summary.provider_failures} provider failures"
    )
    return summary

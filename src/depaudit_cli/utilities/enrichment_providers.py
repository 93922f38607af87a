# depaudit_cli/utilities/enrichment_providers.py

"""
Concrete enrichment providers backed by the OpenAI and custom CVE API clients.
"""

import logging
from typing import Any, Dict, List, Optional

from .audit_report.enrichment import EnrichmentProvider, ExplanationRequest
from .audit_report.findings import NOT_AVAILABLE

from ..api import CustomCveAPI, OpenAIAPI

logger = logging.getLogger("depaudit-cli")


def build_explanation_prompt(request: ExplanationRequest) -> str:
    """User prompt for the explainer; CVE, link and description lines only appear when known."""
    lines = [
        f"Vulnerability found in package: {request.package_name or NOT_AVAILABLE}",
        f"Title: {request.title or NOT_AVAILABLE}",
    ]
    if request.cve:
        lines.append(f"CVE: {request.cve}")
    lines.append(f"Affected Versions: {request.affected_versions or NOT_AVAILABLE}")
    if request.link:
        lines.append(f"Link: {request.link}")
    if request.description:
        lines.append(f"{request.description_label}: {request.description}...")
    return "\n".join(lines) + "\n"


class OpenAIExplanationProvider(EnrichmentProvider):
    """Explains findings with an OpenAI chat model."""
    name = "openai"
    supports_explanation = True

    def __init__(self, client: OpenAIAPI):
        self.client = client

    def try_explain(self, request: ExplanationRequest) -> Optional[str]:
        return self.client.explain(build_explanation_prompt(request))


class CustomCveInfoProvider(EnrichmentProvider):
    """Looks up custom CVE records (status, AI solution hints) from the custom CVE API."""
    name = "custom_cve_api"
    supports_custom_info = True

    def __init__(self, client: CustomCveAPI):
        self.client = client

    def try_custom_info(self, cve: str) -> Optional[Dict[str, Any]]:
        return self.client.get_cve_info(cve)


def build_enrichment_providers(params) -> List[EnrichmentProvider]:
    """
    Creates the configured providers in priority order: OpenAI first, then the
    custom CVE API. A provider without credentials or URL is left out, and the
    custom CVE API is not used for enrichment when it is already the Composer
    data source.
    """
    providers: List[EnrichmentProvider] = []

    if getattr(params, 'skip_openai', False):
        logger.debug("OpenAI explanations disabled by --skip-openai")
    elif getattr(params, 'openai_api_key', None):
        providers.append(OpenAIExplanationProvider(OpenAIAPI(
            params.openai_api_key,
            model=params.openai_model,
            timeout=params.api_timeout,
        )))
    else:
        logger.debug("OpenAI explanations disabled: no API key configured")

    if getattr(params, 'skip_custom_cve', False):
        logger.debug("Custom CVE info disabled by --skip-custom-cve")
    elif getattr(params, 'composer_source', None) == CustomCveInfoProvider.name:
        logger.debug("Custom CVE info disabled: the custom CVE API is the Composer data source")
    elif getattr(params, 'cve_api_url', None):
        providers.append(CustomCveInfoProvider(CustomCveAPI(
            params.cve_api_url,
            api_token=params.cve_api_token,
            auth_type=params.cve_api_auth_type,
            timeout=params.api_timeout,
        )))
    else:
        logger.debug("Custom CVE info disabled: no API URL configured")

    return providers

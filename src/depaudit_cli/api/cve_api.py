# depaudit_cli/api/cve_api.py

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from .helpers.api_base import APIBase, DEFAULT_TIMEOUT
from ..exceptions import ApiError, ConfigurationError

logger = logging.getLogger("depaudit-cli")

AUTH_TYPES = ("bearer", "header", "none")
API_KEY_HEADER = "X-API-KEY"

# Per-run cache of custom CVE records, keyed by CVE id. None marks "looked up, nothing found".
_CVE_INFO_CACHE: Dict[str, Optional[Dict[str, Any]]] = {}


def clear_cve_info_cache() -> None:
    _CVE_INFO_CACHE.clear()


def _auth_headers(token: Optional[str], auth_type: str) -> Dict[str, str]:
    if not token or auth_type == "none":
        return {}
    if auth_type == "bearer":
        return {"Authorization": f"Bearer {token}"}
    return {API_KEY_HEADER: token}


class CustomCveAPI(APIBase):
    """
    Client for a self-hosted CVE intelligence API.

    Endpoints:
        POST {url}              body {"package", "version"} -> list of vulnerabilities
        GET  {url}/cve/{cve}    -> custom info record for one CVE
    """

    def __init__(self, api_url: str, api_token: Optional[str] = None, auth_type: str = "bearer",
                 timeout: int = DEFAULT_TIMEOUT):
        if not api_url:
            raise ConfigurationError("Custom CVE API URL is not configured. Set --cve-api-url or DEPAUDIT_CVE_API_URL.")
        auth_type = (auth_type or "bearer").lower()
        if auth_type not in AUTH_TYPES:
            raise ConfigurationError(
                f"Unsupported custom CVE API auth type '{auth_type}'. Expected one of: {', '.join(AUTH_TYPES)}"
            )
        super().__init__(api_url, timeout=timeout, headers=_auth_headers(api_token, auth_type))
        self.auth_type = auth_type

    def search_package_vulnerabilities(self, package: str, version: str) -> List[Dict[str, Any]]:
        """
        Looks up known vulnerabilities for one installed package version.

        Raises:
            NetworkError, ApiError, AuthenticationError: when the request fails
        """
        logger.debug(f"Querying custom CVE API for {package}@{version}")
        response = self._send_request("POST", "", payload={"package": package, "version": version})
        if not response:
            return []
        if isinstance(response, dict):
            # Some deployments wrap the list as {"data": [...]}
            response = response.get("data", response.get("vulnerabilities", []))
        if not isinstance(response, list):
            raise ApiError(
                f"Unexpected response from custom CVE API for package {package}",
                details={"response": str(response)[:500]},
            )
        return [item for item in response if isinstance(item, dict)]

    def get_cve_info(self, cve: str) -> Optional[Dict[str, Any]]:
        """
        Fetches the custom info record for a CVE, cached for the rest of the run.
        Errors are not cached, so a later finding with the same CVE retries.
        """
        if cve in _CVE_INFO_CACHE:
            logger.debug(f"Custom CVE info for {cve} served from cache")
            return _CVE_INFO_CACHE[cve]

        response = self._send_request("GET", f"cve/{quote(cve, safe='')}")
        info = response if isinstance(response, dict) and response else None
        _CVE_INFO_CACHE[cve] = info
        return info

import json
import logging
import requests
from typing import Any, Dict, Optional
from ...exceptions import (
    ApiError,
    AuthenticationError,
    NetworkError,
)

# Assume logger is configured in main.py
logger = logging.getLogger("depaudit-cli")

DEFAULT_TIMEOUT = 30  # seconds


class APIBase:
    """
    Base class for the JSON-over-HTTP clients (custom CVE API, OpenAI).
    Owns the requests session and maps transport failures onto CLI exceptions.
    """

    def __init__(self, base_url: str, timeout: int = DEFAULT_TIMEOUT, headers: Optional[Dict[str, str]] = None):
        """
        Args:
            base_url: Root URL of the service; a trailing slash is removed
            timeout: Per-request timeout in seconds
            headers: Extra headers sent with every request (auth, API keys)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()  # Use a session for connection reuse
        self.session.trust_env = False  # Do not trust .netrc file
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json; charset=utf-8",
        })
        if headers:
            self.session.headers.update(headers)

    def _url(self, path: str) -> str:
        if not path:
            return self.base_url
        return f"{self.base_url}/{path.lstrip('/')}"

    def _send_request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[int] = None
    ) -> Any:
        """
        Sends a request and returns the decoded JSON body.

        Raises:
            NetworkError: For connection issues, timeouts, etc.
            AuthenticationError: For 401/403 responses
            ApiError: For other HTTP errors and non-JSON bodies
        """
        url = self._url(path)
        logger.debug("API Request: %s %s", method, url)
        if payload is not None:
            logger.debug("Request Body: %s", json.dumps(payload, default=str)[:500])

        try:
            response = self.session.request(
                method, url, json=payload, params=params, timeout=timeout or self.timeout
            )
        except requests.exceptions.ConnectionError as e:
            logger.debug("API connection failed: %s", e)
            raise NetworkError(f"Failed to connect to {self.base_url}", details={"error": str(e)})
        except requests.exceptions.Timeout as e:
            logger.debug("API request timed out: %s", e)
            raise NetworkError(f"Request to {self.base_url} timed out", details={"error": str(e)})
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Network error while calling {self.base_url}: {e}") from e

        logger.debug("Response Status Code: %s", response.status_code)
        logger.debug(f"Response Text (first 500 chars): {response.text[:500] if hasattr(response, 'text') else '(No text)'}")

        if response.status_code in (401, 403):
            raise AuthenticationError(
                "Invalid credentials or expired token",
                code=str(response.status_code),
                details={"url": url},
            )

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise ApiError(
                f"API request failed with status {response.status_code}",
                code=str(response.status_code),
                details={"url": url, "response_text": response.text[:500], "error": str(e)},
            )

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"Invalid JSON received from API: {e}",
                details={"url": url, "response_text": response.text[:500]},
            )

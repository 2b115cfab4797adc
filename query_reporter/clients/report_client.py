"""HTTP client for the external reporting endpoint."""

import logging
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)


class ReportClient:
    """Client that posts query results to the reporting endpoint.

    Each result is sent as a flat JSON object mapping human-readable labels
    to scalar values, e.g. ``{"Average weight": 71.3, "Start Date": "..."}``.
    """

    def __init__(
        self,
        endpoint_url: str,
        api_token: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3
    ):
        """Initialize the report client.

        Args:
            endpoint_url: URL that accepts result payloads
            api_token: Optional bearer token
            timeout: Request timeout in seconds
            max_retries: Maximum number of retry attempts
        """
        self.endpoint_url = endpoint_url.rstrip("/")
        self.timeout = timeout

        # Set up session with retry logic
        self.session = requests.Session()
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=None,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

        self.session.headers.update({"Content-Type": "application/json"})
        if api_token:
            self.session.headers["Authorization"] = f"Bearer {api_token}"

    def post_result(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Send one result payload.

        Args:
            payload: Mapping of labels to scalar values

        Returns:
            Decoded JSON response, or None if the endpoint returned no JSON body

        Raises:
            requests.exceptions.RequestException: On delivery errors
        """
        try:
            response = self.session.post(
                self.endpoint_url,
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()

        except requests.exceptions.HTTPError as e:
            logger.error(f"Reporting endpoint error: {e.response.status_code} - {e.response.text}")
            raise
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to post result: {e}")
            raise

        logger.debug(f"Posted result: {payload}")

        try:
            return response.json()
        except ValueError:
            return None

    def test_connection(self) -> bool:
        """Check that the endpoint is reachable.

        Returns:
            True if the endpoint answered without a server error
        """
        try:
            response = self.session.get(self.endpoint_url, timeout=self.timeout)
            return response.status_code < 500
        except requests.exceptions.RequestException as e:
            logger.error(f"Reporting endpoint connection test failed: {e}")
            return False

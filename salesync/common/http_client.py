"""
Shared requests session for the SharePoint and REST datastore calls.

Every non-2xx answer is raised as requests.exceptions.HTTPError with the
response attached, so callers can read the provider's error body.
"""

import logging
from typing import Any, Dict, Iterable, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from salesync import __version__


logger = logging.getLogger(__name__)

USER_AGENT = f"salesync/{__version__}"
RETRY_STATUSES = (429, 500, 502, 503, 504)
# Error bodies are logged up to this many characters
LOG_BODY_LIMIT = 500


class HTTPClient:
    """
    Pooled HTTP client.

    total_retries defaults to 0: each sync step is attempted once and the
    first failure is what the caller sees.
    """

    def __init__(
        self,
        default_timeout: int = 30,
        total_retries: int = 0,
        backoff_factor: float = 1.0,
        retry_statuses: Iterable[int] = RETRY_STATUSES,
        pool_maxsize: int = 4
    ):
        """
        Args:
            default_timeout: Seconds before a request is abandoned
            total_retries: Retry attempts on connection errors and retry_statuses
            backoff_factor: Delay factor between retries
            retry_statuses: Status codes worth retrying
            pool_maxsize: Connections kept per host
        """
        self.default_timeout = default_timeout
        self.session = requests.Session()
        self.session.headers['User-Agent'] = USER_AGENT

        adapter = HTTPAdapter(
            max_retries=Retry(
                total=total_retries,
                backoff_factor=backoff_factor,
                status_forcelist=list(retry_statuses),
                allowed_methods=None,
                raise_on_status=False,
            ),
            pool_maxsize=pool_maxsize,
        )
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

        logger.debug(f"HTTP client ready (timeout={default_timeout}s, retries={total_retries})")

    def request(
        self,
        method: str,
        url: str,
        timeout: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any
    ) -> requests.Response:
        """
        Send a request and raise on a non-2xx status.

        Raises:
            requests.exceptions.HTTPError: On 4xx/5xx (response attached)
            requests.exceptions.RequestException: On transport failure or timeout
        """
        method = method.upper()
        timeout = timeout or self.default_timeout

        try:
            response = self.session.request(method, url, headers=headers, timeout=timeout, **kwargs)
        except requests.exceptions.Timeout:
            logger.error(f"{method} {url} timed out after {timeout}s")
            raise
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise

        logger.debug(f"{method} {url} -> {response.status_code} ({len(response.content)} bytes)")

        if not response.ok:
            logger.warning(
                f"{method} {url} -> {response.status_code}: {response.text[:LOG_BODY_LIMIT]}"
            )
        response.raise_for_status()
        return response

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("POST", url, **kwargs)

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

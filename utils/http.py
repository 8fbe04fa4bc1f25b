"""HTTP helpers for the update feed.

The feed is fetched through one pooled ``requests.Session`` whose adapters
retry transient failures (429 and 5xx) with exponential backoff.  Only GET
and HEAD are ever retried.
"""

from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

USER_AGENT = "bill-tracker/1.0 (+update feed)"


class RetryStrategy:
    """Retry policy for feed requests.

    Args:
        max_retries: Attempts after the first one.
        backoff_factor: Base of the exponential sleep between attempts.
        status_forcelist: Response codes treated as transient.
    """

    def __init__(self, max_retries: int = 3, backoff_factor: float = 1.0,
                 status_forcelist: Optional[list[int]] = None):
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.status_forcelist = status_forcelist or [429, 500, 502, 503, 504]

    def to_urllib3(self) -> Retry:
        return Retry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=self.status_forcelist,
            allowed_methods=["GET", "HEAD"],
            raise_on_status=False,
        )


class SessionManager:
    """Lazily built session with the retry policy mounted for http and https."""

    def __init__(self, retry_strategy: Optional[RetryStrategy] = None,
                 pool_maxsize: int = 4):
        self.retry_strategy = retry_strategy or RetryStrategy()
        self.pool_maxsize = pool_maxsize
        self._session: Optional[requests.Session] = None

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            session = requests.Session()
            session.headers["User-Agent"] = USER_AGENT
            session.headers["Accept"] = "application/json"
            adapter = HTTPAdapter(
                max_retries=self.retry_strategy.to_urllib3(),
                pool_maxsize=self.pool_maxsize,
            )
            session.mount("http://", adapter)
            session.mount("https://", adapter)
            self._session = session
        return self._session

    def get_json(self, url: str, timeout: float) -> Any:
        """GET ``url`` and decode the body as JSON.

        Raises:
            requests.HTTPError: On a non-2xx status once retries are spent.
            requests.RequestException: On connection failures and timeouts.
            ValueError: If the body is not JSON.
        """
        resp = self.session.get(url, timeout=timeout)
        resp.raise_for_status()
        return resp.json()

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

"""Facebook Graph API HTTP client.

Thin ``requests`` client for the two Graph API edges the exporter reads:
``/act_<id>/insights`` and ``/act_<id>/ads``. Pagination follows the
``paging.next`` URL the API returns until it is absent; an ``error`` object in
any page aborts the whole query.

Key Features:
- Session with urllib3 retries on 429 and 5xx
- Explicit cursor pagination (no request after the last page)
- Account id normalization to the ``act_`` form
"""

import json
from typing import Any, Dict, List, Optional, Sequence

import requests
from loguru import logger
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from insights_export.core.constants import (
    MAX_RETRIES,
    REQUEST_TIMEOUT_SECONDS,
    RETRY_BACKOFF_FACTOR,
)
from insights_export.core.exceptions import APIError, AuthenticationError
from insights_export.platforms.facebook.constants import (
    ACCOUNT_PREFIX,
    ADS_PAGE_LIMIT,
    GRAPH_API_BASE_URL,
    GRAPH_API_VERSION,
    INSIGHTS_LEVEL,
    INSIGHTS_PAGE_LIMIT,
    INSIGHTS_TIME_INCREMENT,
)


def normalize_account_id(account_id: str) -> str:
    """Return the account id in ``act_<digits>`` form."""
    account_id = str(account_id).strip()
    if not account_id.startswith(ACCOUNT_PREFIX):
        account_id = f"{ACCOUNT_PREFIX}{account_id}"
    return account_id


class FacebookGraphClient:
    """HTTP client for the Facebook Graph API.

    Attributes:
        access_token: User access token sent with every first-page request
        api_url: Versioned Graph API root, e.g. https://graph.facebook.com/v19.0
        timeout: Per-request timeout in seconds
        page_limit: Rows requested per insights page
    """

    def __init__(
        self,
        access_token: str,
        api_url: str = f"{GRAPH_API_BASE_URL}/{GRAPH_API_VERSION}",
        timeout: int = REQUEST_TIMEOUT_SECONDS,
        max_retries: int = MAX_RETRIES,
        page_limit: int = INSIGHTS_PAGE_LIMIT,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            access_token: Graph API user access token
            api_url: Versioned Graph API root
            timeout: Request timeout in seconds
            max_retries: Retries for 429/5xx responses
            page_limit: Insights page size
            session: Pre-built session (tests inject a mock)

        Raises:
            AuthenticationError: If the token is empty
        """
        if not access_token:
            raise AuthenticationError("Facebook access token is empty")

        self.access_token = access_token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.page_limit = page_limit
        self._session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry configuration."""
        session = requests.Session()

        retry_strategy = Retry(
            total=self.max_retries,
            backoff_factor=RETRY_BACKOFF_FACTOR,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return session

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute one GET and return the decoded payload.

        Raises:
            APIError: On transport failure, non-JSON body, ``error`` payload
                or HTTP error status
        """
        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise APIError(
                f"Graph API request failed: {e}",
                details={"url": url.split("?")[0]},
            ) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise APIError(
                "Graph API returned a non-JSON response",
                status_code=response.status_code,
                response_body=response.text,
            ) from e

        if isinstance(payload, dict) and payload.get("error"):
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise APIError(
                message or "Graph API error",
                status_code=response.status_code,
                details={
                    "type": error.get("type") if isinstance(error, dict) else None,
                    "code": error.get("code") if isinstance(error, dict) else None,
                },
            )

        if response.status_code >= 400:
            raise APIError(
                f"Graph API request failed with status {response.status_code}",
                status_code=response.status_code,
                response_body=json.dumps(payload)[:500],
            )

        return payload

    def get_paginated(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Fetch every page of an edge.

        The first request carries ``params``; later requests use the
        ``paging.next`` URL verbatim, which already embeds them.

        Args:
            path: Edge path relative to the API root, e.g. "act_1/insights"
            params: Query parameters for the first page

        Returns:
            Rows of all pages in API order
        """
        url: Optional[str] = f"{self.api_url}/{path.lstrip('/')}"
        query: Optional[Dict[str, Any]] = {**params, "access_token": self.access_token}
        rows: List[Dict[str, Any]] = []
        pages = 0

        while url:
            payload = self._get_json(url, query)
            pages += 1
            rows.extend(payload.get("data") or [])
            url = (payload.get("paging") or {}).get("next")
            query = None

        logger.debug(f"{path}: {len(rows)} rows in {pages} page(s)")
        return rows

    def get_insights(
        self,
        account_id: str,
        since: str,
        until: str,
        fields: Sequence[str],
    ) -> List[Dict[str, Any]]:
        """Fetch ad-level daily insights for one account.

        Args:
            account_id: Ad account id, with or without ``act_``
            since: First day, YYYY-MM-DD (inclusive)
            until: Last day, YYYY-MM-DD (inclusive)
            fields: Graph API insight fields

        Returns:
            Raw insight rows

        Raises:
            APIError: If any page fails
        """
        account_id = normalize_account_id(account_id)
        params = {
            "fields": ",".join(fields),
            "time_range": json.dumps({"since": since, "until": until}),
            "time_increment": INSIGHTS_TIME_INCREMENT,
            "level": INSIGHTS_LEVEL,
            "limit": self.page_limit,
        }
        logger.info(f"Fetching insights for {account_id} ({since} -> {until})")
        rows = self.get_paginated(f"{account_id}/insights", params)
        logger.success(f"Retrieved {len(rows)} insight rows for {account_id}")
        return rows

    def get_ads(self, account_id: str, fields: Sequence[str]) -> List[Dict[str, Any]]:
        """Fetch every ad of an account with the given field expansion."""
        account_id = normalize_account_id(account_id)
        params = {"fields": ",".join(fields), "limit": ADS_PAGE_LIMIT}
        rows = self.get_paginated(f"{account_id}/ads", params)
        logger.success(f"Retrieved {len(rows)} ads for {account_id}")
        return rows

    def get_account_name(self, account_id: str) -> str:
        """Return the account's display name, or the id when it has none."""
        account_id = normalize_account_id(account_id)
        payload = self._get_json(
            f"{self.api_url}/{account_id}",
            {"fields": "name", "access_token": self.access_token},
        )
        return payload.get("name") or account_id

    def close(self) -> None:
        self._session.close()

"""Multi-account insights fetcher.

Fans one insights query per ad account out over a thread pool and joins the
per-account row lists by concatenation. Rows of one account keep the API's
order; accounts are concatenated in request order.

Each account query gets its own ``FacebookGraphClient``; a requests session
is not shared between worker threads.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Sequence

from loguru import logger

from insights_export.core.constants import DEFAULT_FETCH_WORKERS
from insights_export.core.exceptions import APIError, ExportError
from insights_export.platforms.facebook.http_client import FacebookGraphClient


class InsightsFetcher:
    """Fetches insights for several ad accounts in parallel.

    Attributes:
        client_factory: Builds a fresh Graph API client for one account query
        max_workers: Upper bound on concurrent account queries
    """

    def __init__(
        self,
        client_factory: Callable[[], FacebookGraphClient],
        max_workers: int = DEFAULT_FETCH_WORKERS,
    ):
        self.client_factory = client_factory
        self.max_workers = max(1, max_workers)

    def _fetch_account(
        self,
        account_id: str,
        since: str,
        until: str,
        fields: Sequence[str],
    ) -> List[Dict[str, Any]]:
        client = self.client_factory()
        try:
            return client.get_insights(account_id, since, until, fields)
        finally:
            client.close()

    def fetch(
        self,
        account_ids: Sequence[str],
        since: str,
        until: str,
        fields: Sequence[str],
    ) -> List[Dict[str, Any]]:
        """Fetch and concatenate insights for every account.

        Args:
            account_ids: Ad account ids
            since: First day (inclusive), YYYY-MM-DD
            until: Last day (inclusive), YYYY-MM-DD
            fields: Graph API fields to request

        Returns:
            All rows of all accounts

        Raises:
            APIError: If any account fails; results of the others are discarded
        """
        if not account_ids:
            return []

        workers = min(len(account_ids), self.max_workers)
        logger.info(f"Fetching insights for {len(account_ids)} account(s) (max workers: {workers})")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                (account_id, executor.submit(self._fetch_account, account_id, since, until, fields))
                for account_id in account_ids
            ]

            rows: List[Dict[str, Any]] = []
            for account_id, future in futures:
                try:
                    rows.extend(future.result())
                except ExportError:
                    logger.error(f"Insights fetch failed for account {account_id}")
                    for _, pending in futures:
                        pending.cancel()
                    raise
                except Exception as e:
                    for _, pending in futures:
                        pending.cancel()
                    raise APIError(
                        f"Insights fetch failed for account {account_id}: {e}",
                        details={"account_id": account_id},
                    ) from e

        logger.success(f"Fetched {len(rows)} insight rows across {len(account_ids)} account(s)")
        return rows

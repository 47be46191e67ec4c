"""Client for the source calendar's events API."""
import logging
from typing import Any, Dict, List, Optional

import requests

from client.errors import ApiCallError
from client.retry import RetryExecutor
from processor.models import SourceEvent

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """The source calendar could not be read."""


class SourceCalendarClient:
    """Paged reader for the source calendar REST API."""

    def __init__(
        self,
        base_url: str,
        retry_executor: RetryExecutor,
        timeout: int = 30,
        per_page: int = 50,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the source calendar client.

        Args:
            base_url: API root, e.g. https://example.com/wp-json/tribe/events/v1
            retry_executor: Executor wrapping each page request
            timeout: HTTP request timeout in seconds (default: 30)
            per_page: Page size for listings (default: 50)
            session: Optional requests session to reuse
        """
        self.base_url = base_url.rstrip('/')
        self.retry_executor = retry_executor
        self.timeout = timeout
        self.per_page = per_page
        self.session = session or requests.Session()

    def _get(self, path: str, params: Dict[str, Any], stage: str) -> Dict[str, Any]:
        url = f"{self.base_url}/{path}"

        def call():
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()

        return self.retry_executor.execute_with_retry(
            call,
            stage=stage,
            context={'url': url, **params}
        )

    def fetch_raw_events(self, start_date: str, end_date: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Fetch every raw event object between two dates, page by page.

        Paging stops at the first page shorter than per_page.

        Args:
            start_date: First date (YYYY-MM-DD)
            end_date: Last date (default: start_date)

        Returns:
            List of event objects as published by the source

        Raises:
            ExtractionError: If any page cannot be fetched
        """
        end_date = end_date or start_date
        logger.info(
            f"Fetching source events from {start_date} to {end_date}",
            extra={'stage': 'extraction', 'date': start_date}
        )

        all_events = []
        page = 1
        while True:
            params = {
                'start_date': start_date,
                'end_date': end_date,
                'per_page': self.per_page,
                'page': page
            }
            try:
                data = self._get('events', params, 'extraction')
            except ApiCallError as e:
                raise ExtractionError(
                    f"Failed to fetch source events for {start_date} (page {page}): {e}"
                ) from e

            fetched = (data or {}).get('events') or []
            all_events.extend(fetched)
            logger.info(
                f"Retrieved {len(fetched)} events for {start_date} page {page}",
                extra={'stage': 'extraction', 'date': start_date}
            )

            if len(fetched) < self.per_page:
                break
            page += 1

        return all_events

    def fetch_events(self, start_date: str, end_date: Optional[str] = None) -> List[SourceEvent]:
        """Fetch and parse events between two dates."""
        return [SourceEvent.from_dict(raw) for raw in self.fetch_raw_events(start_date, end_date)]

    def fetch_categories(self) -> List[Dict[str, Any]]:
        """Return the source category listing (name, slug, id)."""
        data = self._get('categories', {'per_page': 100}, 'initialization')
        return (data or {}).get('categories') or []

    def fetch_organizers(self) -> List[Dict[str, Any]]:
        """Return every organizer published by the source, page by page."""
        organizers = []
        page = 1
        while True:
            data = self._get('organizers', {'per_page': self.per_page, 'page': page}, 'initialization')
            fetched = (data or {}).get('organizers') or []
            organizers.extend(fetched)
            if len(fetched) < self.per_page:
                break
            page += 1
        return organizers

"""HTTP client for the destination event platform."""
import logging
from typing import Any, Dict, List, Optional

import requests

from client.retry import RetryExecutor

logger = logging.getLogger(__name__)


class DestinationApiClient:
    """
    Thin wrapper over the destination platform's REST API.

    Every request runs through the RetryExecutor, so callers see either a
    parsed JSON body or an ApiCallError.
    """

    IMPORT_SOURCE = 'Calendar-Import'

    def __init__(
        self,
        base_url: str,
        app_id: str,
        retry_executor: RetryExecutor,
        auth_token: Optional[str] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the destination API client.

        Args:
            base_url: API root, e.g. http://localhost:3010/api
            app_id: Application identifier sent with every request
            retry_executor: Executor wrapping each call
            auth_token: Bearer token; requests go unauthenticated without it
            timeout: HTTP request timeout in seconds
            session: Optional requests session to reuse
        """
        self.base_url = base_url.rstrip('/')
        self.app_id = app_id
        self.retry_executor = retry_executor
        self.auth_token = auth_token
        self.timeout = timeout
        self.session = session or requests.Session()

        if not auth_token:
            logger.warning("No authentication token configured - destination writes may be rejected")

    def _headers(self) -> Dict[str, str]:
        headers = {
            'Content-Type': 'application/json',
            'X-Import-Source': self.IMPORT_SOURCE
        }
        if self.auth_token:
            headers['Authorization'] = f"Bearer {self.auth_token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        stage: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"

        def call():
            response = self.session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._headers(),
                timeout=self.timeout
            )
            response.raise_for_status()
            if not response.content:
                return None
            return response.json()

        return self.retry_executor.execute_with_retry(
            call,
            stage=stage,
            context={'method': method, 'url': url, **(context or {})}
        )

    def find_venues(self, name: str) -> List[Dict[str, Any]]:
        """Look up venues by name; first match wins."""
        data = self._request(
            'GET', 'venues', 'entity_resolution',
            params={'appId': self.app_id, 'name': name},
            context={'venue_name': name}
        )
        return (data or {}).get('data') or []

    def get_venue(self, venue_id: str) -> Optional[Dict[str, Any]]:
        return self._request(
            'GET', f"venues/{venue_id}", 'entity_resolution',
            params={'appId': self.app_id},
            context={'venue_id': venue_id}
        )

    def update_venue(self, venue_id: str, venue: Dict[str, Any]) -> Any:
        body = dict(venue)
        body['appId'] = self.app_id
        return self._request(
            'PUT', f"venues/{venue_id}", 'entity_resolution',
            params={'appId': self.app_id},
            json_body=body,
            context={'venue_id': venue_id}
        )

    def find_nearest_city(self, longitude: float, latitude: float) -> List[Dict[str, Any]]:
        """Return the nearest city records (with distanceInKm) to a point."""
        data = self._request(
            'GET', 'venues/nearest-city', 'entity_resolution',
            params={
                'appId': self.app_id,
                'longitude': longitude,
                'latitude': latitude,
                'limit': 1
            }
        )
        if isinstance(data, dict):
            return data.get('data') or []
        return data or []

    def find_organizers(self, name: str, by: str = 'name') -> List[Dict[str, Any]]:
        """
        Look up organizers; first match wins.

        Args:
            name: Value to match
            by: Organizer field to match on ('name' or 'btcNiceName')
        """
        data = self._request(
            'GET', 'organizers', 'entity_resolution',
            params={'appId': self.app_id, by: name},
            context={'organizer_name': name, 'lookup_field': by}
        )
        return (data or {}).get('organizers') or []

    def list_categories(self, limit: int = 500) -> List[Dict[str, Any]]:
        data = self._request(
            'GET', 'categories', 'entity_resolution',
            params={'appId': self.app_id, 'limit': limit}
        )
        return (data or {}).get('data') or []

    def find_events(self, start: str, end: str) -> List[Dict[str, Any]]:
        """Return destination events whose start falls within [start, end]."""
        data = self._request(
            'GET', 'events', 'loading',
            params={'appId': self.app_id, 'start': start, 'end': end},
            context={'start': start, 'end': end}
        )
        return (data or {}).get('events') or []

    def delete_event(self, event_id: str) -> Any:
        return self._request(
            'DELETE', f"events/{event_id}", 'loading',
            context={'event_id': event_id}
        )

    def create_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request(
            'POST', 'events/post', 'loading',
            json_body=payload,
            context={'title': payload.get('title')}
        )

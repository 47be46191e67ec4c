"""Unit tests for DestinationApiClient."""
import json
from unittest.mock import patch

import pytest
import responses
from responses import matchers

from client.destination_api import DestinationApiClient
from client.errors import ApiCallError, ErrorType
from client.retry import RetryExecutor

BASE_URL = 'http://destination.example.com/api'


@pytest.fixture
def api():
    return DestinationApiClient(BASE_URL, '1', RetryExecutor(), auth_token='secret-token')


class TestDestinationApiClient:
    """Test cases for DestinationApiClient class."""

    @responses.activate
    def test_find_venues_sends_auth_and_app(self, api):
        """Test the venue lookup request and response unwrapping."""
        responses.add(
            responses.GET, f"{BASE_URL}/venues",
            json={'data': [{'_id': 'venue-1'}]},
            match=[
                matchers.query_param_matcher({'appId': '1', 'name': 'Dance Union'}),
                matchers.header_matcher({'Authorization': 'Bearer secret-token'})
            ]
        )

        assert api.find_venues('Dance Union') == [{'_id': 'venue-1'}]

    @responses.activate
    def test_no_token_sends_no_authorization(self):
        """Test that requests go out unauthenticated without a token."""
        responses.add(responses.GET, f"{BASE_URL}/organizers", json={'organizers': []})
        api = DestinationApiClient(BASE_URL, '1', RetryExecutor())

        assert api.find_organizers('Nobody') == []
        assert 'Authorization' not in responses.calls[0].request.headers

    @responses.activate
    def test_find_organizers_by_nice_name(self, api):
        """Test that organizers can be matched on their btcNiceName field."""
        responses.add(
            responses.GET, f"{BASE_URL}/organizers",
            json={'organizers': [{'_id': 'org-1', 'fullName': 'Boston Tango Society'}]},
            match=[matchers.query_param_matcher({'appId': '1', 'btcNiceName': 'BTS'})]
        )

        matches = api.find_organizers('BTS', by='btcNiceName')

        assert matches == [{'_id': 'org-1', 'fullName': 'Boston Tango Society'}]

    @responses.activate
    def test_find_organizers_retries_server_errors(self, api):
        """Test that organizer lookups go through the retry executor."""
        responses.add(responses.GET, f"{BASE_URL}/organizers", status=502)
        responses.add(responses.GET, f"{BASE_URL}/organizers", json={'organizers': [{'_id': 'org-1'}]})

        with patch('client.retry.time.sleep'):
            matches = api.find_organizers('BTS', by='btcNiceName')

        assert matches == [{'_id': 'org-1'}]
        assert len(responses.calls) == 2

    @responses.activate
    def test_update_venue_puts_app_id(self, api):
        """Test that the venue body carries the application id."""
        responses.add(responses.PUT, f"{BASE_URL}/venues/venue-1", json={'_id': 'venue-1'})

        api.update_venue('venue-1', {'_id': 'venue-1', 'isValidVenueGeolocation': True})

        body = json.loads(responses.calls[0].request.body)
        assert body == {'_id': 'venue-1', 'isValidVenueGeolocation': True, 'appId': '1'}

    @responses.activate
    def test_find_nearest_city_accepts_bare_list(self, api):
        """Test both response shapes of the nearest-city endpoint."""
        responses.add(responses.GET, f"{BASE_URL}/venues/nearest-city", json=[{'distanceInKm': 1.5}])

        assert api.find_nearest_city(-71.06, 42.36) == [{'distanceInKm': 1.5}]

    @responses.activate
    def test_find_events_and_delete(self, api):
        """Test the date-range query and delete endpoints."""
        responses.add(
            responses.GET, f"{BASE_URL}/events",
            json={'events': [{'_id': 'old-1'}]},
            match=[matchers.query_param_matcher({
                'appId': '1',
                'start': '2024-03-15T00:00:00.000Z',
                'end': '2024-03-15T23:59:59.999Z'
            })]
        )
        responses.add(responses.DELETE, f"{BASE_URL}/events/old-1", status=204)

        existing = api.find_events('2024-03-15T00:00:00.000Z', '2024-03-15T23:59:59.999Z')
        deleted = api.delete_event('old-1')

        assert existing == [{'_id': 'old-1'}]
        assert deleted is None

    @responses.activate
    def test_create_event_posts_payload(self, api):
        """Test the create endpoint."""
        responses.add(
            responses.POST, f"{BASE_URL}/events/post",
            json={'_id': 'new-1', 'title': 'Milonga'},
            status=201,
            match=[matchers.json_params_matcher({'title': 'Milonga'})]
        )

        assert api.create_event({'title': 'Milonga'}) == {'_id': 'new-1', 'title': 'Milonga'}

    @responses.activate
    def test_failures_surface_as_api_call_error(self, api):
        """Test that HTTP failures come back classified."""
        responses.add(responses.GET, f"{BASE_URL}/categories", status=403)

        with patch('client.retry.time.sleep'):
            with pytest.raises(ApiCallError) as exc_info:
                api.list_categories()

        assert exc_info.value.error_type == ErrorType.AUTH_ERROR
        assert exc_info.value.attempts == 2

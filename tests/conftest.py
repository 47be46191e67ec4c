"""Shared fixtures for the import pipeline tests."""
from unittest.mock import Mock

import pytest

from processor.models import DestinationEvent, Geography


@pytest.fixture
def make_raw_event():
    """Factory for event objects shaped like the source calendar API."""
    def _make(
        event_id=101,
        title='Friday Night Milonga',
        start_date='2024-03-15 20:00:00',
        end_date='2024-03-15 23:30:00',
        venue='Dance Union',
        organizer='Boston Tango Society',
        categories=('Milonga',),
        **extra
    ):
        raw = {
            'id': event_id,
            'title': title,
            'description': '<p>Social dancing all night.</p>',
            'start_date': start_date,
            'end_date': end_date,
            'all_day': False,
            'timezone': 'America/New_York',
            'cost': '$15',
            'venue': {'venue': venue, 'city': 'Somerville', 'state': 'MA'} if venue else [],
            'organizer': [{'organizer': organizer, 'email': 'info@example.com'}] if organizer else [],
            'categories': [{'name': name, 'slug': name.lower().replace(' ', '-')} for name in categories]
        }
        raw.update(extra)
        return raw
    return _make


@pytest.fixture
def geography():
    """A fully linked venue geography."""
    return Geography(
        venue_geolocation={'type': 'Point', 'coordinates': [-71.0942, 42.3751]},
        city_id='city-somerville',
        city_name='Somerville',
        division_id='div-ma',
        division_name='Massachusetts',
        region_id='region-ne',
        region_name='New England',
        city_geolocation={'type': 'Point', 'coordinates': [-71.0995, 42.3876]},
        is_valid_venue_geolocation=True
    )


@pytest.fixture
def destination_event(geography):
    """A mapped event that passes every validation rule."""
    return DestinationEvent(
        app_id='1',
        title='Friday Night Milonga',
        description='<p>Social dancing all night.</p>',
        start_date='2024-03-16T00:00:00.000Z',
        end_date='2024-03-16T03:30:00.000Z',
        expires_at='2024-03-17T03:30:00.000Z',
        all_day=False,
        venue_id='venue-1',
        organizer_id='org-1',
        organizer_name='Boston Tango Society',
        category_first_id='cat-milonga',
        category_first='Milonga',
        discovered_first_date='2024-03-01T12:00:00.000Z',
        discovered_last_date='2024-03-01T12:00:00.000Z',
        discovered_comments='Imported from source event ID: 101',
        cost='$15',
        geography=geography
    )


@pytest.fixture
def destination_api():
    """Destination API double that finds every entity and accepts every write."""
    api = Mock()
    api.find_venues.return_value = [{'_id': 'venue-1', 'name': 'Dance Union'}]
    api.get_venue.return_value = {
        '_id': 'venue-1',
        'latitude': 42.3751,
        'longitude': -71.0942,
        'isValidVenueGeolocation': True,
        'masteredCityId': {'_id': 'city-somerville', 'cityName': 'Somerville'},
        'masteredDivisionId': {'_id': 'div-ma', 'divisionName': 'Massachusetts'},
        'masteredRegionId': {'_id': 'region-ne', 'regionName': 'New England'}
    }
    api.find_organizers.return_value = [{'_id': 'org-1', 'fullName': 'Boston Tango Society'}]
    api.list_categories.return_value = [
        {'_id': 'cat-class', 'categoryName': 'Class'},
        {'_id': 'cat-milonga', 'categoryName': 'Milonga'},
        {'_id': 'cat-practica', 'categoryName': 'Practica'},
        {'_id': 'cat-other', 'categoryName': 'Other'}
    ]
    api.find_events.return_value = []
    api.create_event.side_effect = lambda payload: {'_id': f"created-{payload['title']}", 'title': payload['title']}
    return api

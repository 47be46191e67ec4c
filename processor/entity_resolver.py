"""Resolve source event references against the destination platform."""
import logging
import uuid
from typing import Any, Dict, Optional

from client.destination_api import DestinationApiClient
from client.errors import ApiCallError
from processor.category_mapper import CategoryMapper, is_ignored_category
from processor.config import DefaultLocation
from processor.models import (
    Fallback,
    Geography,
    Resolution,
    Resolved,
    ResolvedEntities,
    SourceCategory,
    SourceEvent,
    SourceOrganizer,
    SourceVenue,
)
from processor.resolution_cache import ResolutionCache

logger = logging.getLogger(__name__)

UNKNOWN_VENUE_ID = 'UNKNOWN'
UNKNOWN_ORGANIZER_ID = 'UNKNOWN_ORGANIZER_ID'
MISSING_ORGANIZER_ID = 'UNKNOWN'
MISSING_ORGANIZER_NAME = 'Unknown'

# Venue ids that never exist on the destination
SYNTHETIC_VENUE_PREFIXES = ('mock-', 'error-')

MAX_CITY_DISTANCE_KM = 5

# Venue names longer than this are retried on their leading characters
PARTIAL_NAME_LENGTH = 15
MIN_PARTIAL_NAME_LENGTH = 3

# Organizer fields tried in order
ORGANIZER_LOOKUP_FIELDS = ('btcNiceName', 'name')


def _mock_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:7]}"


def _coordinate(value: Any) -> Optional[float]:
    """Parse a latitude or longitude; None when missing or not numeric."""
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _point(coordinates) -> Dict[str, Any]:
    return {'type': 'Point', 'coordinates': list(coordinates)}


def _linked_id(value: Any) -> Optional[str]:
    """A hierarchy link is either a bare id or a populated record with _id."""
    if isinstance(value, dict):
        return value.get('_id')
    return value or None


def _linked_name(value: Any, key: str) -> Optional[str]:
    if isinstance(value, dict):
        return value.get(key)
    return None


class EntityResolver:
    """
    Resolve venues, organizers, categories and venue geography.

    Every path produces a usable value: lookups that miss or fail fall back
    to sentinels or the default location and are reported through warnings
    and the cache's unmatched sets.
    """

    def __init__(
        self,
        api: DestinationApiClient,
        cache: Optional[ResolutionCache] = None,
        category_mapper: Optional[CategoryMapper] = None,
        default_location: Optional[DefaultLocation] = None,
        dry_run: bool = True,
        verify_venue_geolocation: bool = True
    ):
        self.api = api
        self.cache = cache if cache is not None else ResolutionCache()
        self.category_mapper = category_mapper or CategoryMapper()
        self.default_location = default_location or DefaultLocation()
        self.dry_run = dry_run
        self.verify_venue_geolocation = verify_venue_geolocation

    # Venues

    def resolve_venue(self, venue: Optional[SourceVenue]) -> Resolution:
        """
        Resolve a source venue by name.

        Args:
            venue: Source venue, or None when the event has none

        Returns:
            Resolved venue, or Fallback with the UNKNOWN sentinel
        """
        if venue is None or not venue.name:
            logger.warning("Event has no venue; using UNKNOWN venue")
            return Fallback(id=UNKNOWN_VENUE_ID, name='', reason='missing')

        cached = self.cache.get_venue(venue.name)
        if cached is not None:
            logger.debug(f"Using cached venue: '{venue.name}' -> {cached.id}")
            return cached

        matches = self._lookup_venues(venue.name)
        source = 'lookup'

        partial_name = venue.name[:PARTIAL_NAME_LENGTH].strip()
        if not matches and len(partial_name) >= MIN_PARTIAL_NAME_LENGTH and partial_name != venue.name:
            logger.info(f"Retrying venue lookup with partial name: '{partial_name}'")
            matches = self._lookup_venues(partial_name)
            source = 'partial-name'

        if matches:
            resolution = Resolved(id=matches[0]['_id'], name=venue.name, source=source)
            logger.info(f"Venue matched: '{venue.name}' -> {resolution.id} ({source})")
        else:
            resolution = Fallback(id=UNKNOWN_VENUE_ID, name=venue.name)
            logger.warning(f"Unmatched venue: '{venue.name}'")

        self.cache.put_venue(venue.name, resolution)
        return resolution

    def _lookup_venues(self, name: str) -> list:
        try:
            return self.api.find_venues(name)
        except ApiCallError as e:
            logger.warning(f"Venue lookup failed for '{name}': {e}")
            return []

    # Organizers

    def resolve_organizer(self, organizer: Optional[SourceOrganizer]) -> Resolution:
        """
        Resolve a source organizer by name.

        Args:
            organizer: Source organizer (first of a list), or None

        Returns:
            Resolved organizer, or Fallback carrying a sentinel id
        """
        if organizer is None or not organizer.name:
            logger.warning("Event has no organizer; using Unknown organizer")
            return Fallback(id=MISSING_ORGANIZER_ID, name=MISSING_ORGANIZER_NAME, reason='missing')

        cached = self.cache.get_organizer(organizer.name)
        if cached is not None:
            logger.debug(f"Using cached organizer: '{organizer.name}' -> {cached.id}")
            return cached

        match = None
        for field_name in ORGANIZER_LOOKUP_FIELDS:
            try:
                matches = self.api.find_organizers(organizer.name, by=field_name)
            except ApiCallError as e:
                logger.warning(f"Organizer lookup by {field_name} failed for '{organizer.name}': {e}")
                continue
            if matches:
                match = matches[0]
                break

        if match is not None:
            source = 'lookup' if field_name == 'name' else field_name
            resolution = Resolved(id=match['_id'], name=match.get('fullName') or organizer.name, source=source)
            logger.info(f"Organizer matched: '{organizer.name}' -> {resolution.id} ({field_name})")
        else:
            resolution = Fallback(id=UNKNOWN_ORGANIZER_ID, name=organizer.name)
            logger.warning(f"Unmatched organizer: '{organizer.name}'")

        self.cache.put_organizer(organizer.name, resolution)
        return resolution

    # Categories

    def load_categories(self, source_client=None) -> None:
        """
        Bootstrap the category mapper from the destination (and source) listings.

        Failures leave the mapper without destination ids; category
        resolution then falls back to mock ids.

        Args:
            source_client: Optional SourceCalendarClient for source categories
        """
        if self.category_mapper.bootstrapped:
            return

        try:
            destination_categories = self.api.list_categories()
        except ApiCallError as e:
            logger.error(f"Failed to load destination categories: {e}")
            return

        source_categories = []
        if source_client is not None:
            try:
                source_categories = source_client.fetch_categories()
            except ApiCallError as e:
                logger.warning(f"Failed to load source categories: {e}")

        self.category_mapper.bootstrap(destination_categories, source_categories)

    def resolve_category(self, category: Optional[SourceCategory]) -> Resolution:
        """Map a source category; never fails and makes no remote calls."""
        name = category.name if category else ''
        if not name:
            return self.category_mapper.resolve(None)

        cached = self.cache.get_category(name)
        if cached is not None:
            return cached

        resolution = self.category_mapper.resolve(name)
        unmatched = is_ignored_category(name) or not self.category_mapper.is_mapped(name)
        if unmatched:
            logger.warning(f"Category '{name}' has no mapping; using '{resolution.name}'")
        self.cache.put_category(name, resolution, unmatched=unmatched)
        return resolution

    # Geography

    def default_geography(self, error_fallback: bool = False) -> Geography:
        location = self.default_location
        return Geography(
            venue_geolocation=_point(location.coordinates),
            city_id=location.city_id,
            city_name=location.city_name,
            division_id=location.division_id,
            division_name=location.division_name,
            region_id=location.region_id,
            region_name=location.region_name,
            city_geolocation=_point(location.coordinates),
            is_valid_venue_geolocation=True,
            is_default_location=True,
            is_error_fallback_geography=error_fallback
        )

    def resolve_geography(self, venue_id: str) -> Geography:
        """
        Build the geography block for a resolved venue.

        Sentinel and synthetic venue ids get the default location without a
        remote call. Venues without city and division linkage also get the
        default hierarchy.

        Args:
            venue_id: Destination venue id (or sentinel)

        Returns:
            Geography for the event
        """
        if not venue_id or venue_id == UNKNOWN_VENUE_ID or venue_id.startswith(SYNTHETIC_VENUE_PREFIXES):
            return self.default_geography()

        try:
            venue = self.api.get_venue(venue_id)
        except ApiCallError as e:
            logger.error(f"Error getting venue geography for {venue_id}: {e}")
            return self.default_geography(error_fallback=True)

        if not venue:
            logger.warning(f"Venue {venue_id} returned no data; using default location")
            return self.default_geography(error_fallback=True)

        defaults = self.default_location
        latitude = _coordinate(venue.get('latitude'))
        longitude = _coordinate(venue.get('longitude'))
        has_coordinates = latitude is not None and longitude is not None

        venue_geolocation = self._normalize_geolocation(venue.get('geolocation'), latitude, longitude)
        if venue_geolocation is None:
            logger.warning(f"No usable geolocation for venue {venue_id}; using default coordinates")
            venue_geolocation = _point(defaults.coordinates)

        city = venue.get('masteredCityId')
        division = venue.get('masteredDivisionId')
        region = venue.get('masteredRegionId')

        city_coordinates = (city.get('geolocation') or {}).get('coordinates') if isinstance(city, dict) else None
        if isinstance(city_coordinates, list) and len(city_coordinates) == 2:
            city_geolocation = _point(city_coordinates)
        elif has_coordinates:
            city_geolocation = _point([longitude, latitude])
        else:
            city_geolocation = _point(defaults.coordinates)
            if not city:
                self._persist_venue(venue_id, venue, {'masteredCityId': defaults.city_id},
                                    'default masteredCityId')

        is_valid = self._venue_geolocation_validity(venue_id, venue, latitude, longitude)

        needs_defaults = not city and not division

        return Geography(
            venue_geolocation=venue_geolocation,
            city_id=_linked_id(city) or defaults.city_id,
            city_name=_linked_name(city, 'cityName') or venue.get('city') or defaults.city_name,
            division_id=_linked_id(division) or defaults.division_id,
            division_name=_linked_name(division, 'divisionName') or venue.get('state') or defaults.division_name,
            region_id=_linked_id(region) or defaults.region_id,
            region_name=(
                _linked_name(region, 'regionName')
                or (defaults.region_name if needs_defaults else 'Unknown Region')
            ),
            city_geolocation=city_geolocation,
            is_valid_venue_geolocation=is_valid or needs_defaults,
            is_default_location=needs_defaults
        )

    def _normalize_geolocation(self, geolocation: Any, latitude: Optional[float],
                               longitude: Optional[float]) -> Optional[Dict[str, Any]]:
        """Normalize the venue's location to a GeoJSON point."""
        if isinstance(geolocation, dict) and geolocation.get('type') == 'Point' \
                and isinstance(geolocation.get('coordinates'), list):
            return geolocation
        if isinstance(geolocation, list) and len(geolocation) == 2:
            return _point(geolocation)
        if latitude is not None and longitude is not None:
            return _point([longitude, latitude])
        return None

    def _venue_geolocation_validity(self, venue_id: str, venue: Dict[str, Any],
                                    latitude: Optional[float], longitude: Optional[float]) -> bool:
        if 'isValidVenueGeolocation' in venue:
            return bool(venue['isValidVenueGeolocation'])

        if latitude is None or longitude is None or not self.verify_venue_geolocation:
            return False

        try:
            cities = self.api.find_nearest_city(longitude, latitude)
        except ApiCallError as e:
            logger.error(f"Error validating venue {venue_id} location: {e}")
            return False

        if cities and cities[0].get('distanceInKm', float('inf')) <= MAX_CITY_DISTANCE_KM:
            self._persist_venue(venue_id, venue, {'isValidVenueGeolocation': True},
                                'valid geolocation flag')
            return True
        return False

    def _persist_venue(self, venue_id: str, venue: Dict[str, Any], changes: Dict[str, Any], label: str) -> None:
        if self.dry_run:
            logger.info(f"[DRY RUN] Would update venue {venue_id} with {label}")
            return
        try:
            self.api.update_venue(venue_id, {**venue, **changes})
            logger.info(f"Updated venue {venue_id} with {label}")
        except ApiCallError as e:
            logger.error(f"Failed to update venue {venue_id} with {label}: {e}")

    # Whole event

    def resolve_event(self, event: SourceEvent) -> ResolvedEntities:
        """
        Resolve every reference of a source event.

        Args:
            event: Source event

        Returns:
            ResolvedEntities; resolved is False only when resolution itself
            broke and emergency placeholders were substituted
        """
        try:
            venue = self.resolve_venue(event.venue)
            organizer = self.resolve_organizer(event.organizer)

            warnings = []
            errors = []

            if event.categories:
                category_first = self.resolve_category(event.categories[0])
            else:
                errors.append('No categories provided for event')
                category_first = self.resolve_category(None)

            category_second = None
            if len(event.categories) > 1:
                try:
                    category_second = self.resolve_category(event.categories[1])
                except Exception as e:
                    logger.warning(f"Secondary category resolution failed for event {event.id}: {e}")
                    warnings.append(f"Secondary category resolution failed: {event.categories[1].name}")

            geography = self.resolve_geography(venue.id)

            for label, resolution in (('venue', venue), ('organizer', organizer), ('category', category_first)):
                if resolution.is_fallback:
                    warnings.append(f"Using fallback {label} {resolution.id} ({resolution.reason})")
            if geography.is_error_fallback_geography:
                warnings.append('Using default location after venue geography lookup failed')

            result = ResolvedEntities(
                venue=venue,
                organizer=organizer,
                category_first=category_first,
                category_second=category_second,
                geography=geography,
                errors=errors,
                warnings=warnings,
                partial_resolution=any(
                    r.is_fallback for r in (venue, organizer, category_first)
                ) or geography.is_fallback
            )
            result.resolved = result.has_required_entities()

            if result.partial_resolution:
                logger.info(f"Partial entity resolution for event: {event.title} ({event.id})")
            return result

        except Exception as e:
            logger.error(
                f"Unexpected error resolving entities for event: {event.title} ({event.id}): {e}",
                extra={'stage': 'entity_resolution'},
                exc_info=True
            )
            return self._emergency_entities(e)

    def _emergency_entities(self, error: Exception) -> ResolvedEntities:
        venue = Fallback(id=_mock_id('error-venue'), name='', reason='error')
        organizer = Fallback(id=_mock_id('error-organizer'), name='Error Fallback Organizer', reason='error')
        category = Fallback(id=_mock_id('error-category'), name='Other', reason='error')
        return ResolvedEntities(
            venue=venue,
            organizer=organizer,
            category_first=category,
            geography=self.default_geography(error_fallback=True),
            errors=[f"Unexpected error: {error}"],
            warnings=['Created emergency placeholder entities due to unexpected error'],
            partial_resolution=True,
            resolved=False
        )

    def get_unmatched_report(self) -> dict:
        return self.cache.unmatched_report()

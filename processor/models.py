"""Data models for the calendar import pipeline."""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class SourceVenue:
    """Venue as published by the source calendar."""
    name: str
    address: str = ''
    city: str = ''
    state: str = ''
    zip: str = ''
    id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional['SourceVenue']:
        # The source publishes an empty list when an event has no venue
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict) or not data.get('venue'):
            return None
        return cls(
            name=data['venue'],
            address=data.get('address') or '',
            city=data.get('city') or '',
            state=data.get('state') or data.get('province') or '',
            zip=data.get('zip') or '',
            id=data.get('id')
        )


@dataclass(frozen=True)
class SourceOrganizer:
    """Organizer as published by the source calendar."""
    name: str
    email: str = ''
    id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional['SourceOrganizer']:
        # A list of organizers is allowed; the first one is authoritative
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict) or not data.get('organizer'):
            return None
        return cls(
            name=data['organizer'],
            email=data.get('email') or '',
            id=data.get('id')
        )


@dataclass(frozen=True)
class SourceCategory:
    """Category attached to a source event."""
    name: str
    slug: str = ''
    id: Optional[int] = None


@dataclass(frozen=True)
class SourceEvent:
    """One listing from the source calendar, immutable once fetched."""
    id: Any
    title: str
    description: str
    start_date: Optional[str]
    end_date: Optional[str]
    utc_start_date: Optional[str] = None
    utc_end_date: Optional[str] = None
    all_day: bool = False
    timezone: Optional[str] = None
    cost: Optional[str] = None
    image_url: Optional[str] = None
    venue: Optional[SourceVenue] = None
    organizer: Optional[SourceOrganizer] = None
    categories: List[SourceCategory] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SourceEvent':
        """
        Build a SourceEvent from a source API event object.

        Args:
            data: Event object from the events listing

        Returns:
            SourceEvent instance
        """
        image = data.get('image')
        categories = [
            SourceCategory(
                name=category.get('name') or '',
                slug=category.get('slug') or '',
                id=category.get('id')
            )
            for category in (data.get('categories') or [])
            if isinstance(category, dict)
        ]

        return cls(
            id=data.get('id'),
            title=data.get('title') or '',
            description=data.get('description') or '',
            start_date=data.get('start_date'),
            end_date=data.get('end_date'),
            utc_start_date=data.get('utc_start_date'),
            utc_end_date=data.get('utc_end_date'),
            all_day=bool(data.get('all_day', False)),
            timezone=data.get('timezone'),
            cost=data.get('cost') or None,
            image_url=image.get('url') if isinstance(image, dict) else None,
            venue=SourceVenue.from_dict(data.get('venue')),
            organizer=SourceOrganizer.from_dict(data.get('organizer')),
            categories=categories,
            raw=data
        )

    def source_summary(self) -> Dict[str, str]:
        """Venue, organizer and category names for failure reports."""
        return {
            'venue': self.venue.name if self.venue else 'unknown',
            'organizer': self.organizer.name if self.organizer else 'unknown',
            'categories': ', '.join(c.name for c in self.categories) if self.categories else 'unknown'
        }


@dataclass(frozen=True)
class Resolved:
    """A reference matched to a genuine destination record."""
    id: str
    name: str
    source: str = 'lookup'

    @property
    def is_fallback(self) -> bool:
        return False


@dataclass(frozen=True)
class Fallback:
    """A reference that could not be matched; id and name are placeholders."""
    id: str
    name: str
    reason: str = 'unmatched'

    @property
    def is_fallback(self) -> bool:
        return True


Resolution = Union[Resolved, Fallback]


@dataclass(frozen=True)
class Geography:
    """Venue location and its city/division/region hierarchy."""
    venue_geolocation: Dict[str, Any]
    city_id: str
    city_name: str
    division_id: str
    division_name: str
    region_id: str
    region_name: str
    city_geolocation: Dict[str, Any]
    is_valid_venue_geolocation: bool = False
    is_default_location: bool = False
    is_error_fallback_geography: bool = False

    @property
    def is_fallback(self) -> bool:
        return self.is_default_location or self.is_error_fallback_geography


@dataclass
class ResolvedEntities:
    """Outcome of resolving one source event's references."""
    venue: Resolution
    organizer: Resolution
    category_first: Resolution
    category_second: Optional[Resolution] = None
    geography: Optional[Geography] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    partial_resolution: bool = False
    resolved: bool = False

    @property
    def venue_id(self) -> str:
        return self.venue.id

    @property
    def organizer_id(self) -> str:
        return self.organizer.id

    @property
    def organizer_name(self) -> str:
        return self.organizer.name

    @property
    def category_first_id(self) -> str:
        return self.category_first.id

    @property
    def category_first_name(self) -> str:
        return self.category_first.name

    @property
    def category_second_id(self) -> Optional[str]:
        return self.category_second.id if self.category_second else None

    @property
    def category_second_name(self) -> Optional[str]:
        return self.category_second.name if self.category_second else None

    def has_required_entities(self) -> bool:
        """Venue, organizer id and name, primary category and geography all present."""
        return bool(
            self.venue_id
            and self.organizer_id
            and self.organizer_name
            and self.category_first_id
            and self.geography
        )


@dataclass(frozen=True)
class DestinationEvent:
    """A mapped event ready for the destination platform."""
    app_id: str
    title: str
    description: str
    start_date: str
    end_date: str
    expires_at: str
    all_day: bool
    venue_id: str
    organizer_id: str
    organizer_name: str
    category_first_id: str
    category_first: str
    discovered_first_date: str
    discovered_last_date: str
    discovered_comments: str
    category_second_id: Optional[str] = None
    category_second: Optional[str] = None
    cost: Optional[str] = None
    event_image: Optional[str] = None
    geography: Optional[Geography] = None

    def to_payload(self) -> Dict[str, Any]:
        """Render the destination platform's event schema."""
        geo = self.geography
        payload = {
            'appId': self.app_id,
            'title': self.title,
            'description': self.description,
            'startDate': self.start_date,
            'endDate': self.end_date,
            'allDay': self.all_day,
            'cost': self.cost,

            'venueID': self.venue_id,
            'ownerOrganizerID': self.organizer_id,
            'ownerOrganizerName': self.organizer_name,
            'categoryFirstId': self.category_first_id,
            'categoryFirst': self.category_first,
            'categorySecondId': self.category_second_id,
            'categorySecond': self.category_second,

            'venueGeolocation': geo.venue_geolocation if geo else None,
            'masteredCityId': geo.city_id if geo else None,
            'masteredCityName': geo.city_name if geo else None,
            'masteredCityGeolocation': geo.city_geolocation if geo else None,
            'masteredDivisionId': geo.division_id if geo else None,
            'masteredDivisionName': geo.division_name if geo else None,
            'masteredRegionId': geo.region_id if geo else None,
            'masteredRegionName': geo.region_name if geo else None,

            'isDiscovered': True,
            'isOwnerManaged': False,
            'isActive': True,
            'isFeatured': False,
            'isCanceled': False,
            'discoveredFirstDate': self.discovered_first_date,
            'discoveredLastDate': self.discovered_last_date,
            'discoveredComments': self.discovered_comments,
            'expiresAt': self.expires_at
        }

        if self.event_image:
            payload['eventImage'] = self.event_image

        return payload


@dataclass
class ProcessedEvent:
    """A source event that reached the destination (or would have, in dry-run)."""
    source_id: Any
    destination_id: str
    title: str
    dry_run: bool


@dataclass
class FailedEvent:
    """A source event that dropped out of the pipeline, tagged by stage."""
    source_id: Any
    title: str
    stage: str
    errors: List[str]
    source: Dict[str, str]
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'source_id': self.source_id,
            'title': self.title,
            'stage': self.stage,
            'errors': self.errors,
            'source': self.source
        }
        data.update(self.details)
        return data


@dataclass
class SourceCounters:
    total: int = 0
    processed: int = 0


@dataclass
class DestinationCounters:
    deleted: int = 0
    would_delete: int = 0
    created: int = 0
    failed: int = 0
    delete_failed: int = 0


@dataclass
class SuccessCounters:
    success: int = 0
    failure: int = 0


@dataclass
class ValidationCounters:
    valid: int = 0
    invalid: int = 0


@dataclass
class ErrorStats:
    """Failure tallies for one run, keyed by stage and by error type."""
    by_stage: Dict[str, int] = field(default_factory=dict)
    by_error_type: Dict[str, int] = field(default_factory=dict)

    def record(self, stage: str, error_type: str) -> None:
        self.by_stage[stage] = self.by_stage.get(stage, 0) + 1
        self.by_error_type[error_type] = self.by_error_type.get(error_type, 0) + 1


@dataclass
class RunResult:
    """Aggregate counters for one import run."""
    date: str
    dry_run: bool
    start_time: str
    end_time: Optional[str] = None
    duration_seconds: Optional[float] = None
    source_events: SourceCounters = field(default_factory=SourceCounters)
    destination_events: DestinationCounters = field(default_factory=DestinationCounters)
    entity_resolution: SuccessCounters = field(default_factory=SuccessCounters)
    validation: ValidationCounters = field(default_factory=ValidationCounters)
    error_stats: ErrorStats = field(default_factory=ErrorStats)
    failed_delete_ids: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Assessment:
    """Go/no-go verdict for a completed run."""
    can_proceed: bool
    metrics: Dict[str, Optional[float]]
    thresholds: Dict[str, float]
    recommendations: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

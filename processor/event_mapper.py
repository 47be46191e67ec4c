"""Map source events into the destination event schema."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from bs4 import BeautifulSoup

from processor.models import DestinationEvent, ResolvedEntities, SourceEvent

logger = logging.getLogger(__name__)

EXPIRY_DAYS = 1


class MappingError(ValueError):
    """A source event cannot be mapped, usually because of a malformed timestamp."""


def _zone(tz_name: Optional[str]):
    if not tz_name or tz_name.upper() == 'UTC':
        return timezone.utc
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise MappingError(f"Unknown timezone: {tz_name}") from e


def parse_timestamp(value: Optional[str], tz_name: Optional[str] = None) -> datetime:
    """
    Parse a source timestamp into an aware UTC datetime.

    Args:
        value: "YYYY-MM-DD HH:MM:SS" or any ISO 8601 string
        tz_name: Zone for naive values (default: UTC)

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        MappingError: If the value is missing or unparseable
    """
    if not value or not isinstance(value, str):
        raise MappingError(f"Missing timestamp: {value!r}")

    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise MappingError(f"Unparseable timestamp: {value!r}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_zone(tz_name))
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime as ISO 8601 UTC with milliseconds, e.g. 2024-01-15T23:00:00.000Z."""
    value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f"{value.microsecond // 1000:03d}Z"


def clean_text(value: str) -> str:
    """Strip markup and decode HTML entities (the source publishes "&#8211;" and friends)."""
    if not value:
        return ''
    return BeautifulSoup(value, 'html.parser').get_text().strip()


def _event_time(utc_value: Optional[str], local_value: Optional[str], tz_name: str) -> datetime:
    if utc_value:
        return parse_timestamp(utc_value, 'UTC')
    return parse_timestamp(local_value, tz_name)


def map_event(
    event: SourceEvent,
    resolved: ResolvedEntities,
    app_id: str,
    default_timezone: str = 'America/New_York',
    now: Optional[datetime] = None
) -> DestinationEvent:
    """
    Transform a source event and its resolved references into a DestinationEvent.

    Explicit UTC timestamps win over local ones; local timestamps are read in
    the event's own timezone, else default_timezone. The event expires one
    day after it ends.

    Args:
        event: Source event
        resolved: Resolved references for the event
        app_id: Destination application id
        default_timezone: Zone for local timestamps without one
        now: Discovery timestamp (default: current time)

    Returns:
        DestinationEvent

    Raises:
        MappingError: If start or end cannot be parsed
    """
    tz_name = event.timezone or default_timezone
    start = _event_time(event.utc_start_date, event.start_date, tz_name)
    end = _event_time(event.utc_end_date, event.end_date, tz_name)
    expires_at = end + timedelta(days=EXPIRY_DAYS)

    discovered = format_timestamp(now or datetime.now(timezone.utc))

    return DestinationEvent(
        app_id=app_id,
        title=clean_text(event.title),
        description=event.description,
        start_date=format_timestamp(start),
        end_date=format_timestamp(end),
        expires_at=format_timestamp(expires_at),
        all_day=event.all_day,
        venue_id=resolved.venue_id,
        organizer_id=resolved.organizer_id,
        organizer_name=resolved.organizer_name,
        category_first_id=resolved.category_first_id,
        category_first=resolved.category_first_name,
        category_second_id=resolved.category_second_id,
        category_second=resolved.category_second_name,
        discovered_first_date=discovered,
        discovered_last_date=discovered,
        discovered_comments=f"Imported from source event ID: {event.id}",
        cost=event.cost,
        event_image=event.image_url,
        geography=resolved.geography
    )

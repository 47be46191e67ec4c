"""Replace-by-date writes to the destination platform."""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

from client.destination_api import DestinationApiClient
from client.errors import ApiCallError, TRANSIENT_ERROR_TYPES, classify_error, error_status
from processor.models import DestinationEvent
from processor.validator import parse_iso_date

logger = logging.getLogger(__name__)

PRE_VALIDATION_FIELDS = (
    'title', 'startDate', 'endDate', 'venueID', 'ownerOrganizerID',
    'categoryFirstId', 'masteredCityId',
)
PRE_VALIDATION_DATE_FIELDS = ('startDate', 'endDate', 'expiresAt')

STATUS_VALIDATION_FAILED = 'validation_failed'
STATUS_API_ERROR = 'api_error'


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _token() -> str:
    return uuid.uuid4().hex[:7]


def is_failed_create(record: Dict[str, Any]) -> bool:
    """True for placeholder records returned when a create did not happen."""
    return record.get('status') in (STATUS_VALIDATION_FAILED, STATUS_API_ERROR)


@dataclass
class DeleteOutcome:
    """Result of clearing a date before re-import."""
    deleted: int = 0
    would_delete: int = 0
    existing_events: List[Dict[str, Any]] = field(default_factory=list)
    failed_ids: List[str] = field(default_factory=list)


class DestinationWriter:
    """Delete and create destination events, honoring dry-run."""

    def __init__(self, api: DestinationApiClient, dry_run: bool = True):
        """
        Initialize the destination writer.

        Args:
            api: Destination API client
            dry_run: When True, nothing on the destination is mutated
        """
        self.api = api
        self.dry_run = dry_run

    def delete_events_for_date(self, date: str) -> DeleteOutcome:
        """
        Delete every destination event starting on the given UTC day.

        Single delete failures are logged and skipped. In dry-run mode the
        events are only counted.

        Args:
            date: Day to clear (YYYY-MM-DD)

        Returns:
            DeleteOutcome with counts and the pre-delete snapshot

        Raises:
            ApiCallError: If the existing events cannot be queried (outside dry-run)
        """
        start_of_day = f"{date}T00:00:00.000Z"
        end_of_day = f"{date}T23:59:59.999Z"
        outcome = DeleteOutcome()

        try:
            existing = self.api.find_events(start_of_day, end_of_day)
        except ApiCallError as e:
            if not self.dry_run:
                raise
            logger.warning(f"[DRY RUN] Could not query existing events for {date}: {e}")
            return outcome

        outcome.existing_events = existing
        logger.info(
            f"Found {len(existing)} existing events for date: {date}",
            extra={'stage': 'loading', 'date': date}
        )

        if self.dry_run:
            outcome.would_delete = len(existing)
            logger.info(
                f"[DRY RUN] Would delete {len(existing)} events for date: {date}",
                extra={'stage': 'loading', 'date': date}
            )
            return outcome

        for event in existing:
            event_id = event.get('_id')
            if not event_id:
                logger.warning(f"Skipping existing event without id: {event.get('title')}")
                continue
            try:
                self.api.delete_event(event_id)
                outcome.deleted += 1
            except ApiCallError as e:
                logger.error(
                    f"Failed to delete event: {event.get('title')} ({event_id}): {e}",
                    extra={'stage': 'loading', 'date': date, 'error_type': e.error_type.value}
                )
                outcome.failed_ids.append(event_id)

        logger.info(
            f"Deleted {outcome.deleted} events for date: {date}",
            extra={'stage': 'loading', 'date': date}
        )
        return outcome

    def _pre_validate(self, payload: Dict[str, Any]) -> List[str]:
        issues = [
            f"Missing required field: {field_name}"
            for field_name in PRE_VALIDATION_FIELDS
            if not payload.get(field_name)
        ]
        for field_name in PRE_VALIDATION_DATE_FIELDS:
            value = payload.get(field_name)
            if value and parse_iso_date(value) is None:
                issues.append(f"Invalid date format for {field_name}: {value}")
        return issues

    def create_event(self, event: DestinationEvent) -> Dict[str, Any]:
        """
        Create one destination event.

        Never raises for API failures: a placeholder record annotated with
        the failure is returned instead (see is_failed_create).

        Args:
            event: Mapped event

        Returns:
            Created record, dry-run record, or failure placeholder
        """
        payload = event.to_payload()

        issues = self._pre_validate(payload)
        if issues:
            logger.warning(
                f"Event validation failed before create: {payload.get('title')}: {'; '.join(issues)}",
                extra={'stage': 'loading'}
            )
            return {
                '_id': f"validation-error-{_token()}",
                **payload,
                'validationError': issues,
                'status': STATUS_VALIDATION_FAILED,
                'dryRun': self.dry_run,
                'errorTimestamp': _now_iso()
            }

        if self.dry_run:
            logger.info(f"[DRY RUN] Would create event: {payload['title']}", extra={'stage': 'loading'})
            return {
                '_id': 'dry-run-id',
                **payload,
                'dryRun': True,
                'created': _now_iso()
            }

        try:
            created = self.api.create_event(payload) or {}
        except ApiCallError as e:
            error_type = classify_error(e)
            logger.error(
                f"Failed to create event: {payload['title']} - {e}",
                extra={'stage': 'loading', 'error_type': error_type.value}
            )
            return {
                '_id': f"{error_type.value}-error-{_token()}",
                **payload,
                'apiError': {
                    'type': error_type.value,
                    'message': str(e),
                    'status': error_status(e)
                },
                'shouldRetry': error_type in TRANSIENT_ERROR_TYPES,
                'status': STATUS_API_ERROR,
                'dryRun': False,
                'errorTimestamp': _now_iso()
            }

        logger.info(
            f"Successfully created event: {created.get('title', payload['title'])} ({created.get('_id')})",
            extra={'stage': 'loading'}
        )
        return {
            **created,
            'importSuccess': True,
            'importTimestamp': _now_iso()
        }

"""Single-date import pipeline: extract, delete, resolve, map, validate, create."""
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from client.destination_api import DestinationApiClient
from client.errors import ApiCallError
from client.retry import RetryExecutor
from processor.assessment import assess_run, format_assessment
from processor.config import ImportConfig
from processor.entity_resolver import EntityResolver
from processor.event_mapper import MappingError, map_event
from processor.models import (
    Assessment,
    FailedEvent,
    ProcessedEvent,
    ResolvedEntities,
    RunResult,
    SourceEvent,
)
from processor.validator import (
    RULE_CATEGORY_REFERENCE,
    RULE_DATE_FORMAT,
    RULE_DATE_ORDER,
    RULE_REQUIRED_FIELD,
    validate_event,
)
from source.calendar_api import SourceCalendarClient
from storage import artifact_store
from storage.artifact_store import ArtifactStore
from storage.destination_writer import DestinationWriter, is_failed_create

logger = logging.getLogger(__name__)

STAGE_ENTITY_RESOLUTION = 'entity_resolution'
STAGE_VALIDATION = 'validation'
STAGE_PROCESSING = 'processing'


class ImportState(Enum):
    IDLE = 'idle'
    EXTRACTING = 'extracting'
    DELETING = 'deleting'
    PROCESSING = 'processing'
    FINALIZING = 'finalizing'
    DONE = 'done'
    FAILED = 'failed'


@dataclass
class ImportOutcome:
    result: RunResult
    assessment: Assessment


def _resolution_details(resolved: ResolvedEntities) -> Dict[str, Any]:
    return {
        'target': {
            'venue_id': resolved.venue_id or None,
            'organizer_id': resolved.organizer_id or None,
            'category_first_id': resolved.category_first_id or None
        },
        'resolution': {
            'venue_resolved': bool(resolved.venue_id),
            'organizer_resolved': bool(resolved.organizer_id),
            'category_resolved': bool(resolved.category_first_id),
            'geography_resolved': resolved.geography is not None
        }
    }


def _raw_id(raw: Any) -> Any:
    return raw.get('id') if isinstance(raw, dict) else None


def _error_type_name(error: Exception) -> str:
    """Classified type for API failures, else the exception class name."""
    if isinstance(error, ApiCallError):
        return error.error_type.value
    return type(error).__name__


class ImportOrchestrator:
    """
    Run the import for one date at a time.

    The resolver (and its cache) lives as long as the orchestrator, so
    repeated runs reuse earlier lookups.
    """

    def __init__(
        self,
        config: ImportConfig,
        source_client: SourceCalendarClient,
        resolver: EntityResolver,
        writer: DestinationWriter,
        artifacts: ArtifactStore
    ):
        self.config = config
        self.source_client = source_client
        self.resolver = resolver
        self.writer = writer
        self.artifacts = artifacts
        self.state = ImportState.IDLE
        self._categories_loaded = False

    @classmethod
    def from_config(cls, config: ImportConfig) -> 'ImportOrchestrator':
        """Wire up clients, resolver, writer and artifact store from configuration."""
        retry_executor = RetryExecutor(
            max_retries=config.retry.max_retries,
            initial_delay=config.retry.initial_delay,
            max_delay=config.retry.max_delay
        )
        api = DestinationApiClient(
            base_url=config.destination_api_base,
            app_id=config.app_id,
            retry_executor=retry_executor,
            auth_token=config.auth_token,
            timeout=config.timeout_seconds
        )
        source_client = SourceCalendarClient(
            base_url=config.source_api_base,
            retry_executor=retry_executor,
            timeout=config.timeout_seconds,
            per_page=config.page_size
        )
        resolver = EntityResolver(
            api,
            default_location=config.default_location,
            dry_run=config.dry_run,
            verify_venue_geolocation=config.verify_venue_geolocation
        )
        return cls(
            config=config,
            source_client=source_client,
            resolver=resolver,
            writer=DestinationWriter(api, dry_run=config.dry_run),
            artifacts=ArtifactStore(
                config.output_dir,
                bucket=config.artifact_bucket,
                prefix=config.artifact_prefix
            )
        )

    def run(self, start_date: str, end_date: Optional[str] = None) -> ImportOutcome:
        """
        Import a date and assess the result.

        Only the first date of a range is processed.

        Args:
            start_date: Date to import (YYYY-MM-DD)
            end_date: Optional end of range

        Returns:
            ImportOutcome with the run result and go/no-go assessment
        """
        if end_date and end_date != start_date:
            logger.warning(
                f"Date range {start_date} to {end_date} requested; only {start_date} will be processed",
                extra={'date': start_date}
            )

        result = self.run_import(start_date)

        assessment = assess_run(result)
        logger.info(format_assessment(assessment), extra={'stage': 'finalization', 'date': start_date})
        self.artifacts.save(artifact_store.GO_NOGO_ASSESSMENT, start_date, assessment.to_dict())

        return ImportOutcome(result=result, assessment=assessment)

    def run_import(self, date: str) -> RunResult:
        """
        Replace the destination's events for one date with the source's.

        Artifacts are written even when the run fails; the error is then
        stored on the result and re-raised.

        Args:
            date: Date to import (YYYY-MM-DD)

        Returns:
            RunResult counters

        Raises:
            ExtractionError: If the source cannot be read
            ApiCallError: If existing destination events cannot be queried
        """
        start = time.time()
        result = RunResult(
            date=date,
            dry_run=self.config.dry_run,
            start_time=datetime.now(timezone.utc).isoformat()
        )
        raw_events: List[Dict[str, Any]] = []
        existing_events: List[Dict[str, Any]] = []
        processed: List[ProcessedEvent] = []
        failed: List[FailedEvent] = []

        logger.info(
            f"Starting import for date: {date} (dry run: {self.config.dry_run})",
            extra={'stage': 'initialization', 'date': date}
        )

        try:
            self.state = ImportState.EXTRACTING
            self._load_categories()
            raw_events = self.source_client.fetch_raw_events(date)
            result.source_events.total = len(raw_events)

            if not raw_events:
                logger.info(f"No events found for date: {date}", extra={'stage': 'extraction', 'date': date})
            else:
                self.state = ImportState.DELETING
                deletion = self.writer.delete_events_for_date(date)
                existing_events = deletion.existing_events
                result.destination_events.deleted = deletion.deleted
                result.destination_events.would_delete = deletion.would_delete
                result.destination_events.delete_failed = len(deletion.failed_ids)
                result.failed_delete_ids = list(deletion.failed_ids)

                self.state = ImportState.PROCESSING
                for raw in raw_events:
                    self._process_event(raw, result, processed, failed)

            self.state = ImportState.FINALIZING

        except Exception as e:
            failed_stage = self.state.value
            self.state = ImportState.FAILED
            result.error = str(e)
            result.error_stats.record(failed_stage, _error_type_name(e))
            logger.error(
                f"Failed to process import for date: {date}: {e}",
                extra={'stage': 'processing', 'date': date, 'error_type': type(e).__name__},
                exc_info=True
            )
            raise

        finally:
            result.end_time = datetime.now(timezone.utc).isoformat()
            result.duration_seconds = round(time.time() - start, 2)
            self._save_artifacts(date, raw_events, existing_events, processed, failed, result)

        self.state = ImportState.DONE
        logger.info(
            f"Import completed for date: {date}",
            extra={
                'stage': 'finalization',
                'date': date,
                'events_total': result.source_events.total,
                'events_created': result.destination_events.created,
                'events_failed': result.destination_events.failed,
                'duration_seconds': result.duration_seconds
            }
        )
        return result

    def _load_categories(self) -> None:
        if self._categories_loaded:
            return
        self.resolver.load_categories(self.source_client)
        self._categories_loaded = self.resolver.category_mapper.bootstrapped

    def _process_event(
        self,
        raw: Dict[str, Any],
        result: RunResult,
        processed: List[ProcessedEvent],
        failed: List[FailedEvent]
    ) -> None:
        """Resolve, map, validate and create one event; failures are recorded, not raised."""
        event = None
        try:
            event = SourceEvent.from_dict(raw)

            resolved = self.resolver.resolve_event(event)
            if not resolved.resolved:
                result.entity_resolution.failure += 1
                self._record_failure(result, failed, FailedEvent(
                    source_id=event.id,
                    title=event.title,
                    stage=STAGE_ENTITY_RESOLUTION,
                    errors=resolved.errors,
                    source=event.source_summary(),
                    details=_resolution_details(resolved)
                ), 'unresolved')
                return
            result.entity_resolution.success += 1

            destination_event = map_event(
                event,
                resolved,
                self.config.app_id,
                default_timezone=self.config.source_timezone
            )
            payload = destination_event.to_payload()

            validation = validate_event(payload)
            if not validation.valid:
                result.validation.invalid += 1
                self._record_failure(result, failed, FailedEvent(
                    source_id=event.id,
                    title=event.title,
                    stage=STAGE_VALIDATION,
                    errors=validation.errors,
                    source=event.source_summary(),
                    details={
                        'mapped_data': {
                            key: payload.get(key)
                            for key in ('title', 'venueID', 'ownerOrganizerID', 'ownerOrganizerName',
                                        'startDate', 'endDate', 'categoryFirstId', 'categoryFirst')
                        },
                        'validation': {
                            'has_required_fields': not validation.has_rule(RULE_REQUIRED_FIELD),
                            'has_valid_dates': not validation.has_rule(RULE_DATE_FORMAT, RULE_DATE_ORDER),
                            'has_valid_references': not validation.has_rule(RULE_CATEGORY_REFERENCE)
                        }
                    }
                ), 'validation')
                return
            result.validation.valid += 1

            record = self.writer.create_event(destination_event)
            if is_failed_create(record):
                api_error = record.get('apiError')
                self._record_failure(result, failed, FailedEvent(
                    source_id=event.id,
                    title=event.title,
                    stage=STAGE_PROCESSING,
                    errors=record.get('validationError') or [(api_error or {}).get('message', 'Create failed')],
                    source=event.source_summary(),
                    details={
                        'placeholder_id': record.get('_id'),
                        'api_error': api_error,
                        'should_retry': record.get('shouldRetry', False)
                    }
                ), api_error['type'] if api_error else 'validation')
                return

            result.destination_events.created += 1
            processed.append(ProcessedEvent(
                source_id=event.id,
                destination_id=record.get('_id'),
                title=event.title,
                dry_run=self.config.dry_run
            ))

        except MappingError as e:
            logger.warning(
                f"Could not map event {_raw_id(raw)}: {e}",
                extra={'stage': STAGE_PROCESSING}
            )
            self._record_failure(result, failed, self._processing_failure(raw, event, e), _error_type_name(e))

        except Exception as e:
            logger.error(
                f"Unexpected error processing event {_raw_id(raw)}: {e}",
                extra={'stage': STAGE_PROCESSING, 'error_type': type(e).__name__},
                exc_info=True
            )
            self._record_failure(result, failed, self._processing_failure(raw, event, e), _error_type_name(e))

        finally:
            result.source_events.processed += 1

    @staticmethod
    def _record_failure(result: RunResult, failed: List[FailedEvent], failure: FailedEvent,
                        error_type: str) -> None:
        result.destination_events.failed += 1
        result.error_stats.record(failure.stage, error_type)
        failed.append(failure)

    @staticmethod
    def _processing_failure(raw: Any, event: Optional[SourceEvent], error: Exception) -> FailedEvent:
        title = raw.get('title') if isinstance(raw, dict) else None
        return FailedEvent(
            source_id=_raw_id(raw),
            title=title or '',
            stage=STAGE_PROCESSING,
            errors=[str(error)],
            source=event.source_summary() if event else {'venue': 'unknown', 'organizer': 'unknown', 'categories': 'unknown'},
            details={'debug_info': {'error_name': type(error).__name__}}
        )

    def _save_artifacts(
        self,
        date: str,
        raw_events: List[Dict[str, Any]],
        existing_events: List[Dict[str, Any]],
        processed: List[ProcessedEvent],
        failed: List[FailedEvent],
        result: RunResult
    ) -> None:
        self.artifacts.save(artifact_store.SOURCE_EVENTS, date, raw_events)
        self.artifacts.save(artifact_store.EXISTING_EVENTS, date, existing_events)
        self.artifacts.save(artifact_store.PROCESSED_EVENTS, date, [asdict(p) for p in processed])
        self.artifacts.save(artifact_store.FAILED_EVENTS, date, [f.to_dict() for f in failed])
        self.artifacts.save(artifact_store.UNMATCHED_ENTITIES, date, self.resolver.get_unmatched_report())
        self.artifacts.save(artifact_store.IMPORT_RESULTS, date, result.to_dict())

"""AWS Lambda handler for the source calendar import."""
import json
import logging
import os
import time
from dataclasses import replace
from typing import Dict, Any

from client.errors import ApiCallError
from processor.config import ImportConfig
from processor.orchestrator import ImportOrchestrator


# Structured fields copied from `extra` into the JSON log line
STRUCTURED_FIELDS = (
    'stage', 'date', 'error_type', 'method', 'url',
    'events_total', 'events_created', 'events_failed',
    'duration_seconds', 'dry_run', 'app_id',
)


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key in STRUCTURED_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _apply_overrides(config: ImportConfig, event: Dict[str, Any]) -> ImportConfig:
    """Apply per-invocation overrides (dryRun, appId) from the event payload."""
    overrides = {}
    if 'dryRun' in event:
        dry_run = event['dryRun']
        overrides['dry_run'] = dry_run if isinstance(dry_run, bool) else str(dry_run).lower() != 'false'
    if event.get('appId'):
        overrides['app_id'] = str(event['appId'])
    return replace(config, **overrides) if overrides else config


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the calendar import.

    The event may carry `date` (or `startDate`/`endDate`), `dryRun` and
    `appId`; anything missing comes from the environment.

    Args:
        event: Invocation payload (EventBridge schedule or direct invoke)
        context: Lambda context object

    Returns:
        Response dict with statusCode and the run result plus assessment
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    logger = logging.getLogger(__name__)

    event = event or {}
    start_time = time.time()

    try:
        config = _apply_overrides(ImportConfig.from_env(), event)
        start_date = event.get('date') or event.get('startDate') or config.resolve_target_date()
        end_date = event.get('endDate')

        logger.info(
            "Lambda execution started",
            extra={'date': start_date, 'dry_run': config.dry_run, 'app_id': config.app_id}
        )

        orchestrator = ImportOrchestrator.from_config(config)
        outcome = orchestrator.run(start_date, end_date)

        duration = time.time() - start_time
        logger.info(
            "Lambda execution completed successfully",
            extra={
                'date': start_date,
                'duration_seconds': round(duration, 2),
                'events_total': outcome.result.source_events.total,
                'events_created': outcome.result.destination_events.created,
                'events_failed': outcome.result.destination_events.failed
            }
        )

        return {
            'statusCode': 200,
            'body': json.dumps({
                'message': 'Import completed',
                'results': outcome.result.to_dict(),
                'assessment': outcome.assessment.to_dict(),
                'duration_seconds': round(duration, 2)
            }, default=str)
        }

    except Exception as e:
        duration = time.time() - start_time
        error_type = e.error_type.value if isinstance(e, ApiCallError) else type(e).__name__

        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': error_type
            },
            exc_info=True
        )

        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Import failed',
                'error': str(e),
                'error_type': error_type,
                'duration_seconds': round(duration, 2)
            })
        }

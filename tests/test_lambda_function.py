"""Integration tests for Lambda handler."""
import json
import logging
import os
from unittest.mock import Mock, patch

import pytest

from client.errors import ApiCallError, ErrorType
from lambda_function import JsonFormatter, lambda_handler, setup_logging
from processor.models import Assessment, RunResult
from processor.orchestrator import ImportOutcome
from source.calendar_api import ExtractionError


@pytest.fixture
def mock_env(tmp_path):
    """Set up environment variables for testing."""
    env_vars = {
        'LOG_LEVEL': 'INFO',
        'DRY_RUN': 'true',
        'APP_ID': '1',
        'OUTPUT_DIR': str(tmp_path),
        'TARGET_DATE': '2024-03-15',
        'TIMEOUT_SECONDS': '30'
    }
    with patch.dict(os.environ, env_vars):
        yield env_vars


@pytest.fixture
def mock_context():
    """Create a mock Lambda context."""
    context = Mock()
    context.function_name = 'test-function'
    context.memory_limit_in_mb = 512
    context.invoked_function_arn = 'arn:aws:lambda:us-east-1:123456789012:function:test-function'
    context.aws_request_id = 'test-request-id'
    return context


@pytest.fixture
def outcome():
    """A completed run with its assessment."""
    result = RunResult(date='2024-03-15', dry_run=True, start_time='2024-03-15T10:00:00+00:00')
    result.source_events.total = 2
    result.source_events.processed = 2
    result.destination_events.created = 2
    result.entity_resolution.success = 2
    result.validation.valid = 2
    assessment = Assessment(
        can_proceed=True,
        metrics={'entity_resolution_rate': 1.0, 'validation_rate': 1.0, 'overall_success_rate': 1.0},
        thresholds={'minimum_resolution_rate': 0.9},
        recommendations=[]
    )
    return ImportOutcome(result=result, assessment=assessment)


@pytest.fixture
def orchestrator_cls(outcome):
    with patch('lambda_function.ImportOrchestrator') as cls:
        cls.from_config.return_value.run.return_value = outcome
        yield cls


class TestLambdaHandler:
    """Test cases for lambda_handler."""

    def test_successful_import(self, mock_env, mock_context, orchestrator_cls):
        """Test the 200 response with results and assessment."""
        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['results']['destination_events']['created'] == 2
        assert body['assessment']['can_proceed'] is True
        orchestrator_cls.from_config.return_value.run.assert_called_once_with('2024-03-15', None)

        config = orchestrator_cls.from_config.call_args.args[0]
        assert config.dry_run is True

    def test_event_overrides(self, mock_env, mock_context, orchestrator_cls):
        """Test that the invocation payload overrides date, dry-run and app id."""
        lambda_handler(
            {'startDate': '2024-04-01', 'endDate': '2024-04-03', 'dryRun': False, 'appId': 7},
            mock_context
        )

        config = orchestrator_cls.from_config.call_args.args[0]
        assert config.dry_run is False
        assert config.app_id == '7'
        orchestrator_cls.from_config.return_value.run.assert_called_once_with('2024-04-01', '2024-04-03')

    def test_string_dry_run_override(self, mock_env, mock_context, orchestrator_cls):
        """Test that a string dryRun is read like the environment flag."""
        lambda_handler({'date': '2024-04-01', 'dryRun': 'false'}, mock_context)

        assert orchestrator_cls.from_config.call_args.args[0].dry_run is False

    def test_extraction_failure_returns_500(self, mock_env, mock_context, orchestrator_cls):
        """Test the error response when the source cannot be read."""
        orchestrator_cls.from_config.return_value.run.side_effect = ExtractionError('source unreachable')

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['error'] == 'source unreachable'
        assert body['error_type'] == 'ExtractionError'
        assert 'duration_seconds' in body

    def test_api_failure_reports_classified_type(self, mock_env, mock_context, orchestrator_cls):
        """Test that API failures report their error classification."""
        orchestrator_cls.from_config.return_value.run.side_effect = ApiCallError(
            'Authentication error (401): ', ErrorType.AUTH_ERROR, status=401
        )

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 500
        assert json.loads(response['body'])['error_type'] == 'auth'


class TestLogging:
    """Test cases for JSON logging."""

    def test_setup_logging(self):
        """Test that logging is configured with the JSON formatter."""
        setup_logging('DEBUG')

        root_logger = logging.getLogger()
        assert root_logger.level == logging.DEBUG
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, JsonFormatter)

    def test_json_formatter_includes_extras(self):
        """Test that structured fields are carried into the log line."""
        record = logging.LogRecord('processor.orchestrator', logging.INFO, __file__, 1, 'Import done', None, None)
        record.stage = 'finalization'
        record.date = '2024-03-15'
        record.unrelated = 'dropped'

        data = json.loads(JsonFormatter().format(record))

        assert data['message'] == 'Import done'
        assert data['level'] == 'INFO'
        assert data['stage'] == 'finalization'
        assert data['date'] == '2024-03-15'
        assert 'unrelated' not in data

"""Unit tests for DestinationWriter."""
from dataclasses import replace

import pytest

from client.errors import ApiCallError, ErrorType
from storage.destination_writer import DestinationWriter, is_failed_create

EXISTING = [
    {'_id': 'old-1', 'title': 'Old Milonga'},
    {'_id': 'old-2', 'title': 'Old Class'},
    {'_id': 'old-3', 'title': 'Old Practica'},
]


class TestDeleteEventsForDate:
    """Test cases for the delete phase."""

    def test_queries_utc_day_bounds(self, destination_api):
        """Test the query window for the date."""
        DestinationWriter(destination_api, dry_run=False).delete_events_for_date('2024-03-15')

        destination_api.find_events.assert_called_once_with(
            '2024-03-15T00:00:00.000Z', '2024-03-15T23:59:59.999Z'
        )

    def test_deletes_every_existing_event(self, destination_api):
        """Test that each existing event is deleted by id."""
        destination_api.find_events.return_value = EXISTING

        outcome = DestinationWriter(destination_api, dry_run=False).delete_events_for_date('2024-03-15')

        assert outcome.deleted == 3
        assert outcome.existing_events == EXISTING
        assert [c.args[0] for c in destination_api.delete_event.call_args_list] == ['old-1', 'old-2', 'old-3']

    def test_single_delete_failure_is_skipped(self, destination_api):
        """Test that one failed delete does not stop the others."""
        destination_api.find_events.return_value = EXISTING
        destination_api.delete_event.side_effect = [
            None,
            ApiCallError('gone', ErrorType.NOT_FOUND, status=404),
            None,
        ]

        outcome = DestinationWriter(destination_api, dry_run=False).delete_events_for_date('2024-03-15')

        assert outcome.deleted == 2
        assert outcome.failed_ids == ['old-2']

    def test_dry_run_only_counts(self, destination_api):
        """Test that dry-run reports would-be deletions without deleting."""
        destination_api.find_events.return_value = EXISTING

        outcome = DestinationWriter(destination_api, dry_run=True).delete_events_for_date('2024-03-15')

        assert outcome.deleted == 0
        assert outcome.would_delete == 3
        destination_api.delete_event.assert_not_called()

    def test_query_failure_raises(self, destination_api):
        """Test that the run cannot replace a date it cannot read."""
        destination_api.find_events.side_effect = ApiCallError('down', ErrorType.SERVER_ERROR, status=500)

        with pytest.raises(ApiCallError):
            DestinationWriter(destination_api, dry_run=False).delete_events_for_date('2024-03-15')

    def test_query_failure_tolerated_in_dry_run(self, destination_api):
        """Test that dry-run reports nothing to delete when the query fails."""
        destination_api.find_events.side_effect = ApiCallError('denied', ErrorType.AUTH_ERROR, status=401)

        outcome = DestinationWriter(destination_api, dry_run=True).delete_events_for_date('2024-03-15')

        assert outcome.would_delete == 0
        assert outcome.deleted == 0


class TestCreateEvent:
    """Test cases for the create phase."""

    def test_successful_create(self, destination_api, destination_event):
        """Test that the destination record is returned with import markers."""
        record = DestinationWriter(destination_api, dry_run=False).create_event(destination_event)

        assert record['_id'] == 'created-Friday Night Milonga'
        assert record['importSuccess'] is True
        assert 'importTimestamp' in record
        assert not is_failed_create(record)
        payload = destination_api.create_event.call_args.args[0]
        assert payload['venueID'] == 'venue-1'

    def test_dry_run_create(self, destination_api, destination_event):
        """Test that dry-run returns a marked record without a remote call."""
        record = DestinationWriter(destination_api, dry_run=True).create_event(destination_event)

        assert record['_id'] == 'dry-run-id'
        assert record['dryRun'] is True
        assert record['title'] == 'Friday Night Milonga'
        destination_api.create_event.assert_not_called()

    def test_pre_validation_failure(self, destination_api, destination_event):
        """Test that an incomplete event is rejected before any call."""
        event = replace(destination_event, venue_id='')

        record = DestinationWriter(destination_api, dry_run=False).create_event(event)

        assert record['status'] == 'validation_failed'
        assert record['_id'].startswith('validation-error-')
        assert 'Missing required field: venueID' in record['validationError']
        assert is_failed_create(record)
        destination_api.create_event.assert_not_called()

    def test_api_failure_returns_placeholder(self, destination_api, destination_event):
        """Test that a failed create is annotated instead of raised."""
        destination_api.create_event.side_effect = ApiCallError(
            'Server error (502): bad gateway', ErrorType.SERVER_ERROR, status=502, attempts=3
        )

        record = DestinationWriter(destination_api, dry_run=False).create_event(destination_event)

        assert record['_id'].startswith('server-error-')
        assert record['status'] == 'api_error'
        assert record['apiError'] == {
            'type': 'server',
            'message': 'Server error (502): bad gateway',
            'status': 502
        }
        assert record['shouldRetry'] is True
        assert is_failed_create(record)

    def test_auth_failure_not_retryable(self, destination_api, destination_event):
        """Test that auth failures are marked as not worth retrying."""
        destination_api.create_event.side_effect = ApiCallError('denied', ErrorType.AUTH_ERROR, status=403)

        record = DestinationWriter(destination_api, dry_run=False).create_event(destination_event)

        assert record['_id'].startswith('auth-error-')
        assert record['shouldRetry'] is False

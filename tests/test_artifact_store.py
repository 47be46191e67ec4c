"""Unit tests for ArtifactStore."""
import json

import boto3
import pytest
from moto import mock_aws

from storage.artifact_store import FAILED_EVENTS, IMPORT_RESULTS, ArtifactStore


@pytest.fixture
def s3_client():
    """Create a mock S3 bucket for artifacts."""
    with mock_aws():
        client = boto3.client('s3', region_name='us-east-1')
        client.create_bucket(Bucket='import-artifacts')
        yield client


class TestArtifactStore:
    """Test cases for ArtifactStore class."""

    def test_save_writes_json_file(self, tmp_path):
        """Test that artifacts land in {name}-{date}.json."""
        store = ArtifactStore(str(tmp_path / 'results'))

        path = store.save(IMPORT_RESULTS, '2024-03-15', {'date': '2024-03-15', 'created': 3})

        assert path == str(tmp_path / 'results' / 'import-results-2024-03-15.json')
        assert json.loads((tmp_path / 'results' / 'import-results-2024-03-15.json').read_text()) == {
            'date': '2024-03-15',
            'created': 3
        }
        assert store.load(IMPORT_RESULTS, '2024-03-15')['created'] == 3

    def test_save_overwrites_previous_run(self, tmp_path):
        """Test that a re-run replaces the date's artifact."""
        store = ArtifactStore(str(tmp_path))

        store.save(FAILED_EVENTS, '2024-03-15', [{'source_id': 1}])
        store.save(FAILED_EVENTS, '2024-03-15', [])

        assert store.load(FAILED_EVENTS, '2024-03-15') == []

    def test_mirrors_to_s3(self, tmp_path, s3_client):
        """Test that artifacts are uploaded under the prefix."""
        store = ArtifactStore(str(tmp_path), bucket='import-artifacts', prefix='runs/', s3_client=s3_client)

        store.save(IMPORT_RESULTS, '2024-03-15', {'created': 3})

        obj = s3_client.get_object(Bucket='import-artifacts', Key='runs/import-results-2024-03-15.json')
        assert json.loads(obj['Body'].read()) == {'created': 3}
        assert obj['ContentType'] == 'application/json'

    def test_s3_failure_does_not_raise(self, tmp_path, s3_client):
        """Test that an upload error is logged and the local file still written."""
        store = ArtifactStore(str(tmp_path), bucket='missing-bucket', s3_client=s3_client)

        path = store.save(IMPORT_RESULTS, '2024-03-15', {'created': 0})

        assert json.loads(open(path).read()) == {'created': 0}

"""Persist run artifacts as JSON files, optionally mirrored to S3."""
import json
import logging
import os
from typing import Any, Optional

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

SOURCE_EVENTS = 'source-events'
EXISTING_EVENTS = 'existing-events'
PROCESSED_EVENTS = 'processed-events'
FAILED_EVENTS = 'failed-events'
UNMATCHED_ENTITIES = 'unmatched-entities'
IMPORT_RESULTS = 'import-results'
GO_NOGO_ASSESSMENT = 'go-nogo-assessment'


class ArtifactStore:
    """Writes `{name}-{date}.json` artifacts to a directory and, if configured, an S3 bucket."""

    def __init__(
        self,
        output_dir: str,
        bucket: Optional[str] = None,
        prefix: str = 'import-results',
        s3_client=None
    ):
        """
        Initialize the artifact store.

        Args:
            output_dir: Local directory for artifacts (created on first save)
            bucket: Optional S3 bucket mirroring every artifact
            prefix: Key prefix inside the bucket
            s3_client: Optional boto3 S3 client (created when bucket is set)
        """
        self.output_dir = output_dir
        self.bucket = bucket
        self.prefix = prefix.strip('/')
        self.s3 = s3_client
        if bucket and self.s3 is None:
            self.s3 = boto3.client('s3')
        if bucket:
            logger.info(f"Mirroring artifacts to s3://{bucket}/{self.prefix}")

    @staticmethod
    def filename(name: str, date: str) -> str:
        return f"{name}-{date}.json"

    def path_for(self, name: str, date: str) -> str:
        return os.path.join(self.output_dir, self.filename(name, date))

    def save(self, name: str, date: str, data: Any) -> str:
        """
        Write one artifact.

        S3 upload failures are logged and do not fail the run; local write
        failures propagate.

        Args:
            name: Artifact name, e.g. "processed-events"
            date: Run date (YYYY-MM-DD)
            data: JSON-serializable content

        Returns:
            Local file path written
        """
        body = json.dumps(data, indent=2, default=str)

        os.makedirs(self.output_dir, exist_ok=True)
        path = self.path_for(name, date)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(body)
        logger.info(f"Saved {name} artifact to {path}", extra={'stage': 'finalization', 'date': date})

        if self.bucket:
            key = f"{self.prefix}/{self.filename(name, date)}" if self.prefix else self.filename(name, date)
            try:
                self.s3.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=body.encode('utf-8'),
                    ContentType='application/json'
                )
            except ClientError as e:
                logger.error(f"Error uploading {name} artifact to s3://{self.bucket}/{key}: {e}")

        return path

    def load(self, name: str, date: str) -> Any:
        """Read a previously saved local artifact."""
        with open(self.path_for(name, date), encoding='utf-8') as f:
            return json.load(f)

"""Import configuration loaded from the environment."""
import os
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Mapping, Optional


@dataclass(frozen=True)
class DefaultLocation:
    """Geography used when a venue has no usable location of its own."""
    city_id: str = '64f26a9f75bfc0db12ed7a1e'
    city_name: str = 'Boston'
    division_id: str = '64f26a9f75bfc0db12ed7a15'
    division_name: str = 'Massachusetts'
    region_id: str = '64f26a9f75bfc0db12ed7a12'
    region_name: str = 'New England'
    # GeoJSON order: [longitude, latitude]
    coordinates: List[float] = field(default_factory=lambda: [-71.0589, 42.3601])


@dataclass(frozen=True)
class RetrySettings:
    """Retry tuning shared by every outbound call."""
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0


@dataclass(frozen=True)
class ImportConfig:
    """All settings for one import run."""
    source_api_base: str = 'https://bostontangocalendar.com/wp-json/tribe/events/v1'
    destination_api_base: str = 'http://localhost:3010/api'
    app_id: str = '1'
    auth_token: Optional[str] = None
    output_dir: str = '/tmp/import-results'
    artifact_bucket: Optional[str] = None
    artifact_prefix: str = 'import-results'
    dry_run: bool = True
    target_date: Optional[str] = None
    source_timezone: str = 'America/New_York'
    timeout_seconds: int = 30
    page_size: int = 50
    verify_venue_geolocation: bool = True
    retry: RetrySettings = field(default_factory=RetrySettings)
    default_location: DefaultLocation = field(default_factory=DefaultLocation)

    DEFAULT_DAYS_AHEAD = 90

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ImportConfig':
        """
        Build configuration from environment variables.

        Dry-run is on unless DRY_RUN is exactly "false".

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            ImportConfig instance
        """
        env = os.environ if environ is None else environ

        retry = RetrySettings(
            max_retries=int(env.get('MAX_RETRIES', '3')),
            initial_delay=float(env.get('INITIAL_RETRY_DELAY', '1.0')),
            max_delay=float(env.get('MAX_RETRY_DELAY', '30.0'))
        )

        return cls(
            source_api_base=env.get('SOURCE_API_BASE', cls.source_api_base),
            destination_api_base=env.get('DESTINATION_API_BASE', cls.destination_api_base),
            app_id=env.get('APP_ID', cls.app_id),
            auth_token=env.get('AUTH_TOKEN') or None,
            output_dir=env.get('OUTPUT_DIR', cls.output_dir),
            artifact_bucket=env.get('ARTIFACT_BUCKET') or None,
            artifact_prefix=env.get('ARTIFACT_PREFIX', cls.artifact_prefix),
            dry_run=env.get('DRY_RUN', 'true').lower() != 'false',
            target_date=env.get('TARGET_DATE') or None,
            source_timezone=env.get('SOURCE_TIMEZONE', cls.source_timezone),
            timeout_seconds=int(env.get('TIMEOUT_SECONDS', '30')),
            page_size=int(env.get('PAGE_SIZE', '50')),
            verify_venue_geolocation=env.get('VERIFY_VENUE_GEOLOCATION', 'true').lower() != 'false',
            retry=retry
        )

    def resolve_target_date(self, today: Optional[date] = None) -> str:
        """Return the configured target date, or today + 90 days."""
        if self.target_date:
            return self.target_date
        today = today or date.today()
        return (today + timedelta(days=self.DEFAULT_DAYS_AHEAD)).strftime('%Y-%m-%d')

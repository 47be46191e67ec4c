"""Unit tests for ImportConfig."""
from datetime import date

from processor.config import ImportConfig


class TestImportConfig:
    """Test cases for ImportConfig class."""

    def test_defaults(self):
        """Test the configuration used when the environment is empty."""
        config = ImportConfig.from_env({})

        assert config.dry_run is True
        assert config.app_id == '1'
        assert config.auth_token is None
        assert config.artifact_bucket is None
        assert config.retry.max_retries == 3
        assert config.default_location.city_name == 'Boston'
        assert config.default_location.coordinates == [-71.0589, 42.3601]

    def test_dry_run_only_disabled_by_false(self):
        """Test that anything but "false" keeps dry-run on."""
        assert ImportConfig.from_env({'DRY_RUN': 'false'}).dry_run is False
        assert ImportConfig.from_env({'DRY_RUN': 'FALSE'}).dry_run is False
        assert ImportConfig.from_env({'DRY_RUN': 'no'}).dry_run is True

    def test_reads_environment(self):
        """Test the environment variable names."""
        config = ImportConfig.from_env({
            'SOURCE_API_BASE': 'https://calendar.example.com/api',
            'DESTINATION_API_BASE': 'https://dest.example.com/api',
            'APP_ID': '9',
            'AUTH_TOKEN': 'abc',
            'OUTPUT_DIR': '/tmp/out',
            'ARTIFACT_BUCKET': 'artifacts',
            'TARGET_DATE': '2024-03-15',
            'MAX_RETRIES': '5',
            'INITIAL_RETRY_DELAY': '0.5',
            'MAX_RETRY_DELAY': '10',
            'PAGE_SIZE': '20',
            'VERIFY_VENUE_GEOLOCATION': 'false'
        })

        assert config.source_api_base == 'https://calendar.example.com/api'
        assert config.destination_api_base == 'https://dest.example.com/api'
        assert config.app_id == '9'
        assert config.auth_token == 'abc'
        assert config.output_dir == '/tmp/out'
        assert config.artifact_bucket == 'artifacts'
        assert config.retry.max_retries == 5
        assert config.retry.initial_delay == 0.5
        assert config.retry.max_delay == 10.0
        assert config.page_size == 20
        assert config.verify_venue_geolocation is False
        assert config.resolve_target_date() == '2024-03-15'

    def test_target_date_defaults_to_ninety_days_ahead(self):
        """Test the default import date."""
        config = ImportConfig.from_env({})

        assert config.resolve_target_date(today=date(2024, 1, 1)) == '2024-03-31'

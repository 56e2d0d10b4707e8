"""Unit tests for DeviceFlowConfig."""

import pytest
from pydantic import ValidationError

from device_flow.core.config import DeviceFlowConfig, config_from_env


class TestDeviceFlowConfig:
    def test_defaults(self):
        config = DeviceFlowConfig()

        assert config.device_code_lifetime == 1800
        assert config.polling_interval == 5
        assert config.slow_down_increment == 5
        assert config.max_polling_interval == 60
        assert config.user_code_length == 8
        assert config.user_code_format == 'XXXX-XXXX'
        assert config.verification_uri == '/oauth/device/verify'
        assert config.max_generation_attempts == 10
        assert config.authorized_retention_seconds == 7 * 24 * 60 * 60
        assert config.cleanup_batch_size == 1000

    def test_default_charset_excludes_ambiguous_characters(self):
        charset = DeviceFlowConfig().charset

        assert not any(c in charset for c in '01OIL')
        assert charset == 'ABCDEFGHJKMNPQRSTUVWXYZ23456789'

    def test_explicit_charset_wins(self):
        config = DeviceFlowConfig(user_code_charset='BCDF')

        assert config.charset == 'BCDF'

    @pytest.mark.parametrize(
        'overrides',
        [
            {'user_code_charset': 'abc'},
            {'user_code_charset': 'AAB'},
            {'user_code_excluded_chars': 'ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'},
            {'polling_interval': 10, 'max_polling_interval': 5},
            {'device_code_lifetime': 0},
            {'user_code_length': 2},
            {'unknown_option': True},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValidationError):
            DeviceFlowConfig(**overrides)

    def test_frozen(self):
        config = DeviceFlowConfig()

        with pytest.raises(ValidationError):
            config.polling_interval = 1


class TestConfigFromEnv:
    def test_reads_prefixed_variables(self):
        config = config_from_env(
            {
                'DEVICE_FLOW_DEVICE_CODE_LIFETIME': '900',
                'DEVICE_FLOW_ENABLE_STATISTICS_LOGGING': 'false',
                'DEVICE_FLOW_DATABASE_URL': 'sqlite://',
                'UNRELATED': 'ignored',
            }
        )

        assert config.device_code_lifetime == 900
        assert config.enable_statistics_logging is False
        assert config.database_url == 'sqlite://'

    def test_empty_values_fall_back_to_defaults(self):
        config = config_from_env({'DEVICE_FLOW_POLLING_INTERVAL': ''})

        assert config.polling_interval == 5

    def test_invalid_value(self):
        with pytest.raises(ValidationError):
            config_from_env({'DEVICE_FLOW_USER_CODE_LENGTH': 'eight'})

import os
import string

from pydantic import BaseModel, ConfigDict, Field, model_validator

ENV_PREFIX = 'DEVICE_FLOW_'
USER_CODE_BASE_CHARSET = string.ascii_uppercase + string.digits


class DeviceFlowConfig(BaseModel):
    """Configuration for the device authorization grant.

    Attributes:
        device_code_lifetime: Seconds a device code stays valid after issuance.
        polling_interval: Minimum seconds between polls for a new device code.
        slow_down_increment: Seconds added to a device code's interval on slow_down.
        max_polling_interval: Upper bound for the interval after slow_down penalties.
        user_code_length: Number of symbols in a user code.
        user_code_charset: Explicit user code alphabet. When unset the alphabet is
            A-Z and 0-9 minus `user_code_excluded_chars`.
        user_code_excluded_chars: Characters removed from the default alphabet.
        user_code_format: Display pattern, X marks a code symbol.
        verification_uri: Path (or absolute URL) of the verification page.
        max_generation_attempts: Attempts to find an unused code pair.
        authorized_retention_seconds: How long authorized records are kept.
        cleanup_batch_size: Maximum rows deleted per cleanup transaction.
        enable_statistics_logging: Whether cleanup runs log their counts.
        database_url: SQLAlchemy URL of the device authorization store.
    """

    device_code_lifetime: int = Field(default=1800, ge=1)
    polling_interval: int = Field(default=5, ge=1)
    slow_down_increment: int = Field(default=5, ge=1)
    max_polling_interval: int = Field(default=60, ge=1)
    user_code_length: int = Field(default=8, ge=4, le=32)
    user_code_charset: str | None = Field(default=None)
    user_code_excluded_chars: str = Field(default='01OIL')
    user_code_format: str = Field(default='XXXX-XXXX')
    verification_uri: str = Field(default='/oauth/device/verify')
    max_generation_attempts: int = Field(default=10, ge=1)
    authorized_retention_seconds: int = Field(default=7 * 24 * 60 * 60, ge=0)
    cleanup_batch_size: int = Field(default=1000, ge=1)
    enable_statistics_logging: bool = Field(default=True)
    database_url: str = Field(default='sqlite:///device_flow.db')

    model_config = ConfigDict(extra='forbid', frozen=True)

    @property
    def charset(self) -> str:
        if self.user_code_charset:
            return self.user_code_charset
        excluded = self.user_code_excluded_chars.upper()
        return ''.join(c for c in USER_CODE_BASE_CHARSET if c not in excluded)

    @model_validator(mode='after')
    def _check_consistency(self) -> 'DeviceFlowConfig':
        charset = self.charset
        if not charset:
            raise ValueError('user code charset cannot be empty')
        if any(c not in USER_CODE_BASE_CHARSET for c in charset):
            raise ValueError('user code charset must be uppercase letters and digits')
        if len(set(charset)) != len(charset):
            raise ValueError('user code charset contains duplicate characters')
        if self.max_polling_interval < self.polling_interval:
            raise ValueError('max_polling_interval must be >= polling_interval')
        return self


def config_from_env(environ: dict[str, str] | None = None) -> DeviceFlowConfig:
    """Build the configuration from DEVICE_FLOW_* environment variables."""
    environ = os.environ if environ is None else environ
    values: dict[str, str] = {}
    for name in DeviceFlowConfig.model_fields:
        raw = environ.get(f'{ENV_PREFIX}{name.upper()}')
        if raw is not None and raw != '':
            values[name] = raw
    return DeviceFlowConfig.model_validate(values)

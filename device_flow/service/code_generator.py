"""Device code and user code generation for the OAuth 2.0 Device Flow."""

import re
import secrets

from device_flow.core.config import DeviceFlowConfig
from device_flow.core.exceptions import CryptoUnavailable

# 32 bytes of randomness = 256 bits of entropy
DEVICE_CODE_BYTES = 32


class CodeGenerator:
    """Generates device codes and human-friendly user codes.

    Both codes come from the `secrets` module; there is no fallback to a
    weaker random source. Uniqueness is not checked here, the caller retries
    against the store.
    """

    def __init__(self, config: DeviceFlowConfig):
        self.config = config
        self.charset = config.charset

    def generate_device_code(self) -> str:
        """Generate a URL-safe device code with 256 bits of entropy."""
        try:
            return secrets.token_urlsafe(DEVICE_CODE_BYTES)
        except (NotImplementedError, OSError) as e:
            raise CryptoUnavailable(
                'Secure random source unavailable for device code generation'
            ) from e

    def generate_user_code(self) -> str:
        """Generate a normalized user code (uppercase, no separator)."""
        try:
            return ''.join(
                secrets.choice(self.charset)
                for _ in range(self.config.user_code_length)
            )
        except (NotImplementedError, OSError) as e:
            raise CryptoUnavailable(
                'Secure random source unavailable for user code generation'
            ) from e

    def normalize_user_code(self, user_code: str) -> str:
        """Uppercase the code and strip everything but letters and digits."""
        return re.sub(r'[^A-Z0-9]', '', user_code.upper())

    def format_user_code(self, raw_code: str) -> str:
        """Format a normalized code for display, e.g. 'BCDF2345' -> 'BCDF-2345'."""
        pattern = self.config.user_code_format
        if pattern.count('X') == len(raw_code):
            symbols = iter(raw_code)
            return ''.join(next(symbols) if c == 'X' else c for c in pattern)

        # Pattern does not fit this length, split in half with a dash
        length = len(raw_code)
        if length >= 4 and length % 2 == 0:
            half = length // 2
            return f'{raw_code[:half]}-{raw_code[half:]}'

        return raw_code

    def validate_code_format(self, user_code: str) -> bool:
        """Check length and alphabet of a user-entered code, formatted or not."""
        if not user_code:
            return False
        normalized = self.normalize_user_code(user_code)
        if len(normalized) != self.config.user_code_length:
            return False
        return all(c in self.charset for c in normalized)

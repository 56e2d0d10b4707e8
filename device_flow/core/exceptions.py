"""Exceptions raised by the device authorization flow."""


class DeviceFlowError(Exception):
    """Base class for all device flow errors."""

    pass


# Fatal, reported to clients as server_error


class GenerationExhausted(DeviceFlowError):
    """Raised when no unique code could be generated within the attempt budget."""

    def __init__(self, attempts: int):
        super().__init__(
            f'Failed to generate unique device codes after {attempts} attempts'
        )
        self.attempts = attempts


class CryptoUnavailable(DeviceFlowError):
    """Raised when the operating system cannot provide secure randomness."""

    pass


# Expected, user-facing


class NotFound(DeviceFlowError):
    """Raised when no device authorization matches the given code."""

    pass


class Expired(DeviceFlowError):
    """Raised when the device authorization is past its expiry time."""

    pass


class AlreadyAuthorized(DeviceFlowError):
    """Raised when a user code has already been bound to a principal."""

    pass


class AccessDenied(DeviceFlowError):
    """Raised when the device authorization was denied or revoked."""

    pass


class InvalidUserCode(DeviceFlowError):
    """Raised when a user-entered code has the wrong length or alphabet."""

    pass


class AuthenticationRequired(DeviceFlowError):
    """Raised when verification is attempted without an authenticated user."""

    pass


# Store level, handled inside the service


class StoreConflict(DeviceFlowError):
    """Raised when a conditional write lost a race with a concurrent writer."""

    pass


class DuplicateCodeError(StoreConflict):
    """Raised when an insert collides with an existing device or user code."""

    pass

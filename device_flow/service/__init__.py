from device_flow.service.code_generator import CodeGenerator
from device_flow.service.device_authorization_service import (
    CleanupResult,
    DeviceAuthorizationService,
    IssuedDeviceAuthorization,
    PollResult,
    PollState,
)
from device_flow.service.verification import (
    DeviceVerificationHandler,
    VerificationAction,
    VerificationOutcome,
)

__all__ = [
    'CleanupResult',
    'CodeGenerator',
    'DeviceAuthorizationService',
    'DeviceVerificationHandler',
    'IssuedDeviceAuthorization',
    'PollResult',
    'PollState',
    'VerificationAction',
    'VerificationOutcome',
]

"""User-facing verification step of the device flow."""

from dataclasses import dataclass
from enum import Enum

from device_flow.core.exceptions import AuthenticationRequired, InvalidUserCode
from device_flow.core.logger import device_flow_logger as logger
from device_flow.service.device_authorization_service import (
    DeviceAuthorizationService,
)


class VerificationAction(Enum):
    AUTHORIZE = 'authorize'
    DENY = 'deny'


@dataclass(frozen=True)
class VerificationOutcome:
    """Result shown to the user. Never carries the device code."""

    action: VerificationAction
    client_id: str
    scopes: tuple[str, ...]
    message: str


class DeviceVerificationHandler:
    """Checks the entered code locally, then hands the decision to the service."""

    def __init__(self, service: DeviceAuthorizationService):
        self.service = service
        self.code_generator = service.code_generator

    def normalize(self, user_code: str | None) -> str:
        """Normalize a user-entered code, rejecting bad length or alphabet early.

        Raises:
            InvalidUserCode: If the code cannot possibly match a stored user code
        """
        user_code = (user_code or '').strip()
        if not user_code:
            raise InvalidUserCode('Device code is required.')
        if not self.code_generator.validate_code_format(user_code):
            raise InvalidUserCode(
                'Invalid device code format. Please check the code and try again.'
            )
        return self.code_generator.normalize_user_code(user_code)

    def verify(
        self,
        user_code: str | None,
        user_id: str | None,
        action: VerificationAction = VerificationAction.AUTHORIZE,
    ) -> VerificationOutcome:
        """Approve or deny a device on behalf of the signed-in user.

        Raises:
            AuthenticationRequired: If there is no signed-in user
            InvalidUserCode: If the code is malformed
            NotFound, Expired, AlreadyAuthorized, AccessDenied: From the service
        """
        if not user_id:
            raise AuthenticationRequired('Authentication required')

        normalized = self.normalize(user_code)

        if action == VerificationAction.AUTHORIZE:
            record = self.service.authorize(normalized, user_id)
            message = (
                'Device authorized successfully! You can now close this page '
                'and continue using your device.'
            )
        else:
            record = self.service.deny(normalized)
            message = (
                'Device authorization was denied. '
                'The device will not have access to your account.'
            )

        logger.info(
            'Device verification completed',
            extra={
                'user_id': user_id,
                'action': action.value,
                'client_id': record.client_id,
            },
        )
        return VerificationOutcome(
            action=action,
            client_id=record.client_id,
            scopes=record.requested_scopes,
            message=message,
        )

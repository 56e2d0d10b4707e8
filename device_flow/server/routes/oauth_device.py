"""OAuth 2.0 Device Flow endpoints (RFC 8628)."""

from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from device_flow.core.exceptions import (
    AccessDenied,
    AlreadyAuthorized,
    AuthenticationRequired,
    Expired,
    InvalidUserCode,
    NotFound,
)
from device_flow.core.logger import device_flow_logger as logger
from device_flow.core.logger import mask_code
from device_flow.server.client_auth import DEVICE_CODE_GRANT_TYPE, ClientRepository
from device_flow.server.token_issuer import TokenIssuer
from device_flow.server.user_auth import get_user_id
from device_flow.service.device_authorization_service import (
    DeviceAuthorizationService,
    PollState,
)
from device_flow.service.verification import (
    DeviceVerificationHandler,
    VerificationAction,
)

# Token responses and device codes must never be cached (RFC 6749 section 5.1)
NO_STORE_HEADERS = {'Cache-Control': 'no-store', 'Pragma': 'no-cache'}

POLL_ERROR_DESCRIPTIONS = {
    PollState.AUTHORIZATION_PENDING: 'User has not yet completed authorization',
    PollState.SLOW_DOWN: 'Polling too frequently',
    PollState.EXPIRED_TOKEN: 'Device code has expired',
    PollState.ACCESS_DENIED: 'User denied the authorization request',
}

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class DeviceAuthorizationResponse(BaseModel):
    device_code: str
    user_code: str
    verification_uri: str
    verification_uri_complete: str
    expires_in: int
    interval: int


class DeviceTokenErrorResponse(BaseModel):
    error: str
    error_description: Optional[str] = None
    interval: Optional[int] = None  # Required for slow_down error


class DeviceVerificationResponse(BaseModel):
    message: str
    client_id: str
    scopes: list[str]


# ---------------------------------------------------------------------------
# Router + dependencies
# ---------------------------------------------------------------------------

oauth_device_router = APIRouter(prefix='/oauth/device')


def get_device_authorization_service(request: Request) -> DeviceAuthorizationService:
    return request.app.state.device_authorization_service


def get_verification_handler(request: Request) -> DeviceVerificationHandler:
    return request.app.state.verification_handler


def get_client_repository(request: Request) -> ClientRepository:
    return request.app.state.client_repository


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _oauth_error(
    status_code: int,
    error: str,
    description: str,
    interval: Optional[int] = None,
) -> JSONResponse:
    """Return a JSON OAuth-style error response."""
    return JSONResponse(
        status_code=status_code,
        content=DeviceTokenErrorResponse(
            error=error,
            error_description=description,
            interval=interval,
        ).model_dump(exclude_none=True),
        headers=NO_STORE_HEADERS,
    )


def _build_verification_uri(http_request: Request, verification_uri: str) -> str:
    if verification_uri.startswith(('http://', 'https://')):
        return verification_uri
    base_url = str(http_request.base_url).rstrip('/')
    return f'{base_url}/{verification_uri.lstrip("/")}'


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@oauth_device_router.post('/authorize', response_model=DeviceAuthorizationResponse)
async def device_authorization(
    http_request: Request,
    client_id: Optional[str] = Form(None),
    scope: Optional[str] = Form(None),
    service: DeviceAuthorizationService = Depends(get_device_authorization_service),
    client_repository: ClientRepository = Depends(get_client_repository),
):
    """Start device flow by generating device and user codes."""
    if not client_id:
        logger.info('Device authorization request missing client_id')
        return _oauth_error(
            status.HTTP_400_BAD_REQUEST,
            'invalid_request',
            'Missing required parameter: client_id',
        )

    client = client_repository.get_client(client_id)
    if client is None:
        logger.info(
            'Device authorization request with invalid client_id',
            extra={'client_id': client_id},
        )
        # RFC 8628 reports an unknown client as a bad request, not a 401
        return _oauth_error(
            status.HTTP_400_BAD_REQUEST,
            'invalid_client',
            'Client identifier is invalid',
        )

    if not client.supports_device_flow():
        logger.info(
            'Client not configured for device_code grant',
            extra={'client_id': client_id},
        )
        return _oauth_error(
            status.HTTP_400_BAD_REQUEST,
            'unauthorized_client',
            'Client not authorized for device code grant',
        )

    try:
        issued = service.issue_device_authorization(client_id, scope)
    except Exception as e:
        logger.exception('Error in device authorization: %s', str(e))
        return _oauth_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            'server_error',
            'The authorization server encountered an unexpected condition',
        )

    verification_uri = _build_verification_uri(
        http_request, service.config.verification_uri
    )
    verification_uri_complete = (
        f'{verification_uri}?{urlencode({"user_code": issued.user_code})}'
    )

    return JSONResponse(
        content=DeviceAuthorizationResponse(
            device_code=issued.device_code,
            user_code=issued.user_code,
            verification_uri=verification_uri,
            verification_uri_complete=verification_uri_complete,
            expires_in=issued.expires_in,
            interval=issued.interval,
        ).model_dump(),
        headers=NO_STORE_HEADERS,
    )


@oauth_device_router.post('/token')
async def device_token(
    grant_type: Optional[str] = Form(None),
    device_code: Optional[str] = Form(None),
    client_id: Optional[str] = Form(None),
    service: DeviceAuthorizationService = Depends(get_device_authorization_service),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Poll for a token until the user authorizes or the code expires."""
    if not grant_type or not device_code:
        return _oauth_error(
            status.HTTP_400_BAD_REQUEST,
            'invalid_request',
            'Missing required parameter: grant_type and device_code are required',
        )

    if grant_type != DEVICE_CODE_GRANT_TYPE:
        return _oauth_error(
            status.HTTP_400_BAD_REQUEST,
            'unsupported_grant_type',
            f'Grant type must be {DEVICE_CODE_GRANT_TYPE}',
        )

    try:
        result = service.validate_poll(device_code, client_id)
    except Exception as e:
        logger.exception('Error in device token: %s', str(e))
        return _oauth_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            'server_error',
            'Internal server error',
        )

    if result.state != PollState.AUTHORIZED:
        interval = result.retry_after if result.state == PollState.SLOW_DOWN else None
        return _oauth_error(
            status.HTTP_400_BAD_REQUEST,
            result.state.value,
            POLL_ERROR_DESCRIPTIONS[result.state],
            interval=interval,
        )

    record = result.record
    try:
        tokens = await token_issuer.issue_tokens(
            client_id=record.client_id,
            user_identifier=record.user_identifier,
            scopes=record.requested_scopes,
        )
    except Exception as e:
        logger.exception('Failed to issue tokens for authorized device: %s', str(e))

        # Revert so the device is not left authorized without credentials
        try:
            service.revoke(device_code)
            logger.info(
                'Reverted device authorization due to token issuance failure',
                extra={'device_code': mask_code(device_code)},
            )
        except Exception as cleanup_error:
            logger.exception(
                'Failed to revert device authorization during cleanup: %s',
                str(cleanup_error),
            )

        return _oauth_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            'server_error',
            'Failed to issue tokens',
        )

    logger.info(
        'Tokens issued for authorized device',
        extra={'client_id': record.client_id, 'user_id': record.user_identifier},
    )
    return JSONResponse(
        content=tokens.model_dump(exclude_none=True),
        headers=NO_STORE_HEADERS,
    )


VERIFICATION_ERRORS: dict[type[Exception], tuple[int, str]] = {
    AuthenticationRequired: (
        status.HTTP_401_UNAUTHORIZED,
        'Authentication required',
    ),
    NotFound: (
        status.HTTP_400_BAD_REQUEST,
        'Device code not found. Please check the code and try again.',
    ),
    Expired: (
        status.HTTP_400_BAD_REQUEST,
        'Device code has expired. Please request a new code from your device.',
    ),
    AlreadyAuthorized: (
        status.HTTP_400_BAD_REQUEST,
        'This device code has already been processed.',
    ),
    AccessDenied: (
        status.HTTP_400_BAD_REQUEST,
        'This device code has already been processed.',
    ),
}


@oauth_device_router.post('/verify', response_model=DeviceVerificationResponse)
async def device_verification(
    user_code: Optional[str] = Form(None),
    action: VerificationAction = Form(VerificationAction.AUTHORIZE),
    user_id: Optional[str] = Depends(get_user_id),
    handler: DeviceVerificationHandler = Depends(get_verification_handler),
):
    """Approve or deny a device for the signed-in user."""
    try:
        outcome = handler.verify(user_code, user_id, action)
    except InvalidUserCode as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except tuple(VERIFICATION_ERRORS) as e:
        status_code, detail = VERIFICATION_ERRORS[type(e)]
        raise HTTPException(status_code=status_code, detail=detail)
    except Exception as e:
        logger.exception('Error in device verification: %s', str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='An unexpected error occurred. Please try again.',
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=DeviceVerificationResponse(
            message=outcome.message,
            client_id=outcome.client_id,
            scopes=list(outcome.scopes),
        ).model_dump(),
        headers=NO_STORE_HEADERS,
    )

import importlib
import os
import time
from typing import Callable

from fastapi import FastAPI

from device_flow import __version__
from device_flow.core.config import DeviceFlowConfig, config_from_env
from device_flow.core.logger import device_flow_logger as logger
from device_flow.server.client_auth import ClientRepository, InMemoryClientRepository
from device_flow.server.routes.oauth_device import oauth_device_router
from device_flow.server.token_issuer import TokenIssuer
from device_flow.service.device_authorization_service import (
    DeviceAuthorizationService,
)
from device_flow.service.verification import DeviceVerificationHandler
from device_flow.storage.database import (
    create_db_engine,
    create_session_maker,
    init_db,
)
from device_flow.storage.device_authorization_store import DeviceAuthorizationStore
from device_flow.storage.sql_device_authorization_store import (
    SQLDeviceAuthorizationStore,
)


def create_app(
    config: DeviceFlowConfig,
    store: DeviceAuthorizationStore,
    client_repository: ClientRepository,
    token_issuer: TokenIssuer,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    service = DeviceAuthorizationService(store, config, clock=clock)

    app = FastAPI(
        title='Device Flow',
        description='OAuth 2.0 Device Authorization Grant (RFC 8628)',
        version=__version__,
    )
    app.state.device_authorization_service = service
    app.state.verification_handler = DeviceVerificationHandler(service)
    app.state.client_repository = client_repository
    app.state.token_issuer = token_issuer
    app.include_router(oauth_device_router)
    return app


def _get_impl(cls_path: str) -> type:
    module_name, _, class_name = cls_path.rpartition('.')
    if not module_name:
        raise ValueError(f'Expected a dotted class path, got {cls_path!r}')
    return getattr(importlib.import_module(module_name), class_name)


def build_app_from_env() -> FastAPI:
    """Assemble the app from environment variables.

    TOKEN_ISSUER_CLS names the TokenIssuer implementation to use.
    """
    config = config_from_env()
    engine = create_db_engine(config.database_url)
    if config.database_url.startswith('sqlite'):
        init_db(engine)
    store = SQLDeviceAuthorizationStore(create_session_maker(engine))

    token_issuer_cls = os.getenv('TOKEN_ISSUER_CLS')
    if not token_issuer_cls:
        raise ValueError('TOKEN_ISSUER_CLS must name a TokenIssuer implementation')
    token_issuer = _get_impl(token_issuer_cls)()

    client_repository = InMemoryClientRepository.from_env()
    logger.info(
        'Device flow server configured',
        extra={
            'clients': len(client_repository.clients),
            'token_issuer': token_issuer_cls,
        },
    )
    return create_app(config, store, client_repository, token_issuer)

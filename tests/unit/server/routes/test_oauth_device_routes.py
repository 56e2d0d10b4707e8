"""Unit tests for the OAuth 2.0 Device Flow endpoints."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from device_flow.core.logger import device_flow_logger
from device_flow.server.app import create_app
from device_flow.server.client_auth import (
    DEVICE_CODE_GRANT_TYPE,
    InMemoryClientRepository,
    OAuthClient,
)
from device_flow.server.token_issuer import IssuedTokens
from device_flow.server.user_auth import get_user_id
from device_flow.storage.base import Base


@pytest.fixture
def token_issuer():
    issuer = MagicMock()
    issuer.issue_tokens = AsyncMock(
        return_value=IssuedTokens(access_token='access-123', expires_in=3600)
    )
    return issuer


@pytest.fixture
def app(config, store, clock, token_issuer):
    clients = InMemoryClientRepository(
        [
            OAuthClient(client_id='c1'),
            OAuthClient(client_id='web', grant_types=['authorization_code']),
        ]
    )
    app = create_app(config, store, clients, token_issuer, clock=clock)
    app.dependency_overrides[get_user_id] = lambda: 'user-1'
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def start_flow(client, scope='read write'):
    response = client.post(
        '/oauth/device/authorize', data={'client_id': 'c1', 'scope': scope}
    )
    assert response.status_code == 200
    return response.json()


def poll(client, device_code, client_id='c1'):
    return client.post(
        '/oauth/device/token',
        data={
            'grant_type': DEVICE_CODE_GRANT_TYPE,
            'device_code': device_code,
            'client_id': client_id,
        },
    )


class TestDeviceAuthorization:
    def test_success(self, client):
        response = client.post(
            '/oauth/device/authorize', data={'client_id': 'c1', 'scope': 'read'}
        )

        assert response.status_code == 200
        assert response.headers['cache-control'] == 'no-store'
        body = response.json()
        assert body['device_code']
        assert len(body['user_code']) == 9
        assert body['verification_uri'] == 'http://testserver/oauth/device/verify'
        assert body['verification_uri_complete'] == (
            f'http://testserver/oauth/device/verify?user_code={body["user_code"]}'
        )
        assert body['expires_in'] == 1800
        assert body['interval'] == 5

    def test_missing_client_id(self, client):
        response = client.post('/oauth/device/authorize', data={})

        assert response.status_code == 400
        assert response.json()['error'] == 'invalid_request'

    def test_unknown_client(self, client):
        response = client.post('/oauth/device/authorize', data={'client_id': 'nope'})

        assert response.status_code == 400
        assert response.json()['error'] == 'invalid_client'

    def test_client_without_device_grant(self, client):
        response = client.post('/oauth/device/authorize', data={'client_id': 'web'})

        assert response.status_code == 400
        assert response.json()['error'] == 'unauthorized_client'

    def test_generation_failure(self, client, app):
        service = app.state.device_authorization_service
        service.store = MagicMock()
        service.store.get_by_device_code.return_value = MagicMock()

        response = client.post('/oauth/device/authorize', data={'client_id': 'c1'})

        assert response.status_code == 500
        assert response.json()['error'] == 'server_error'


class TestDeviceToken:
    def test_pending(self, client):
        flow = start_flow(client)

        response = poll(client, flow['device_code'])

        assert response.status_code == 400
        assert response.headers['cache-control'] == 'no-store'
        assert response.json() == {
            'error': 'authorization_pending',
            'error_description': 'User has not yet completed authorization',
        }

    def test_slow_down_includes_interval(self, client):
        flow = start_flow(client)
        poll(client, flow['device_code'])

        response = poll(client, flow['device_code'])

        assert response.status_code == 400
        assert response.json()['error'] == 'slow_down'
        assert response.json()['interval'] == 10

    def test_unknown_device_code(self, client):
        response = poll(client, 'no-such-code')

        assert response.status_code == 400
        assert response.json()['error'] == 'expired_token'

    def test_expired(self, client, clock):
        flow = start_flow(client)
        clock.advance(1800)

        response = poll(client, flow['device_code'])

        assert response.json()['error'] == 'expired_token'

    def test_missing_parameters(self, client):
        response = client.post(
            '/oauth/device/token', data={'grant_type': DEVICE_CODE_GRANT_TYPE}
        )

        assert response.status_code == 400
        assert response.json()['error'] == 'invalid_request'

    def test_wrong_grant_type(self, client):
        response = client.post(
            '/oauth/device/token',
            data={'grant_type': 'password', 'device_code': 'abc'},
        )

        assert response.status_code == 400
        assert response.json()['error'] == 'unsupported_grant_type'

    def test_denied(self, client):
        flow = start_flow(client)
        client.post(
            '/oauth/device/verify',
            data={'user_code': flow['user_code'], 'action': 'deny'},
        )

        response = poll(client, flow['device_code'])

        assert response.json()['error'] == 'access_denied'

    def test_authorized_issues_tokens(self, client, token_issuer):
        flow = start_flow(client)
        client.post('/oauth/device/verify', data={'user_code': flow['user_code']})

        response = poll(client, flow['device_code'])

        assert response.status_code == 200
        assert response.headers['cache-control'] == 'no-store'
        assert response.json() == {
            'access_token': 'access-123',
            'token_type': 'Bearer',
            'expires_in': 3600,
        }
        token_issuer.issue_tokens.assert_awaited_once_with(
            client_id='c1', user_identifier='user-1', scopes=('read', 'write')
        )

    def test_device_code_is_single_use(self, client, token_issuer, clock):
        flow = start_flow(client)
        client.post('/oauth/device/verify', data={'user_code': flow['user_code']})
        assert poll(client, flow['device_code']).status_code == 200
        clock.advance(5)

        response = poll(client, flow['device_code'])

        assert response.status_code == 400
        assert response.json()['error'] == 'expired_token'
        token_issuer.issue_tokens.assert_awaited_once()

    def test_store_errors_do_not_log_codes(self, client, engine, caplog):
        flow = start_flow(client)
        Base.metadata.drop_all(engine)

        with patch.object(device_flow_logger, 'propagate', True):
            with caplog.at_level(logging.ERROR):
                response = poll(client, flow['device_code'])

        assert response.status_code == 500
        assert response.json()['error'] == 'server_error'
        assert 'Error in device token' in caplog.text
        assert flow['device_code'] not in caplog.text

    def test_token_failure_revokes_authorization(self, client, token_issuer):
        token_issuer.issue_tokens.side_effect = RuntimeError('issuer down')
        flow = start_flow(client)
        client.post('/oauth/device/verify', data={'user_code': flow['user_code']})

        response = poll(client, flow['device_code'])

        assert response.status_code == 500
        assert response.json() == {
            'error': 'server_error',
            'error_description': 'Failed to issue tokens',
        }
        assert poll(client, flow['device_code']).json()['error'] == 'access_denied'


class TestDeviceVerification:
    def test_authorize(self, client):
        flow = start_flow(client)

        response = client.post(
            '/oauth/device/verify', data={'user_code': flow['user_code'].lower()}
        )

        assert response.status_code == 200
        body = response.json()
        assert body['client_id'] == 'c1'
        assert body['scopes'] == ['read', 'write']
        assert 'authorized successfully' in body['message']

    def test_deny(self, client):
        flow = start_flow(client)

        response = client.post(
            '/oauth/device/verify',
            data={'user_code': flow['user_code'], 'action': 'deny'},
        )

        assert response.status_code == 200
        assert 'denied' in response.json()['message']

    def test_requires_authentication(self, client, app):
        app.dependency_overrides.pop(get_user_id)
        flow = start_flow(client)

        response = client.post(
            '/oauth/device/verify', data={'user_code': flow['user_code']}
        )

        assert response.status_code == 401
        assert response.json()['detail'] == 'Authentication required'

    @pytest.mark.parametrize(
        'user_code,detail',
        [
            ('', 'Device code is required.'),
            ('ABC', 'Invalid device code format. Please check the code and try again.'),
            (
                'BCDF-2345',
                'Device code not found. Please check the code and try again.',
            ),
        ],
    )
    def test_bad_codes(self, client, user_code, detail):
        response = client.post('/oauth/device/verify', data={'user_code': user_code})

        assert response.status_code == 400
        assert response.json()['detail'] == detail

    def test_expired(self, client, clock):
        flow = start_flow(client)
        clock.advance(1800)

        response = client.post(
            '/oauth/device/verify', data={'user_code': flow['user_code']}
        )

        assert response.status_code == 400
        assert 'expired' in response.json()['detail']

    def test_already_processed(self, client):
        flow = start_flow(client)
        client.post('/oauth/device/verify', data={'user_code': flow['user_code']})

        response = client.post(
            '/oauth/device/verify', data={'user_code': flow['user_code']}
        )

        assert response.status_code == 400
        assert (
            response.json()['detail'] == 'This device code has already been processed.'
        )

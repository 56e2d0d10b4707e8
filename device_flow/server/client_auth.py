"""OAuth client lookup for the device authorization endpoint."""

import os
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

DEVICE_CODE_GRANT_TYPE = 'urn:ietf:params:oauth:grant-type:device_code'


class OAuthClient(BaseModel):
    client_id: str
    grant_types: list[str] = Field(default_factory=lambda: [DEVICE_CODE_GRANT_TYPE])

    def supports_device_flow(self) -> bool:
        return DEVICE_CODE_GRANT_TYPE in self.grant_types


class ClientRepository(ABC):
    @abstractmethod
    def get_client(self, client_id: str) -> OAuthClient | None:
        """Resolve a client identifier, or None if the client is unknown."""


class InMemoryClientRepository(ClientRepository):
    """Fixed set of clients, configured at startup."""

    def __init__(self, clients: list[OAuthClient] | None = None):
        self.clients = {client.client_id: client for client in clients or []}

    def get_client(self, client_id: str) -> OAuthClient | None:
        return self.clients.get(client_id)

    @classmethod
    def from_env(cls) -> 'InMemoryClientRepository':
        """Build from OAUTH_CLIENT_IDS, a comma separated list of device flow clients."""
        client_ids = [
            client_id.strip()
            for client_id in os.getenv('OAUTH_CLIENT_IDS', '').split(',')
            if client_id.strip()
        ]
        return cls([OAuthClient(client_id=client_id) for client_id in client_ids])

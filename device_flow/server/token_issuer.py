from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel


class IssuedTokens(BaseModel):
    access_token: str
    token_type: str = 'Bearer'
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    scope: Optional[str] = None


class TokenIssuer(ABC):
    """Mints tokens once a device authorization has been approved.

    Called at most once per approved device code: the approval is consumed by
    the poll that triggers issuance.
    """

    @abstractmethod
    async def issue_tokens(
        self, client_id: str, user_identifier: str, scopes: tuple[str, ...]
    ) -> IssuedTokens:
        """Issue tokens for `user_identifier` on behalf of `client_id`."""

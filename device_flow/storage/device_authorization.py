"""Device authorization records for the OAuth 2.0 Device Flow."""

from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy import JSON, BigInteger, Column, Integer, String

from device_flow.storage.base import Base


class DeviceAuthorizationStatus(Enum):
    """Status of a device authorization request.

    Expiry is not a status: it is derived from `expires_at` at read time.
    """

    PENDING = 'pending'
    AUTHORIZED = 'authorized'
    # Tokens were handed out; the device code cannot be redeemed again
    CONSUMED = 'consumed'
    DENIED = 'denied'


@dataclass(frozen=True)
class DeviceAuthorization:
    """A device authorization request, exchanged by value with the store.

    Timestamps are integer seconds since the epoch. `version` is bumped by the
    store on every successful update and used for compare-and-set.
    """

    device_code: str = field(repr=False)
    user_code: str = field(repr=False)
    client_id: str
    created_at: int
    expires_at: int
    polling_interval: int
    requested_scopes: tuple[str, ...] = ()
    status: DeviceAuthorizationStatus = DeviceAuthorizationStatus.PENDING
    user_identifier: str | None = None
    authorized_at: int | None = None
    last_polled_at: int | None = None
    version: int = 0

    def __post_init__(self) -> None:
        if self.expires_at <= self.created_at:
            raise ValueError('expires_at must be after created_at')
        approved = self.authorized or self.consumed
        if approved and not self.user_identifier:
            raise ValueError('an approved device code needs a user_identifier')
        if not approved and self.user_identifier is not None:
            raise ValueError('only approved device codes carry a user_identifier')

    @property
    def authorized(self) -> bool:
        return self.status == DeviceAuthorizationStatus.AUTHORIZED

    @property
    def consumed(self) -> bool:
        return self.status == DeviceAuthorizationStatus.CONSUMED

    @property
    def denied(self) -> bool:
        return self.status == DeviceAuthorizationStatus.DENIED

    def is_expired(self, now: int) -> bool:
        return now >= self.expires_at

    def expires_in(self, now: int) -> int:
        return max(self.expires_at - now, 0)


@dataclass(frozen=True)
class DeviceAuthorizationStatistics:
    active: int = 0
    authorized: int = 0
    consumed: int = 0
    denied: int = 0
    expired: int = 0
    total: int = 0


class DeviceAuthorizationRow(Base):  # type: ignore
    """Persistent form of a DeviceAuthorization.

    Unique indexes on device_code and user_code are the authoritative
    uniqueness guarantee; `version` backs the store's compare-and-set.
    """

    __tablename__ = 'device_authorizations'

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_code = Column(String(128), unique=True, nullable=False, index=True)
    user_code = Column(String(32), unique=True, nullable=False, index=True)
    client_id = Column(String(255), nullable=False)
    scopes = Column(JSON, nullable=False, default=list)
    status = Column(
        String(32), nullable=False, default=DeviceAuthorizationStatus.PENDING.value
    )
    user_identifier = Column(String(255), nullable=True)

    # Seconds since the epoch
    created_at = Column(BigInteger, nullable=False)
    expires_at = Column(BigInteger, nullable=False, index=True)
    authorized_at = Column(BigInteger, nullable=True, index=True)

    # Polling discipline (RFC 8628 section 3.5)
    last_polled_at = Column(BigInteger, nullable=True)
    polling_interval = Column(Integer, nullable=False, default=5)

    version = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<DeviceAuthorizationRow(id={self.id}, client_id='{self.client_id}', status='{self.status}')>"

    @classmethod
    def from_value(cls, record: DeviceAuthorization) -> 'DeviceAuthorizationRow':
        return cls(
            device_code=record.device_code,
            user_code=record.user_code,
            client_id=record.client_id,
            scopes=list(record.requested_scopes),
            status=record.status.value,
            user_identifier=record.user_identifier,
            created_at=record.created_at,
            expires_at=record.expires_at,
            authorized_at=record.authorized_at,
            last_polled_at=record.last_polled_at,
            polling_interval=record.polling_interval,
            version=record.version,
        )

    def to_value(self) -> DeviceAuthorization:
        return DeviceAuthorization(
            device_code=self.device_code,
            user_code=self.user_code,
            client_id=self.client_id,
            requested_scopes=tuple(self.scopes or ()),
            status=DeviceAuthorizationStatus(self.status),
            user_identifier=self.user_identifier,
            created_at=self.created_at,
            expires_at=self.expires_at,
            authorized_at=self.authorized_at,
            last_polled_at=self.last_polled_at,
            polling_interval=self.polling_interval,
            version=self.version,
        )

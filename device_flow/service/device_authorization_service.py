"""Lifecycle of OAuth 2.0 device authorizations (RFC 8628).

The service owns the state machine but keeps no state of its own: every
transition is a compare-and-set against the store, so any number of service
instances can share one store.
"""

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

from device_flow.core.config import DeviceFlowConfig
from device_flow.core.exceptions import (
    AccessDenied,
    AlreadyAuthorized,
    AuthenticationRequired,
    DuplicateCodeError,
    Expired,
    GenerationExhausted,
    NotFound,
    StoreConflict,
)
from device_flow.core.logger import device_flow_logger as logger
from device_flow.core.logger import mask_code
from device_flow.service.code_generator import CodeGenerator
from device_flow.storage.device_authorization import (
    DeviceAuthorization,
    DeviceAuthorizationStatistics,
    DeviceAuthorizationStatus,
)
from device_flow.storage.device_authorization_store import DeviceAuthorizationStore


class PollState(Enum):
    """Outcome of a token poll, named after the RFC 8628 error codes."""

    AUTHORIZATION_PENDING = 'authorization_pending'
    SLOW_DOWN = 'slow_down'
    EXPIRED_TOKEN = 'expired_token'
    ACCESS_DENIED = 'access_denied'
    AUTHORIZED = 'authorized'


@dataclass(frozen=True)
class PollResult:
    state: PollState
    retry_after: int | None = None
    # Only set when state is AUTHORIZED
    record: DeviceAuthorization | None = None


@dataclass(frozen=True)
class IssuedDeviceAuthorization:
    device_code: str
    user_code: str  # formatted for display
    expires_in: int
    interval: int


@dataclass(frozen=True)
class CleanupResult:
    expired_deleted: int
    retained_authorized_deleted: int
    execution_time_ms: float = 0.0

    @property
    def total_deleted(self) -> int:
        return self.expired_deleted + self.retained_authorized_deleted


def parse_scope(scope: str | None) -> tuple[str, ...]:
    """Split a space-delimited scope string, dropping duplicates but keeping order."""
    if not scope:
        return ()
    return tuple(dict.fromkeys(scope.split()))


class DeviceAuthorizationService:
    def __init__(
        self,
        store: DeviceAuthorizationStore,
        config: DeviceFlowConfig,
        code_generator: CodeGenerator | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.config = config
        self.code_generator = code_generator or CodeGenerator(config)
        self.clock = clock

    def _now(self) -> int:
        return int(self.clock())

    # ── Issuance ────────────────────────────────────────────────────

    def issue_device_authorization(
        self, client_id: str, scope: str | None = None
    ) -> IssuedDeviceAuthorization:
        """Create a pending device authorization for `client_id`.

        Codes are checked against the store before insert; the store's unique
        constraint still has the final say, and a rejected insert just uses up
        another attempt.

        Raises:
            GenerationExhausted: If no unused code pair was found in time
            CryptoUnavailable: If secure randomness is not available
        """
        scopes = parse_scope(scope)
        max_attempts = self.config.max_generation_attempts

        for attempt in range(1, max_attempts + 1):
            device_code = self.code_generator.generate_device_code()
            user_code = self.code_generator.generate_user_code()

            if self.store.get_by_device_code(
                device_code
            ) or self.store.get_by_user_code(user_code):
                logger.debug('Device code collision', extra={'attempt': attempt})
                continue

            now = self._now()
            record = DeviceAuthorization(
                device_code=device_code,
                user_code=user_code,
                client_id=client_id,
                requested_scopes=scopes,
                created_at=now,
                expires_at=now + self.config.device_code_lifetime,
                polling_interval=self.config.polling_interval,
            )
            try:
                self.store.create(record)
            except DuplicateCodeError:
                logger.debug(
                    'Device code insert rejected by unique constraint',
                    extra={'attempt': attempt},
                )
                continue

            logger.info(
                'Device authorization issued',
                extra={
                    'client_id': client_id,
                    'user_code': mask_code(user_code),
                    'attempts': attempt,
                },
            )
            return IssuedDeviceAuthorization(
                device_code=device_code,
                user_code=self.code_generator.format_user_code(user_code),
                expires_in=record.expires_in(now),
                interval=record.polling_interval,
            )

        logger.error(
            'Failed to generate unique device codes',
            extra={'client_id': client_id, 'attempts': max_attempts},
        )
        raise GenerationExhausted(max_attempts)

    # ── Polling ─────────────────────────────────────────────────────

    def validate_poll(
        self, device_code: str, client_id: str | None = None
    ) -> PollResult:
        """Evaluate one token poll and record it.

        Unknown, expired and already redeemed codes, and codes owned by another
        client, all report expired_token so a client cannot tell them apart.
        An approval is handed out once: the poll that reports AUTHORIZED has
        moved the record to CONSUMED.
        """
        record = None
        for _ in range(2):
            now = self._now()
            record = self.store.get_by_device_code(device_code)
            if record is None or (
                client_id is not None and record.client_id != client_id
            ):
                logger.info(
                    'Poll for unknown device code',
                    extra={'device_code': mask_code(device_code)},
                )
                return PollResult(PollState.EXPIRED_TOKEN)

            if record.is_expired(now):
                return PollResult(PollState.EXPIRED_TOKEN)

            try:
                return self._record_poll(record, now)
            except StoreConflict:
                # Another poll or a verification wrote first; look again
                continue

        # Two concurrent writers in a row means the client is polling in parallel
        logger.warning(
            'Concurrent polls for device code',
            extra={'device_code': mask_code(device_code)},
        )
        return PollResult(PollState.SLOW_DOWN, retry_after=record.polling_interval)

    def _record_poll(self, record: DeviceAuthorization, now: int) -> PollResult:
        if record.denied:
            self.store.update(replace(record, last_polled_at=now))
            return PollResult(PollState.ACCESS_DENIED)

        if record.consumed:
            # Redeemed already; look the same as an unknown code
            logger.warning(
                'Poll for consumed device code',
                extra={'device_code': mask_code(record.device_code)},
            )
            return PollResult(PollState.EXPIRED_TOKEN)

        if record.authorized:
            # Only the poll that wins this write gets the approval
            stored = self.store.update(
                replace(
                    record,
                    status=DeviceAuthorizationStatus.CONSUMED,
                    last_polled_at=now,
                )
            )
            return PollResult(PollState.AUTHORIZED, record=stored)

        too_fast = (
            record.last_polled_at is not None
            and now - record.last_polled_at < record.polling_interval
        )
        if too_fast:
            # RFC 8628 section 3.5: increase the interval for this device code
            new_interval = min(
                record.polling_interval + self.config.slow_down_increment,
                self.config.max_polling_interval,
            )
            self.store.update(
                replace(record, last_polled_at=now, polling_interval=new_interval)
            )
            logger.warning(
                'Client polling too fast, returning slow_down',
                extra={
                    'device_code': mask_code(record.device_code),
                    'new_interval': new_interval,
                },
            )
            return PollResult(PollState.SLOW_DOWN, retry_after=new_interval)

        self.store.update(replace(record, last_polled_at=now))
        return PollResult(
            PollState.AUTHORIZATION_PENDING, retry_after=record.polling_interval
        )

    # ── Verification ────────────────────────────────────────────────

    def authorize(self, user_code: str, user_identifier: str) -> DeviceAuthorization:
        """Bind `user_identifier` to the pending device authorization for `user_code`.

        Raises:
            NotFound, Expired, AlreadyAuthorized, AccessDenied
        """
        if not user_identifier:
            raise AuthenticationRequired('A user identifier is required')

        def approve(record: DeviceAuthorization, now: int) -> DeviceAuthorization:
            return replace(
                record,
                status=DeviceAuthorizationStatus.AUTHORIZED,
                user_identifier=user_identifier,
                authorized_at=now,
            )

        stored = self._transition(user_code, approve)
        logger.info(
            'Device authorized',
            extra={
                'client_id': stored.client_id,
                'user_id': user_identifier,
                'user_code': mask_code(stored.user_code),
            },
        )
        return stored

    def deny(self, user_code: str) -> DeviceAuthorization:
        """Mark the pending device authorization for `user_code` as denied.

        Raises:
            NotFound, Expired, AlreadyAuthorized, AccessDenied
        """

        def reject(record: DeviceAuthorization, now: int) -> DeviceAuthorization:
            return replace(record, status=DeviceAuthorizationStatus.DENIED)

        stored = self._transition(user_code, reject)
        logger.info(
            'Device authorization denied',
            extra={
                'client_id': stored.client_id,
                'user_code': mask_code(stored.user_code),
            },
        )
        return stored

    def _transition(
        self,
        user_code: str,
        apply: Callable[[DeviceAuthorization, int], DeviceAuthorization],
    ) -> DeviceAuthorization:
        normalized = self.code_generator.normalize_user_code(user_code)
        for _ in range(2):
            now = self._now()
            record = self._get_pending(normalized, now)
            try:
                return self.store.update(apply(record, now))
            except StoreConflict:
                logger.info(
                    'Verification raced with another writer, retrying',
                    extra={'user_code': mask_code(normalized)},
                )

        # Still losing after a retry: report the state the winner left behind
        record = self.store.get_by_user_code(normalized)
        if record is None:
            raise NotFound('Device code not found')
        if record.denied:
            raise AccessDenied('Device authorization was denied')
        raise AlreadyAuthorized('Device has already been authorized')

    def _get_pending(self, user_code: str, now: int) -> DeviceAuthorization:
        record = self.store.get_by_user_code(user_code)
        if record is None:
            logger.info(
                'Verification for unknown user code',
                extra={'user_code': mask_code(user_code)},
            )
            raise NotFound('Device code not found')
        if record.is_expired(now):
            raise Expired('Device code has expired')
        if record.authorized or record.consumed:
            raise AlreadyAuthorized('Device has already been authorized')
        if record.denied:
            raise AccessDenied('Device authorization was denied')
        return record

    def revoke(self, device_code: str) -> DeviceAuthorization:
        """Move a device authorization to the denied state and drop its user.

        Used when tokens could not be issued after approval, so the device
        never ends up authorized without credentials.
        """

        def revoke_once() -> DeviceAuthorization:
            record = self.store.get_by_device_code(device_code)
            if record is None:
                raise NotFound('Device code not found')
            return self.store.update(
                replace(
                    record,
                    status=DeviceAuthorizationStatus.DENIED,
                    user_identifier=None,
                    authorized_at=None,
                )
            )

        try:
            stored = revoke_once()
        except StoreConflict:
            stored = revoke_once()

        logger.info(
            'Device authorization revoked',
            extra={
                'client_id': stored.client_id,
                'device_code': mask_code(device_code),
            },
        )
        return stored

    # ── Maintenance ─────────────────────────────────────────────────

    def cleanup(self) -> CleanupResult:
        """Delete expired records and authorized records past the retention window.

        Safe to run repeatedly and alongside live traffic: only rows already past
        a terminal boundary are touched.
        """
        start = time.perf_counter()
        now = self._now()
        try:
            expired = self._delete_in_batches(self.store.delete_expired_before, now)
            retained = self._delete_in_batches(
                self.store.delete_authorized_before,
                now - self.config.authorized_retention_seconds,
            )
        except Exception:
            logger.exception('Device code cleanup failed')
            raise

        result = CleanupResult(
            expired_deleted=expired,
            retained_authorized_deleted=retained,
            execution_time_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        if self.config.enable_statistics_logging:
            logger.info(
                'Device code cleanup completed',
                extra={
                    'expired_deleted': result.expired_deleted,
                    'retained_authorized_deleted': result.retained_authorized_deleted,
                    'batch_size': self.config.cleanup_batch_size,
                    'execution_time_ms': result.execution_time_ms,
                },
            )
        return result

    def _delete_in_batches(
        self, delete_batch: Callable[[int, int], int], timestamp: int
    ) -> int:
        batch_size = self.config.cleanup_batch_size
        total = 0
        while True:
            deleted = delete_batch(timestamp, batch_size)
            total += deleted
            if deleted < batch_size:
                return total

    def get_statistics(self) -> DeviceAuthorizationStatistics:
        statistics = self.store.count_statistics(self._now())
        if self.config.enable_statistics_logging:
            logger.debug(
                'Device code statistics',
                extra={
                    'active': statistics.active,
                    'authorized': statistics.authorized,
                    'consumed': statistics.consumed,
                    'denied': statistics.denied,
                    'expired': statistics.expired,
                    'total': statistics.total,
                },
            )
        return statistics

"""SQLAlchemy-backed device authorization store."""

from dataclasses import dataclass, replace

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from device_flow.core.exceptions import DuplicateCodeError, StoreConflict
from device_flow.core.logger import device_flow_logger as logger
from device_flow.core.logger import mask_code
from device_flow.storage.device_authorization import (
    DeviceAuthorization,
    DeviceAuthorizationRow,
    DeviceAuthorizationStatistics,
    DeviceAuthorizationStatus,
)
from device_flow.storage.device_authorization_store import DeviceAuthorizationStore

APPROVED_STATUSES = (
    DeviceAuthorizationStatus.AUTHORIZED.value,
    DeviceAuthorizationStatus.CONSUMED.value,
)


@dataclass
class SQLDeviceAuthorizationStore(DeviceAuthorizationStore):
    session_maker: sessionmaker

    def create(self, record: DeviceAuthorization) -> DeviceAuthorization:
        row = DeviceAuthorizationRow.from_value(record)
        try:
            with self.session_maker() as session:
                session.add(row)
                session.commit()
        except IntegrityError as e:
            # Unique index on device_code or user_code rejected the insert
            raise DuplicateCodeError('Device code or user code already exists') from e
        return record

    def get_by_device_code(self, device_code: str) -> DeviceAuthorization | None:
        with self.session_maker() as session:
            row = (
                session.query(DeviceAuthorizationRow)
                .filter_by(device_code=device_code)
                .first()
            )
            return row.to_value() if row else None

    def get_by_user_code(self, user_code: str) -> DeviceAuthorization | None:
        with self.session_maker() as session:
            row = (
                session.query(DeviceAuthorizationRow)
                .filter_by(user_code=user_code)
                .first()
            )
            return row.to_value() if row else None

    def update(self, record: DeviceAuthorization) -> DeviceAuthorization:
        new_version = record.version + 1
        with self.session_maker() as session:
            result = session.execute(
                update(DeviceAuthorizationRow)
                .where(
                    DeviceAuthorizationRow.device_code == record.device_code,
                    DeviceAuthorizationRow.version == record.version,
                )
                .values(
                    status=record.status.value,
                    user_identifier=record.user_identifier,
                    authorized_at=record.authorized_at,
                    last_polled_at=record.last_polled_at,
                    polling_interval=record.polling_interval,
                    version=new_version,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                logger.info(
                    'Conditional update lost a race',
                    extra={
                        'device_code': mask_code(record.device_code),
                        'expected_version': record.version,
                    },
                )
                raise StoreConflict('Device authorization was modified concurrently')
            session.commit()
        return replace(record, version=new_version)

    def delete_expired_before(self, timestamp: int, batch_size: int) -> int:
        return self._delete_batch(
            DeviceAuthorizationRow.expires_at <= timestamp, batch_size
        )

    def delete_authorized_before(self, timestamp: int, batch_size: int) -> int:
        return self._delete_batch(
            DeviceAuthorizationRow.status.in_(APPROVED_STATUSES)
            & (DeviceAuthorizationRow.authorized_at < timestamp),
            batch_size,
        )

    def _delete_batch(self, condition, batch_size: int) -> int:
        with self.session_maker() as session:
            ids = (
                session.execute(
                    select(DeviceAuthorizationRow.id)
                    .where(condition)
                    .order_by(DeviceAuthorizationRow.id)
                    .limit(batch_size)
                )
                .scalars()
                .all()
            )
            if not ids:
                return 0
            result = session.execute(
                delete(DeviceAuthorizationRow)
                .where(DeviceAuthorizationRow.id.in_(ids))
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return result.rowcount

    def count_statistics(self, now: int) -> DeviceAuthorizationStatistics:
        row = DeviceAuthorizationRow
        with self.session_maker() as session:

            def count(*conditions) -> int:
                query = select(func.count(row.id))
                if conditions:
                    query = query.where(*conditions)
                return session.execute(query).scalar() or 0

            return DeviceAuthorizationStatistics(
                active=count(
                    row.status == DeviceAuthorizationStatus.PENDING.value,
                    row.expires_at > now,
                ),
                authorized=count(
                    row.status == DeviceAuthorizationStatus.AUTHORIZED.value
                ),
                consumed=count(row.status == DeviceAuthorizationStatus.CONSUMED.value),
                denied=count(row.status == DeviceAuthorizationStatus.DENIED.value),
                expired=count(row.expires_at <= now),
                total=count(),
            )

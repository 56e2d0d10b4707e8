from abc import ABC, abstractmethod

from device_flow.storage.device_authorization import (
    DeviceAuthorization,
    DeviceAuthorizationStatistics,
)


class DeviceAuthorizationStore(ABC):
    """Persistence contract for device authorizations.

    Implementations must be safe to share between processes: uniqueness of
    device_code and user_code is enforced on insert, and `update` is a
    compare-and-set on `version`.
    """

    @abstractmethod
    def create(self, record: DeviceAuthorization) -> DeviceAuthorization:
        """Insert a new record.

        Raises:
            DuplicateCodeError: If the device code or user code is already stored
        """

    @abstractmethod
    def get_by_device_code(self, device_code: str) -> DeviceAuthorization | None:
        """Get a record by device code."""

    @abstractmethod
    def get_by_user_code(self, user_code: str) -> DeviceAuthorization | None:
        """Get a record by normalized user code."""

    @abstractmethod
    def update(self, record: DeviceAuthorization) -> DeviceAuthorization:
        """Persist the mutable fields of `record` if the stored version still matches.

        Returns:
            The stored record with its new version

        Raises:
            StoreConflict: If the record was changed or deleted concurrently
        """

    @abstractmethod
    def delete_expired_before(self, timestamp: int, batch_size: int) -> int:
        """Delete up to `batch_size` records with expires_at at or before `timestamp`."""

    @abstractmethod
    def delete_authorized_before(self, timestamp: int, batch_size: int) -> int:
        """Delete up to `batch_size` approved records authorized before `timestamp`.

        Covers both authorized and consumed records.
        """

    @abstractmethod
    def count_statistics(self, now: int) -> DeviceAuthorizationStatistics:
        """Count records by lifecycle state as of `now`."""

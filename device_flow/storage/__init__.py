"""Persistent storage for device authorizations."""

from device_flow.storage.device_authorization import (
    DeviceAuthorization,
    DeviceAuthorizationStatistics,
    DeviceAuthorizationStatus,
)
from device_flow.storage.device_authorization_store import DeviceAuthorizationStore
from device_flow.storage.sql_device_authorization_store import (
    SQLDeviceAuthorizationStore,
)

__all__ = [
    'DeviceAuthorization',
    'DeviceAuthorizationStatistics',
    'DeviceAuthorizationStatus',
    'DeviceAuthorizationStore',
    'SQLDeviceAuthorizationStore',
]

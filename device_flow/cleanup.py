"""Periodic maintenance for device authorizations.

Meant to be run by cron or any other scheduler:

    python -m device_flow.cleanup
    python -m device_flow.cleanup --stats
"""

import argparse
import json
from dataclasses import asdict

from device_flow.core.config import config_from_env
from device_flow.core.logger import device_flow_logger as logger
from device_flow.service.device_authorization_service import (
    DeviceAuthorizationService,
)
from device_flow.storage.database import create_db_engine, create_session_maker
from device_flow.storage.sql_device_authorization_store import (
    SQLDeviceAuthorizationStore,
)


def build_service() -> DeviceAuthorizationService:
    config = config_from_env()
    engine = create_db_engine(config.database_url)
    store = SQLDeviceAuthorizationStore(create_session_maker(engine))
    return DeviceAuthorizationService(store, config)


def run(service: DeviceAuthorizationService, stats: bool = False) -> dict:
    result = service.cleanup()
    report: dict = {
        'expired_deleted': result.expired_deleted,
        'retained_authorized_deleted': result.retained_authorized_deleted,
        'total_deleted': result.total_deleted,
        'execution_time_ms': result.execution_time_ms,
    }
    if stats:
        report['statistics'] = asdict(service.get_statistics())
    return report


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description='Delete expired and old authorized device codes.'
    )
    parser.add_argument(
        '--stats',
        action='store_true',
        help='Also print device code statistics after cleanup',
    )
    args = parser.parse_args(argv)

    try:
        report = run(build_service(), stats=args.stats)
    except Exception:
        logger.exception('Device code cleanup run failed')
        return 1

    print(json.dumps(report))
    return 0


if __name__ == '__main__':
    raise SystemExit(main())

"""Logging setup for the device flow service.

All modules log through ``device_flow_logger`` and pass structured context
with ``extra={...}``. Set ``LOG_JSON=1`` to emit one JSON object per line.
"""

import hashlib
import json
import logging
import os
import sys
from datetime import UTC, datetime
from typing import Any

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
LOG_JSON = os.getenv('LOG_JSON', '0') in ('1', 'true', 'True')

# Attributes present on every LogRecord; anything else came in through `extra`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord('', 0, '', 0, '', None, None)).keys()
) | {'message', 'asctime'}


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith('_')
    }


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            'timestamp': datetime.now(UTC).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'module': record.module,
            'message': record.getMessage(),
        }
        payload.update(_extra_fields(record))
        if record.exc_info:
            payload['exc_info'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ExtraFormatter(logging.Formatter):
    """Plain text formatter that appends `extra` fields as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        extra = _extra_fields(record)
        if extra:
            pairs = ' '.join(f'{key}={value}' for key, value in extra.items())
            message = f'{message} | {pairs}'
        return message


def _build_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if LOG_JSON:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            ExtraFormatter('%(asctime)s - %(name)s:%(levelname)s: %(message)s')
        )
    return handler


def get_logger(name: str = 'device_flow') -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(_build_handler())
        logger.setLevel(LOG_LEVEL)
        logger.propagate = False
    return logger


def get_uvicorn_json_log_config() -> dict:
    """Uvicorn `log_config` that routes error and access logs through JsonFormatter."""
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'json': {'()': 'device_flow.core.logger.JsonFormatter'},
        },
        'handlers': {
            'default': {
                'class': 'logging.StreamHandler',
                'formatter': 'json',
                'stream': 'ext://sys.stdout',
            },
        },
        'loggers': {
            'uvicorn': {'handlers': ['default'], 'level': LOG_LEVEL},
            'uvicorn.error': {
                'handlers': ['default'],
                'level': LOG_LEVEL,
                'propagate': False,
            },
            'uvicorn.access': {
                'handlers': ['default'],
                'level': LOG_LEVEL,
                'propagate': False,
            },
        },
    }


def mask_code(code: str | None) -> str:
    """Return a short, non-reversible fingerprint of a device or user code."""
    if not code:
        return '***EMPTY***'
    return f'code_{hashlib.sha256(code.encode()).hexdigest()[:8]}'


device_flow_logger = get_logger()

import os

import uvicorn

from device_flow.core.logger import get_uvicorn_json_log_config


def main():
    # When LOG_JSON=1, configure Uvicorn to emit JSON logs for error/access
    log_config = None
    if os.getenv('LOG_JSON', '0') in ('1', 'true', 'True'):
        log_config = get_uvicorn_json_log_config()

    uvicorn.run(
        'device_flow.server.listen:app',
        host=os.environ.get('HOST') or '0.0.0.0',
        port=int(os.environ.get('PORT') or '3000'),
        log_level='debug' if os.environ.get('DEBUG') else 'info',
        log_config=log_config,
        use_colors=False if log_config else None,
    )


if __name__ == '__main__':
    main()

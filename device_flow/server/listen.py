from device_flow.server.app import build_app_from_env

app = build_app_from_env()

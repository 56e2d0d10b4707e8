from device_flow.core.config.device_flow_config import (
    DeviceFlowConfig,
    config_from_env,
)

__all__ = ['DeviceFlowConfig', 'config_from_env']

from .config_loader import ConfigLoader, resolve_env_vars, to_snake_case
from .config_serializer import ConfigSerializer
from .global_config_loader import GlobalConfig, load_global_config, get_global_config

__all__ = [
    'ConfigLoader',
    'ConfigSerializer',
    'GlobalConfig',
    'load_global_config',
    'get_global_config',
    'resolve_env_vars',
    'to_snake_case',
]

import yaml
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass


@dataclass
class ServerConfig:
    """HTTP API server configuration"""
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class BenchmarkConfig:
    """Benchmark aggregation settings"""
    telemetry_sample_size: int = 10
    execution_ratio: float = 0.7


@dataclass
class StorageConfig:
    """Storage configuration"""
    datastores_path: str = "./config/datastores.yaml"


@dataclass
class DefaultsConfig:
    """Fallbacks for requests that omit them"""
    database_type: str = "postgresql"


@dataclass
class GlobalConfig:
    """Global configuration for the API server and CLI"""
    server: ServerConfig
    logging: LoggingConfig
    benchmark: BenchmarkConfig
    storage: StorageConfig
    defaults: DefaultsConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GlobalConfig':
        """Create GlobalConfig from dictionary"""
        return cls(
            server=ServerConfig(**data.get('server', {})),
            logging=LoggingConfig(**data.get('logging', {})),
            benchmark=BenchmarkConfig(**data.get('benchmark', {})),
            storage=StorageConfig(**data.get('storage', {})),
            defaults=DefaultsConfig(**data.get('defaults', {}))
        )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'GlobalConfig':
        """Load GlobalConfig from YAML file"""
        path = Path(yaml_path)
        if not path.exists():
            # Return default config if file doesn't exist
            return cls.default()

        with open(path, 'r') as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})

    @classmethod
    def default(cls) -> 'GlobalConfig':
        """Return default configuration"""
        return cls(
            server=ServerConfig(),
            logging=LoggingConfig(),
            benchmark=BenchmarkConfig(),
            storage=StorageConfig(),
            defaults=DefaultsConfig()
        )


# Global instance - can be overridden
_global_config: Optional[GlobalConfig] = None

SEARCH_PATHS = [
    Path("./sqlpeek.yaml"),
    Path("./config/sqlpeek.yaml"),
    Path("/etc/sqlpeek/sqlpeek.yaml"),
]


def load_global_config(config_path: Optional[str] = None) -> GlobalConfig:
    """
    Load global configuration from YAML file.
    If no path provided, looks for sqlpeek.yaml in standard locations.
    """
    global _global_config

    if config_path:
        _global_config = GlobalConfig.from_yaml(config_path)
        return _global_config

    for path in SEARCH_PATHS:
        if path.exists():
            _global_config = GlobalConfig.from_yaml(str(path))
            return _global_config

    # Return default if no config found
    _global_config = GlobalConfig.default()
    return _global_config


def get_global_config() -> GlobalConfig:
    """Get the loaded global configuration"""
    global _global_config
    if _global_config is None:
        _global_config = load_global_config()
    return _global_config

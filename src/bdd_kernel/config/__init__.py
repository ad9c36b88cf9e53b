from .loader import load_run_config, load_yaml_config, parse_run_config, resolve_paths
from .models import FeatureSourceConfig, LocationConfig, LogConfig, RunConfig, SinkConfig

__all__ = [
    "FeatureSourceConfig",
    "LocationConfig",
    "LogConfig",
    "RunConfig",
    "SinkConfig",
    "load_run_config",
    "load_yaml_config",
    "parse_run_config",
    "resolve_paths",
]

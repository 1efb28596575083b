from .config_loader import (
    ExtractionSettings,
    get_config_path,
    get_settings,
    load_unified_config,
    reload_configs,
)

__all__ = [
    "ExtractionSettings",
    "get_config_path",
    "get_settings",
    "load_unified_config",
    "reload_configs",
]

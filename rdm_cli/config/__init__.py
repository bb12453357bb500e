"""設定管理モジュール"""

from .profile import Profile, ProfileStore
from .settings import Config, ConfigPaths, describe_source, load_config, resolve_config

__all__ = [
    "Config",
    "ConfigPaths",
    "Profile",
    "ProfileStore",
    "describe_source",
    "load_config",
    "resolve_config",
]

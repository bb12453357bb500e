"""設定管理"""

from collections.abc import Mapping
from pathlib import Path
from typing import Optional

from platformdirs import user_cache_dir, user_config_dir
from pydantic import BaseModel, Field

from ..errors import ConfigError
from .profile import ProfileStore, redact_api_key

APP_NAME = "redmine-agent-cli"
URL_ENV = "REDMINE_URL"
API_KEY_ENV = "REDMINE_API_KEY"


class ConfigPaths(BaseModel):
    """設定ファイル・キャッシュの配置場所"""

    config_dir: Path
    cache_dir: Path

    @classmethod
    def default(cls) -> "ConfigPaths":
        """OS ごとの標準ディレクトリ"""
        return cls(
            config_dir=Path(user_config_dir(APP_NAME)),
            cache_dir=Path(user_cache_dir(APP_NAME)),
        )

    @property
    def config_file(self) -> Path:
        return self.config_dir / "config.toml"

    @property
    def activity_cache_file(self) -> Path:
        return self.cache_dir / "activities.json"


class Config(BaseModel):
    """解決済みの接続設定"""

    url: str
    api_key: str
    profile_name: Optional[str] = Field(default=None)

    def redacted_api_key(self) -> str:
        return redact_api_key(self.api_key)


def _first_set(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


def resolve_config(
    cli_url: Optional[str],
    cli_api_key: Optional[str],
    store: ProfileStore,
    env: Mapping[str, str],
) -> Config:
    """CLI > 環境変数 > アクティブプロファイルの順に項目ごとに解決"""
    profile = store.get_active()
    explicit_url = _first_set(cli_url, env.get(URL_ENV))
    explicit_api_key = _first_set(cli_api_key, env.get(API_KEY_ENV))

    url = _first_set(explicit_url, profile.url if profile else None)
    api_key = _first_set(explicit_api_key, profile.api_key if profile else None)

    if not url or not api_key:
        raise ConfigError(
            "No Redmine credentials configured",
            hint=(
                f"Set {URL_ENV} and {API_KEY_ENV} environment variables, "
                "or use `rdm profile add` to create a profile."
            ),
        )

    # プロファイルが少なくとも1項目を供給した場合のみ名前を残す
    supplied_by_profile = not explicit_url or not explicit_api_key

    return Config(
        url=url,
        api_key=api_key,
        profile_name=profile.name if profile and supplied_by_profile else None,
    )


def load_config(
    cli_url: Optional[str],
    cli_api_key: Optional[str],
    paths: ConfigPaths,
    env: Mapping[str, str],
) -> Config:
    """設定を解決（プロファイルファイルは必要な場合のみ読み込む）"""
    url = _first_set(cli_url, env.get(URL_ENV))
    api_key = _first_set(cli_api_key, env.get(API_KEY_ENV))

    if url and api_key:
        store = ProfileStore()
    else:
        store = ProfileStore.load(paths.config_file)

    return resolve_config(cli_url, cli_api_key, store, env)


def describe_source(
    config: Config, cli_url: Optional[str], env: Mapping[str, str]
) -> str:
    """設定の出所を表示用に返す"""
    if config.profile_name:
        return "config file"
    if cli_url:
        return "CLI flags"
    if env.get(URL_ENV):
        return "environment variables"
    return "CLI flags"

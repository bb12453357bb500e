"""コマンド共通の状態・エラーハンドリング・出力"""

import functools
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

import typer

from ..api import RedmineClient
from ..config import Config, ConfigPaths, load_config
from ..errors import EXIT_API, RedmineCLIError, ValidationError
from ..models import parse_unsigned
from ..output.envelope import Meta
from ..output.format import OutputFormat, print_error, print_success

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    """グローバルオプションの値"""

    fmt: OutputFormat = OutputFormat.markdown
    url: Optional[str] = None
    api_key: Optional[str] = None
    debug: bool = False
    dry_run: bool = False
    paths: ConfigPaths = field(default_factory=ConfigPaths.default)
    env: Mapping[str, str] = field(default_factory=dict)

    def load_config(self) -> Config:
        return load_config(self.url, self.api_key, self.paths, self.env)


def get_state(ctx: typer.Context) -> AppState:
    if not isinstance(ctx.obj, AppState):
        ctx.obj = AppState()
    return ctx.obj


def handle_errors(func: Callable) -> Callable:
    """CLI エラーを選択中の形式で stderr に出力し、終了コードに変換"""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        ctx = kwargs.get("ctx")
        fmt = get_state(ctx).fmt if ctx is not None else OutputFormat.markdown
        try:
            return func(*args, **kwargs)
        except RedmineCLIError as e:
            logger.debug("command failed: %s - %s", func.__name__, e)
            print_error(fmt, e)
            raise typer.Exit(code=e.exit_code) from e
        except typer.Exit:
            raise
        except Exception as e:
            logger.debug("unexpected error in %s", func.__name__, exc_info=True)
            print_error(fmt, RedmineCLIError(f"Unexpected error: {e}"))
            raise typer.Exit(code=EXIT_API) from e

    return wrapper


def open_client(state: AppState) -> RedmineClient:
    """設定を解決してクライアントを生成"""
    config = state.load_config()
    logger.debug("Using Redmine at %s (profile: %s)", config.url, config.profile_name)
    return RedmineClient(config, state.dry_run)


def emit(ctx: typer.Context, data: Any, meta: Optional[Meta] = None) -> None:
    """成功結果を出力"""
    print_success(get_state(ctx).fmt, data, meta)


def parse_custom_fields(values: Optional[list[str]]) -> list[tuple[int, str]]:
    """--cf ID=VALUE の繰り返し指定を (ID, 値) のリストに変換"""
    parsed = []
    for value in values or []:
        cf_id, sep, cf_value = value.partition("=")
        field_id = parse_unsigned(cf_id.strip())
        if not sep or field_id is None:
            raise ValidationError(
                f"Invalid custom field format: '{value}'",
                hint="Use format --cf 12=value",
            )
        parsed.append((field_id, cf_value))
    return parsed

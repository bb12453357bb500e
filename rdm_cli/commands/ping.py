"""疎通確認・現在のユーザー・設定表示コマンド"""

import typer

from ..config import describe_source
from ..models import ConfigInfo
from .common import emit, get_state, handle_errors, open_client


@handle_errors
def ping_command(ctx: typer.Context) -> None:
    """Redmine との疎通と認証を確認"""
    with open_client(get_state(ctx)) as client:
        emit(ctx, client.ping())


@handle_errors
def me_command(ctx: typer.Context) -> None:
    """現在のユーザー情報を表示"""
    with open_client(get_state(ctx)) as client:
        emit(ctx, client.me())


@handle_errors
def config_command(ctx: typer.Context) -> None:
    """解決済みの接続設定を表示"""
    state = get_state(ctx)
    config = state.load_config()
    emit(
        ctx,
        ConfigInfo(
            url=config.url,
            api_key_redacted=config.redacted_api_key(),
            source=describe_source(config, state.url, state.env),
            profile_name=config.profile_name,
        ),
    )

"""接続プロファイル管理コマンド"""

import typer

from ..config import Profile, ProfileStore
from ..models import (
    ProfileActivated,
    ProfileAdded,
    ProfileDeleted,
    ProfileInfo,
    ProfileList,
)
from .common import emit, get_state, handle_errors

profile_command = typer.Typer()


def _store_path(ctx: typer.Context):
    return get_state(ctx).paths.config_file


@profile_command.command("add")
@handle_errors
def add_profile(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="プロファイル名"),
    url: str = typer.Option(..., "--url", help="Redmine ベースURL"),
    api_key: str = typer.Option(..., "--api-key", help="API キー"),
) -> None:
    """プロファイルを追加（同名なら上書き）"""
    path = _store_path(ctx)
    store = ProfileStore.load(path)
    store.add(Profile(name=name, url=url, api_key=api_key))
    store.save(path)

    emit(ctx, ProfileAdded(name=name, url=url, is_active=store.active == name))


@profile_command.command("use")
@handle_errors
def use_profile(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="切り替え先のプロファイル名"),
) -> None:
    """アクティブなプロファイルを切り替え"""
    path = _store_path(ctx)
    store = ProfileStore.load(path)
    store.set_active(name)
    store.save(path)

    emit(ctx, ProfileActivated(name=name))


@profile_command.command("list")
@handle_errors
def list_profiles(ctx: typer.Context) -> None:
    """プロファイル一覧"""
    store = ProfileStore.load(_store_path(ctx))
    profiles = [
        ProfileInfo(
            name=name,
            url=store.profiles[name].url,
            is_active=store.active == name,
        )
        for name in store.names()
    ]

    emit(ctx, ProfileList(profiles=profiles, active=store.active))


@profile_command.command("delete")
@handle_errors
def delete_profile(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="削除するプロファイル名"),
) -> None:
    """プロファイルを削除"""
    path = _store_path(ctx)
    store = ProfileStore.load(path)
    store.delete(name)
    store.save(path)

    emit(ctx, ProfileDeleted(name=name))

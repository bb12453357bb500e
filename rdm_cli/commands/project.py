"""プロジェクトコマンド"""

import typer

from ..errors import ValidationError
from ..models import DEFAULT_LIMIT
from .common import emit, get_state, handle_errors, open_client

project_command = typer.Typer()


@project_command.command("list")
@handle_errors
def list_projects(
    ctx: typer.Context,
    limit: int = typer.Option(DEFAULT_LIMIT, "--limit", min=1, help="最大件数"),
    offset: int = typer.Option(0, "--offset", min=0, help="取得開始位置"),
) -> None:
    """プロジェクト一覧"""
    with open_client(get_state(ctx)) as client:
        projects = client.list_projects(limit, offset)
    emit(ctx, projects, projects.meta())


@project_command.command("get")
@handle_errors
def get_project(
    ctx: typer.Context,
    project_id: int | None = typer.Option(None, "--id", min=0, help="プロジェクト ID"),
    identifier: str | None = typer.Option(
        None, "--identifier", help="プロジェクト識別子"
    ),
) -> None:
    """プロジェクトの詳細（--id か --identifier のどちらか一方を指定）"""
    if (project_id is None) == (identifier is None):
        raise ValidationError(
            "Either --id or --identifier is required",
            hint="Use `rdm project get --id 1` or `rdm project get --identifier my-project`",
        )

    key = str(project_id) if project_id is not None else identifier
    with open_client(get_state(ctx)) as client:
        emit(ctx, client.get_project(key))

"""ユーザーコマンド"""

from enum import Enum

import typer

from ..models import DEFAULT_LIMIT
from .common import emit, get_state, handle_errors, open_client
from .ping import me_command

user_command = typer.Typer()


class UserStatus(str, Enum):
    """--status の選択肢"""

    active = "active"
    registered = "registered"
    locked = "locked"

    def api_value(self) -> int:
        return {"active": 1, "registered": 2, "locked": 3}[self.value]


@user_command.command("list")
@handle_errors
def list_users(
    ctx: typer.Context,
    status: UserStatus | None = typer.Option(
        None, "--status", case_sensitive=False, help="ステータスで絞り込み"
    ),
    limit: int = typer.Option(DEFAULT_LIMIT, "--limit", min=1, help="最大件数"),
    offset: int = typer.Option(0, "--offset", min=0, help="取得開始位置"),
) -> None:
    """ユーザー一覧（管理者権限が必要）"""
    with open_client(get_state(ctx)) as client:
        users = client.list_users(
            status.api_value() if status is not None else None, limit, offset
        )
    emit(ctx, users, users.meta())


user_command.command("me")(me_command)

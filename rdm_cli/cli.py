"""CLI エントリーポイント"""

import logging
import os

import typer
from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .commands.common import AppState
from .commands.issue import issue_command
from .commands.ping import config_command, me_command, ping_command
from .commands.profile import profile_command
from .commands.project import project_command
from .commands.time_entry import time_command
from .commands.user import user_command
from .config import ConfigPaths
from .output.format import OutputFormat

app = typer.Typer(
    help="エージェント・パイプライン向け Redmine CLI（Markdown / JSON 出力）",
    no_args_is_help=True,
)

# サブコマンドを追加
app.command("ping")(ping_command)
app.command("me")(me_command)
app.command("config")(config_command)
app.add_typer(profile_command, name="profile", help="接続プロファイルの管理")
app.add_typer(project_command, name="project", help="プロジェクト")
app.add_typer(issue_command, name="issue", help="課題")
app.add_typer(time_command, name="time", help="作業時間")
app.add_typer(user_command, name="user", help="ユーザー")


def setup_logging(debug: bool) -> None:
    """--debug 時は DEBUG、それ以外は WARNING 以上を stderr に出力"""
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=debug,
    )
    logger = logging.getLogger("rdm_cli")
    # 同一プロセスで複数回呼ばれてもハンドラーは1つに保つ
    logger.handlers = [handler]
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"rdm {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    fmt: OutputFormat = typer.Option(
        OutputFormat.markdown,
        "--format",
        "-f",
        case_sensitive=False,
        help="出力形式（markdown または json）",
    ),
    url: str | None = typer.Option(
        None, "--url", help="Redmine ベースURL（環境変数・プロファイルより優先）"
    ),
    api_key: str | None = typer.Option(
        None, "--api-key", help="API キー（環境変数・プロファイルより優先）"
    ),
    debug: bool = typer.Option(False, "--debug", help="デバッグログを stderr に出力"),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="更新系リクエストを送信せずに内容を表示"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="バージョンを表示",
    ),
) -> None:
    """グローバルオプション"""
    setup_logging(debug)
    ctx.obj = AppState(
        fmt=fmt,
        url=url,
        api_key=api_key,
        debug=debug,
        dry_run=dry_run,
        paths=ConfigPaths.default(),
        env=os.environ,
    )


def main_entry() -> None:  # pragma: no cover
    """メインエントリーポイント"""
    app()  # pragma: no cover


if __name__ == "__main__":  # pragma: no cover
    main_entry()  # pragma: no cover

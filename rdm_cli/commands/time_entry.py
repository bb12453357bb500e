"""作業時間コマンド"""

import logging
from datetime import date
from pathlib import Path

import typer

from ..api import RedmineClient
from ..cache import ActivityCache, CacheFormatError, resolve_activity
from ..config import ConfigPaths
from ..errors import ValidationError
from ..models import (
    DEFAULT_LIMIT,
    GROUP_BY_CHOICES,
    ActivityList,
    GroupByField,
    GroupedTimeEntries,
    NewTimeEntry,
    TimeEntryCreated,
    TimeEntryDeleted,
    TimeEntryFilters,
    TimeEntryUpdated,
    TimeListResult,
    UpdateTimeEntry,
    parse_unsigned,
)
from .common import emit, get_state, handle_errors, open_client, parse_custom_fields

logger = logging.getLogger(__name__)

time_command = typer.Typer()
activities_command = typer.Typer()
time_command.add_typer(activities_command, name="activities", help="作業分類")


def _load_cache(path: Path) -> ActivityCache | None:
    """キャッシュを読み込む（壊れていればキャッシュなしとして扱う）"""
    try:
        return ActivityCache.load(path)
    except (CacheFormatError, OSError) as e:
        logger.debug("Ignoring unreadable activity cache: %s", e)
        return None


def get_activities(
    client: RedmineClient, paths: ConfigPaths, force_refresh: bool = False
) -> tuple[ActivityList, bool]:
    """有効なキャッシュがあればそれを使い、なければサーバーから取得してキャッシュする

    Returns:
        (作業分類一覧, キャッシュから取得したか)
    """
    cache_file = paths.activity_cache_file

    if not force_refresh:
        cache = _load_cache(cache_file)
        if cache is not None and cache.is_valid():
            logger.debug("Using cached activities (%s)", cache.age_string())
            return ActivityList(time_entry_activities=cache.activities), True

    activities = client.list_activities()

    # --dry-run では空の一覧が返るのでキャッシュを上書きしない
    if not client.dry_run:
        try:
            ActivityCache.new(activities.time_entry_activities).save(cache_file)
        except OSError as e:
            logger.debug("Failed to write activity cache %s: %s", cache_file, e)

    return activities, False


def _resolve_activity_id(
    client: RedmineClient, paths: ConfigPaths, token: str
) -> int:
    activities, _ = get_activities(client, paths)
    cache = ActivityCache.new(activities.time_entry_activities)
    if client.dry_run and cache.resolve(token) is None:
        # --dry-run では一覧を取得しないので数値指定はそのまま使う
        activity_id = parse_unsigned(token)
        if activity_id is not None:
            return activity_id
    return resolve_activity(cache, token)


@activities_command.command("list")
@handle_errors
def list_activities(
    ctx: typer.Context,
    refresh: bool = typer.Option(
        False, "--refresh", help="キャッシュを無視してサーバーから取得"
    ),
) -> None:
    """作業分類一覧"""
    state = get_state(ctx)
    with open_client(state) as client:
        activities, _from_cache = get_activities(client, state.paths, refresh)
    emit(ctx, activities)


@time_command.command("create")
@handle_errors
def create_time_entry(
    ctx: typer.Context,
    issue: int | None = typer.Option(None, "--issue", min=0, help="課題 ID"),
    project: int | None = typer.Option(
        None, "--project", min=0, help="プロジェクト ID（課題に紐付けない場合）"
    ),
    hours: float = typer.Option(..., "--hours", help="作業時間"),
    activity: str = typer.Option(..., "--activity", help="作業分類（名前または ID）"),
    spent_on: str | None = typer.Option(
        None, "--spent-on", help="作業日（YYYY-MM-DD、省略時は今日）"
    ),
    comment: str | None = typer.Option(None, "--comment", help="コメント"),
    user: int | None = typer.Option(
        None, "--user", min=0, help="ユーザー ID（管理者が代理登録する場合）"
    ),
) -> None:
    """作業時間を登録"""
    if hours <= 0:
        raise ValidationError(
            "Hours must be positive", hint="Use a positive number like `--hours 2.5`"
        )
    if (issue is None) == (project is None):
        raise ValidationError(
            "Either --issue or --project is required",
            hint=(
                "Use `--issue 123` to log time against an issue "
                "or `--project 1` for project-level time"
            ),
        )

    state = get_state(ctx)
    with open_client(state) as client:
        entry = NewTimeEntry(
            issue_id=issue,
            project_id=project,
            hours=hours,
            activity_id=_resolve_activity_id(client, state.paths, activity),
            spent_on=spent_on or date.today().isoformat(),
            comments=comment,
            user_id=user,
        )
        created = client.create_time_entry(entry)
    emit(ctx, TimeEntryCreated(time_entry=created))


@time_command.command("list")
@handle_errors
def list_time_entries(
    ctx: typer.Context,
    project: str | None = typer.Option(
        None, "--project", help="プロジェクト（ID または識別子）"
    ),
    issue: int | None = typer.Option(None, "--issue", min=0, help="課題 ID"),
    user: str | None = typer.Option(None, "--user", help="ユーザー（ID または me）"),
    from_date: str | None = typer.Option(None, "--from", help="開始日（YYYY-MM-DD）"),
    to_date: str | None = typer.Option(None, "--to", help="終了日（YYYY-MM-DD）"),
    cf: list[str] | None = typer.Option(
        None, "--cf", help="カスタムフィールド（ID=VALUE 形式、複数指定可）"
    ),
    group_by: str | None = typer.Option(
        None, "--group-by", help=f"グループ化（{GROUP_BY_CHOICES}）"
    ),
    limit: int = typer.Option(DEFAULT_LIMIT, "--limit", min=1, help="最大件数"),
    offset: int = typer.Option(0, "--offset", min=0, help="取得開始位置"),
) -> None:
    """作業時間一覧（--group-by でグループ化）"""
    field = None
    if group_by is not None:
        field = GroupByField.parse(group_by)
        if field is None:
            raise ValidationError(
                f"Invalid group-by field: '{group_by}'",
                hint=f"Valid values: {GROUP_BY_CHOICES}",
            )

    filters = TimeEntryFilters(
        project=project,
        issue=issue,
        user=user,
        from_date=from_date,
        to_date=to_date,
        custom_fields=parse_custom_fields(cf),
        limit=limit,
        offset=offset,
    )

    with open_client(get_state(ctx)) as client:
        entries = client.list_time_entries(filters)

    if field is None:
        result = TimeListResult.of_list(entries)
    else:
        grouped = GroupedTimeEntries.from_entries(entries.time_entries, field)
        result = TimeListResult.of_grouped(entries, grouped)
    emit(ctx, result.data(), result.meta())


@time_command.command("get")
@handle_errors
def get_time_entry(
    ctx: typer.Context,
    entry_id: int = typer.Option(..., "--id", min=0, help="作業時間 ID"),
) -> None:
    """作業時間の詳細"""
    with open_client(get_state(ctx)) as client:
        emit(ctx, client.get_time_entry(entry_id))


@time_command.command("update")
@handle_errors
def update_time_entry(
    ctx: typer.Context,
    entry_id: int = typer.Option(..., "--id", min=0, help="作業時間 ID"),
    hours: float | None = typer.Option(None, "--hours", help="作業時間"),
    activity: str | None = typer.Option(
        None, "--activity", help="作業分類（名前または ID）"
    ),
    spent_on: str | None = typer.Option(None, "--spent-on", help="作業日（YYYY-MM-DD）"),
    comment: str | None = typer.Option(None, "--comment", help="コメント"),
) -> None:
    """作業時間を更新"""
    if hours is not None and hours <= 0:
        raise ValidationError(
            "Hours must be positive", hint="Use a positive number like `--hours 2.5`"
        )

    state = get_state(ctx)
    with open_client(state) as client:
        activity_id = None
        if activity is not None:
            activity_id = _resolve_activity_id(client, state.paths, activity)

        update = UpdateTimeEntry(
            hours=hours,
            activity_id=activity_id,
            spent_on=spent_on,
            comments=comment,
        )
        updated = client.update_time_entry(entry_id, update)
    emit(ctx, TimeEntryUpdated(time_entry=updated))


@time_command.command("delete")
@handle_errors
def delete_time_entry(
    ctx: typer.Context,
    entry_id: int = typer.Option(..., "--id", min=0, help="作業時間 ID"),
) -> None:
    """作業時間を削除"""
    with open_client(get_state(ctx)) as client:
        client.delete_time_entry(entry_id)
    emit(ctx, TimeEntryDeleted(id=entry_id))

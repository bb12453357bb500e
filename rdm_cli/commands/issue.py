"""課題コマンド"""

from typing import Optional

import typer

from ..models import (
    DEFAULT_LIMIT,
    CustomFieldValue,
    IssueCreated,
    IssueFilters,
    IssueUpdated,
    NewIssue,
    UpdateIssue,
)
from .common import emit, get_state, handle_errors, open_client, parse_custom_fields

issue_command = typer.Typer()

CF_HELP = "カスタムフィールド（ID=VALUE 形式、複数指定可）"


def _custom_field_values(values: list[str] | None) -> Optional[list[CustomFieldValue]]:
    parsed = parse_custom_fields(values)
    if not parsed:
        return None
    return [CustomFieldValue(id=cf_id, value=value) for cf_id, value in parsed]


@issue_command.command("list")
@handle_errors
def list_issues(
    ctx: typer.Context,
    project: str | None = typer.Option(
        None, "--project", help="プロジェクト（ID または識別子）"
    ),
    status: str | None = typer.Option(
        None, "--status", help="ステータス（ID, open, closed, *）"
    ),
    assigned_to: str | None = typer.Option(
        None, "--assigned-to", help="担当者（ID または me）"
    ),
    author: str | None = typer.Option(None, "--author", help="作成者（ID または me）"),
    tracker: str | None = typer.Option(None, "--tracker", help="トラッカー ID"),
    subject: str | None = typer.Option(None, "--subject", help="題名（完全一致）"),
    search: str | None = typer.Option(None, "--search", help="全文検索キーワード"),
    cf: list[str] | None = typer.Option(None, "--cf", help=CF_HELP),
    limit: int = typer.Option(DEFAULT_LIMIT, "--limit", min=1, help="最大件数"),
    offset: int = typer.Option(0, "--offset", min=0, help="取得開始位置"),
) -> None:
    """課題一覧（--search 指定時は全文検索）"""
    filters = IssueFilters(
        project=project,
        status=status,
        assigned_to=assigned_to,
        author=author,
        tracker=tracker,
        subject=subject,
        custom_fields=parse_custom_fields(cf),
        limit=limit,
        offset=offset,
    )

    with open_client(get_state(ctx)) as client:
        if search is not None:
            issues = client.search_issues(search, project, limit, offset)
        else:
            issues = client.list_issues(filters)
    emit(ctx, issues, issues.meta())


@issue_command.command("get")
@handle_errors
def get_issue(
    ctx: typer.Context,
    issue_id: int = typer.Option(..., "--id", min=0, help="課題 ID"),
) -> None:
    """課題の詳細"""
    with open_client(get_state(ctx)) as client:
        emit(ctx, client.get_issue(issue_id))


@issue_command.command("create")
@handle_errors
def create_issue(
    ctx: typer.Context,
    project: int = typer.Option(..., "--project", min=0, help="プロジェクト ID"),
    subject: str = typer.Option(..., "--subject", help="題名"),
    description: str | None = typer.Option(None, "--description", help="説明"),
    tracker: int | None = typer.Option(None, "--tracker", min=0, help="トラッカー ID"),
    status: int | None = typer.Option(None, "--status", min=0, help="ステータス ID"),
    priority: int | None = typer.Option(None, "--priority", min=0, help="優先度 ID"),
    assigned_to: int | None = typer.Option(
        None, "--assigned-to", min=0, help="担当者 ID"
    ),
    start_date: str | None = typer.Option(
        None, "--start-date", help="開始日（YYYY-MM-DD）"
    ),
    due_date: str | None = typer.Option(None, "--due-date", help="期日（YYYY-MM-DD）"),
    estimated_hours: float | None = typer.Option(
        None, "--estimated-hours", help="予定工数"
    ),
    cf: list[str] | None = typer.Option(None, "--cf", help=CF_HELP),
) -> None:
    """課題を作成"""
    new_issue = NewIssue(
        project_id=project,
        subject=subject,
        description=description,
        tracker_id=tracker,
        status_id=status,
        priority_id=priority,
        assigned_to_id=assigned_to,
        start_date=start_date,
        due_date=due_date,
        estimated_hours=estimated_hours,
        custom_fields=_custom_field_values(cf),
    )

    with open_client(get_state(ctx)) as client:
        created = client.create_issue(new_issue)
    emit(ctx, IssueCreated(issue=created))


@issue_command.command("update")
@handle_errors
def update_issue(
    ctx: typer.Context,
    issue_id: int = typer.Option(..., "--id", min=0, help="課題 ID"),
    subject: str | None = typer.Option(None, "--subject", help="題名"),
    description: str | None = typer.Option(None, "--description", help="説明"),
    status: int | None = typer.Option(None, "--status", min=0, help="ステータス ID"),
    priority: int | None = typer.Option(None, "--priority", min=0, help="優先度 ID"),
    assigned_to: int | None = typer.Option(
        None, "--assigned-to", min=0, help="担当者 ID"
    ),
    done_ratio: int | None = typer.Option(
        None, "--done-ratio", min=0, max=100, help="進捗率（0-100）"
    ),
    notes: str | None = typer.Option(None, "--notes", help="注記"),
    cf: list[str] | None = typer.Option(None, "--cf", help=CF_HELP),
) -> None:
    """課題を更新"""
    update = UpdateIssue(
        subject=subject,
        description=description,
        status_id=status,
        priority_id=priority,
        assigned_to_id=assigned_to,
        done_ratio=done_ratio,
        notes=notes,
        custom_fields=_custom_field_values(cf),
    )

    with open_client(get_state(ctx)) as client:
        client.update_issue(issue_id, update)
    emit(ctx, IssueUpdated(id=issue_id))

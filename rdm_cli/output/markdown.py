"""Markdown レンダラー"""

from collections.abc import Sequence
from functools import singledispatch
from typing import Any, Optional

from ..errors import DryRunExit, RedmineCLIError
from ..models import (
    ActivityList,
    ConfigInfo,
    CurrentUser,
    CustomField,
    GroupedTimeEntries,
    Issue,
    IssueCreated,
    IssueList,
    IssueUpdated,
    PingResponse,
    ProfileActivated,
    ProfileAdded,
    ProfileDeleted,
    ProfileList,
    Project,
    ProjectList,
    TimeEntry,
    TimeEntryCreated,
    TimeEntryDeleted,
    TimeEntryList,
    TimeEntryUpdated,
    UserList,
)
from .envelope import Meta

TIME_ENTRY_HEADERS = ["ID", "Date", "Hours", "User", "Activity", "Issue", "Comment"]


def markdown_table(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    """ヘッダーと行から Markdown テーブルを作成"""
    lines = ["| " + " | ".join(headers) + " |"]
    lines.append("|" + "----|" * len(headers))
    for row in rows:
        lines.append("| " + " | ".join(str(cell) for cell in row) + " |")
    return "\n".join(lines) + "\n"


def markdown_kv_table(pairs: Sequence[tuple[str, Any]]) -> str:
    """項目と値の2列テーブル"""
    return markdown_table(["Field", "Value"], pairs)


def pagination_hint(command: str, meta: Meta) -> Optional[str]:
    if meta.next_offset is None:
        return None
    return f"*Use `{command} --offset {meta.next_offset}` for next page*"


def truncate(text: str, max_len: int) -> str:
    text = text.replace("\n", " ")
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _showing_header(title: str, count: int, meta: Meta) -> str:
    total = meta.total_count if meta.total_count is not None else count
    offset = meta.offset or 0
    return f"## {title} (showing {offset + 1}-{offset + count} of {total})\n\n"


def _with_pagination(output: str, command: str, meta: Meta) -> str:
    hint = pagination_hint(command, meta)
    if hint:
        output += f"\n{hint}\n"
    return output


def _custom_fields_section(custom_fields: Optional[list[CustomField]]) -> str:
    if not custom_fields:
        return ""
    pairs = [(cf.name, cf.display_value()) for cf in custom_fields]
    return "\n### Custom Fields\n\n" + markdown_kv_table(pairs)


def _time_entry_row(entry: TimeEntry) -> list[str]:
    return [
        str(entry.id),
        entry.spent_on,
        f"{entry.hours:.2f}",
        truncate(entry.user.name, 15) if entry.user else "-",
        entry.activity.name,
        f"#{entry.issue.id}" if entry.issue else "-",
        truncate(entry.comments or "-", 30),
    ]


def format_error_markdown(error: RedmineCLIError) -> str:
    """エラーを引用ブロックとして整形"""
    output = f"> **Error: {error.code}**\n> {error}\n"
    if error.hint:
        output += f">\n> {error.hint}\n"
    if isinstance(error, DryRunExit) and error.body is not None:
        output += f"\n```json\n{error.body}\n```\n"
    return output


@singledispatch
def render_markdown(data: Any, meta: Meta) -> str:
    raise TypeError(f"No markdown renderer for {type(data).__name__}")


@render_markdown.register
def _(data: PingResponse, meta: Meta) -> str:
    return f"## Connection Status\n\n- **Status**: {data.status}\n- **URL**: {data.url}\n"


@render_markdown.register
def _(data: CurrentUser, meta: Meta) -> str:
    pairs: list[tuple[str, Any]] = [
        ("ID", data.id),
        ("Login", data.login),
        ("Name", data.full_name()),
    ]
    if data.mail:
        pairs.append(("Email", data.mail))
    if data.admin is not None:
        pairs.append(("Admin", "Yes" if data.admin else "No"))
    if data.created_on:
        pairs.append(("Created", data.created_on))
    if data.last_login_on:
        pairs.append(("Last Login", data.last_login_on))
    return f"## Current User: {data.full_name()}\n\n" + markdown_kv_table(pairs)


@render_markdown.register
def _(data: ConfigInfo, meta: Meta) -> str:
    output = "## Current Configuration\n\n"
    output += f"- **URL**: {data.url}\n"
    output += f"- **API Key**: {data.api_key_redacted}\n"
    output += f"- **Source**: {data.source}\n"
    if data.profile_name:
        output += f"- **Profile**: {data.profile_name}\n"
    return output


@render_markdown.register
def _(data: ProfileAdded, meta: Meta) -> str:
    output = "## Profile Added\n\n"
    output += f"- **Name**: {data.name}\n- **URL**: {data.url}\n"
    if data.is_active:
        output += "- **Status**: Active\n"
    return output + "\n*Use `rdm ping` to test the connection*\n"


@render_markdown.register
def _(data: ProfileActivated, meta: Meta) -> str:
    return f"## Profile Activated\n\nNow using profile: **{data.name}**\n"


@render_markdown.register
def _(data: ProfileList, meta: Meta) -> str:
    output = "## Profiles\n\n"
    if not data.profiles:
        return (
            output
            + "*No profiles configured*\n\n"
            + "Use `rdm profile add --name <name> --url <url> --api-key <key>` to add a profile.\n"
        )
    rows = [[p.name, p.url, "Yes" if p.is_active else "-"] for p in data.profiles]
    return output + markdown_table(["Name", "URL", "Active"], rows)


@render_markdown.register
def _(data: ProfileDeleted, meta: Meta) -> str:
    return f"## Profile Deleted\n\nProfile **{data.name}** has been removed.\n"


@render_markdown.register
def _(data: Project, meta: Meta) -> str:
    output = f"## Project: {data.name} ({data.identifier})\n\n"
    pairs: list[tuple[str, Any]] = [
        ("ID", data.id),
        ("Name", data.name),
        ("Identifier", data.identifier),
    ]
    if data.status is not None:
        pairs.append(("Status", data.status_display()))
    if data.is_public is not None:
        pairs.append(("Public", "Yes" if data.is_public else "No"))
    if data.created_on:
        pairs.append(("Created", data.created_on))
    if data.updated_on:
        pairs.append(("Updated", data.updated_on))
    output += markdown_kv_table(pairs)

    if data.description:
        output += f"\n### Description\n\n{data.description}\n"

    return output + f"\n*Use `rdm issue list --project {data.identifier}` to see issues*\n"


@render_markdown.register
def _(data: ProjectList, meta: Meta) -> str:
    output = _showing_header("Projects", len(data.projects), meta)
    if not data.projects:
        return output + "*No projects found*\n"

    rows = [[p.id, p.identifier, p.name, p.status_display()] for p in data.projects]
    output += markdown_table(["ID", "Identifier", "Name", "Status"], rows)
    return _with_pagination(output, "rdm project list", meta)


@render_markdown.register
def _(data: Issue, meta: Meta) -> str:
    output = f"## Issue #{data.id}: {data.subject}\n\n"
    pairs: list[tuple[str, Any]] = [
        ("ID", data.id),
        ("Subject", data.subject),
        ("Project", data.project.name),
        ("Status", data.status.name),
        ("Priority", data.priority.name),
    ]
    if data.tracker:
        pairs.append(("Tracker", data.tracker.name))
    if data.assigned_to:
        pairs.append(("Assignee", data.assigned_to.name))
    if data.author:
        pairs.append(("Author", data.author.name))
    if data.start_date:
        pairs.append(("Start Date", data.start_date))
    if data.due_date:
        pairs.append(("Due Date", data.due_date))
    if data.done_ratio is not None:
        pairs.append(("Done", f"{data.done_ratio}%"))
    if data.estimated_hours is not None:
        pairs.append(("Estimated", f"{data.estimated_hours:.2f}h"))
    if data.spent_hours is not None:
        pairs.append(("Spent", f"{data.spent_hours:.2f}h"))
    if data.created_on:
        pairs.append(("Created", data.created_on))
    if data.updated_on:
        pairs.append(("Updated", data.updated_on))
    output += markdown_kv_table(pairs)
    output += _custom_fields_section(data.custom_fields)

    if data.description:
        output += f"\n### Description\n\n{data.description}\n"

    return output + f"\n*Use `rdm issue update --id {data.id}` to modify this issue*\n"


@render_markdown.register
def _(data: IssueList, meta: Meta) -> str:
    output = _showing_header("Issues", len(data.issues), meta)
    if not data.issues:
        return output + "*No issues found*\n"

    rows = [
        [
            i.id,
            truncate(i.subject, 40),
            i.status.name,
            i.priority.name,
            i.assigned_to.name if i.assigned_to else "-",
            i.updated_on or "-",
        ]
        for i in data.issues
    ]
    output += markdown_table(
        ["ID", "Subject", "Status", "Priority", "Assignee", "Updated"], rows
    )
    return _with_pagination(output, "rdm issue list", meta)


@render_markdown.register
def _(data: IssueCreated, meta: Meta) -> str:
    issue = data.issue
    pairs = [
        ("ID", issue.id),
        ("Subject", issue.subject),
        ("Project", issue.project.name),
        ("Status", issue.status.name),
        ("Priority", issue.priority.name),
    ]
    return (
        "## Issue Created\n\n"
        + markdown_kv_table(pairs)
        + f"\n*Use `rdm issue get --id {issue.id}` to view full details*\n"
    )


@render_markdown.register
def _(data: IssueUpdated, meta: Meta) -> str:
    return (
        f"## Issue Updated\n\nIssue #{data.id} has been updated.\n\n"
        f"*Use `rdm issue get --id {data.id}` to view changes*\n"
    )


@render_markdown.register
def _(data: ActivityList, meta: Meta) -> str:
    output = "## Time Entry Activities\n\n"
    if not data.time_entry_activities:
        return output + "*No activities found*\n"

    rows = [
        [a.id, a.name, "Yes" if a.is_default else "-"]
        for a in data.time_entry_activities
    ]
    output += markdown_table(["ID", "Name", "Default"], rows)
    return output + "\n*Use activity name or ID with `rdm time create --activity <name|id>`*\n"


@render_markdown.register
def _(data: TimeEntry, meta: Meta) -> str:
    output = f"## Time Entry #{data.id}\n\n"
    pairs: list[tuple[str, Any]] = [
        ("ID", data.id),
        ("Hours", f"{data.hours:.2f}"),
        ("Activity", data.activity.name),
        ("Date", data.spent_on),
    ]
    if data.issue:
        pairs.append(("Issue", f"#{data.issue.id}"))
    if data.project:
        pairs.append(("Project", data.project.name))
    if data.user:
        pairs.append(("User", data.user.name))
    if data.comments:
        pairs.append(("Comment", data.comments))
    if data.created_on:
        pairs.append(("Created", data.created_on))
    if data.updated_on:
        pairs.append(("Updated", data.updated_on))
    output += markdown_kv_table(pairs)
    output += _custom_fields_section(data.custom_fields)
    return output + (
        f"\n*Use `rdm time update --id {data.id}` to modify "
        f"or `rdm time delete --id {data.id}` to remove*\n"
    )


@render_markdown.register
def _(data: TimeEntryList, meta: Meta) -> str:
    output = _showing_header("Time Entries", len(data.time_entries), meta)
    if not data.time_entries:
        return output + "*No time entries found*\n"

    total_hours = sum(t.hours for t in data.time_entries)
    output += markdown_table(
        TIME_ENTRY_HEADERS, [_time_entry_row(t) for t in data.time_entries]
    )
    output += f"\n**Total: {total_hours:.2f} hours**\n"
    return _with_pagination(output, "rdm time list", meta)


@render_markdown.register
def _(data: GroupedTimeEntries, meta: Meta) -> str:
    output = f"## Time Entries by {data.group_by} ({data.total_count} entries)\n\n"
    if not data.groups:
        return output + "*No time entries found*\n"

    for group in data.groups:
        output += f"### {group.name} ({group.subtotal:.2f} hours)\n\n"
        output += markdown_table(
            TIME_ENTRY_HEADERS, [_time_entry_row(t) for t in group.entries]
        )
        output += "\n"

    output += f"**Grand Total: {data.total_hours:.2f} hours**\n"
    return _with_pagination(output, "rdm time list", meta)


@render_markdown.register
def _(data: TimeEntryCreated, meta: Meta) -> str:
    entry = data.time_entry
    pairs: list[tuple[str, Any]] = [
        ("ID", entry.id),
        ("Hours", f"{entry.hours:.2f}"),
        ("Activity", entry.activity.name),
        ("Date", entry.spent_on),
    ]
    if entry.issue:
        pairs.append(("Issue", f"#{entry.issue.id}"))
    if entry.project:
        pairs.append(("Project", entry.project.name))
    if entry.comments:
        pairs.append(("Comment", entry.comments))
    return (
        "## Time Entry Created\n\n"
        + markdown_kv_table(pairs)
        + f"\n*Use `rdm time get --id {entry.id}` to view details*\n"
    )


@render_markdown.register
def _(data: TimeEntryUpdated, meta: Meta) -> str:
    entry = data.time_entry
    pairs = [
        ("ID", entry.id),
        ("Hours", f"{entry.hours:.2f}"),
        ("Activity", entry.activity.name),
        ("Date", entry.spent_on),
    ]
    return "## Time Entry Updated\n\n" + markdown_kv_table(pairs)


@render_markdown.register
def _(data: TimeEntryDeleted, meta: Meta) -> str:
    return f"## Time Entry Deleted\n\nTime entry #{data.id} has been deleted.\n"


@render_markdown.register
def _(data: UserList, meta: Meta) -> str:
    output = _showing_header("Users", len(data.users), meta)
    if not data.users:
        return output + "*No users found*\n"

    rows = [
        [u.id, u.login, u.full_name(), u.mail or "-", u.status_display()]
        for u in data.users
    ]
    output += markdown_table(["ID", "Login", "Name", "Email", "Status"], rows)
    return _with_pagination(output, "rdm user list", meta)

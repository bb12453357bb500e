"""Redmine API のレスポンス・リクエストモデル"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from .output.envelope import Meta

DEFAULT_LIMIT = 25


def parse_unsigned(token: str) -> Optional[int]:
    """符号なし整数として解釈できれば int を返す"""
    if token and token.isascii() and token.isdigit():
        return int(token)
    return None


# ---------------------------------------------------------------------------
# 共通
# ---------------------------------------------------------------------------


class CustomField(BaseModel):
    """カスタムフィールド（レスポンス形式）"""

    id: int
    name: str
    value: Any = None
    multiple: Optional[bool] = None

    def display_value(self) -> str:
        """表示用の文字列"""
        value = self.value
        if value is None:
            return "-"
        if isinstance(value, bool):
            return "Yes" if value else "No"
        if isinstance(value, str):
            return value or "-"
        if isinstance(value, list):
            if not value:
                return "-"
            return ", ".join(str(v) for v in value)
        return str(value)


class CustomFieldValue(BaseModel):
    """カスタムフィールド（書き込み形式）"""

    id: int
    value: str


class NamedRef(BaseModel):
    """他のリソースに埋め込まれた参照"""

    id: int
    name: str


class UserRef(NamedRef):
    login: Optional[str] = None


class IssueStatus(NamedRef):
    is_closed: Optional[bool] = None


class IssueRef(BaseModel):
    id: int


class ListPage(BaseModel):
    """ページング付き一覧の共通部分"""

    total_count: Optional[int] = None
    offset: Optional[int] = None
    limit: Optional[int] = None

    def meta(self) -> Meta:
        return Meta.paginated(
            self.total_count or 0,
            self.limit if self.limit is not None else DEFAULT_LIMIT,
            self.offset or 0,
        )


# ---------------------------------------------------------------------------
# プロジェクト
# ---------------------------------------------------------------------------

PROJECT_STATUS = {1: "Active", 5: "Closed", 9: "Archived"}


class Project(BaseModel):
    id: int
    name: str
    identifier: str
    description: Optional[str] = None
    status: Optional[int] = None
    is_public: Optional[bool] = None
    created_on: Optional[str] = None
    updated_on: Optional[str] = None

    def status_display(self) -> str:
        if self.status is None:
            return "-"
        return PROJECT_STATUS.get(self.status, "Unknown")


class ProjectList(ListPage):
    projects: list[Project] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# 課題
# ---------------------------------------------------------------------------


class Issue(BaseModel):
    id: int
    subject: str
    description: Optional[str] = None
    project: NamedRef
    tracker: Optional[NamedRef] = None
    status: IssueStatus
    priority: NamedRef
    author: Optional[UserRef] = None
    assigned_to: Optional[UserRef] = None
    start_date: Optional[str] = None
    due_date: Optional[str] = None
    done_ratio: Optional[int] = None
    estimated_hours: Optional[float] = None
    spent_hours: Optional[float] = None
    created_on: Optional[str] = None
    updated_on: Optional[str] = None
    custom_fields: Optional[list[CustomField]] = None


class IssueList(ListPage):
    issues: list[Issue] = Field(default_factory=list)


class NewIssue(BaseModel):
    """課題作成リクエスト"""

    project_id: int
    subject: str
    description: Optional[str] = None
    tracker_id: Optional[int] = None
    status_id: Optional[int] = None
    priority_id: Optional[int] = None
    assigned_to_id: Optional[int] = None
    start_date: Optional[str] = None
    due_date: Optional[str] = None
    estimated_hours: Optional[float] = None
    custom_fields: Optional[list[CustomFieldValue]] = None


class UpdateIssue(BaseModel):
    """課題更新リクエスト"""

    subject: Optional[str] = None
    description: Optional[str] = None
    tracker_id: Optional[int] = None
    status_id: Optional[int] = None
    priority_id: Optional[int] = None
    assigned_to_id: Optional[int] = None
    start_date: Optional[str] = None
    due_date: Optional[str] = None
    estimated_hours: Optional[float] = None
    done_ratio: Optional[int] = None
    notes: Optional[str] = None
    custom_fields: Optional[list[CustomFieldValue]] = None


class IssueFilters(BaseModel):
    """課題一覧の絞り込み条件"""

    project: Optional[str] = None
    status: Optional[str] = None
    assigned_to: Optional[str] = None
    author: Optional[str] = None
    tracker: Optional[str] = None
    subject: Optional[str] = None
    custom_fields: list[tuple[int, str]] = Field(default_factory=list)
    limit: int = DEFAULT_LIMIT
    offset: int = 0


class SearchResult(BaseModel):
    """/search.json の1件"""

    id: int
    title: str
    result_type: str = Field(alias="type")
    url: str
    description: Optional[str] = None
    datetime: Optional[str] = None


class SearchResults(ListPage):
    results: list[SearchResult] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# 作業時間
# ---------------------------------------------------------------------------


class Activity(BaseModel):
    """作業分類"""

    id: int
    name: str
    is_default: Optional[bool] = None


class ActivityList(BaseModel):
    time_entry_activities: list[Activity] = Field(default_factory=list)


class TimeEntry(BaseModel):
    id: int
    hours: float
    comments: Optional[str] = None
    spent_on: str
    activity: Activity
    user: Optional[UserRef] = None
    project: Optional[NamedRef] = None
    issue: Optional[IssueRef] = None
    created_on: Optional[str] = None
    updated_on: Optional[str] = None
    custom_fields: Optional[list[CustomField]] = None


class TimeEntryList(ListPage):
    time_entries: list[TimeEntry] = Field(default_factory=list)


class NewTimeEntry(BaseModel):
    """作業時間登録リクエスト"""

    issue_id: Optional[int] = None
    project_id: Optional[int] = None
    hours: float
    activity_id: int
    spent_on: Optional[str] = None
    comments: Optional[str] = None
    user_id: Optional[int] = None


class UpdateTimeEntry(BaseModel):
    """作業時間更新リクエスト"""

    hours: Optional[float] = None
    activity_id: Optional[int] = None
    spent_on: Optional[str] = None
    comments: Optional[str] = None


class TimeEntryFilters(BaseModel):
    """作業時間一覧の絞り込み条件"""

    project: Optional[str] = None
    issue: Optional[int] = None
    user: Optional[str] = None
    from_date: Optional[str] = None
    to_date: Optional[str] = None
    custom_fields: list[tuple[int, str]] = Field(default_factory=list)
    limit: int = DEFAULT_LIMIT
    offset: int = 0


GROUP_BY_CHOICES = "user, project, activity, issue, spent_on, cf_<id>"


class GroupByField(BaseModel):
    """作業時間のグループ化キー"""

    kind: Literal["user", "project", "activity", "issue", "spent_on", "custom_field"]
    custom_field_id: Optional[int] = None

    @classmethod
    def parse(cls, value: str) -> Optional["GroupByField"]:
        lowered = value.lower()
        if lowered in ("user", "project", "activity", "issue", "spent_on"):
            return cls(kind=lowered)
        if lowered == "date":
            return cls(kind="spent_on")
        if value.startswith("cf_"):
            cf_id = parse_unsigned(value[3:])
            if cf_id is not None:
                return cls(kind="custom_field", custom_field_id=cf_id)
        return None

    def display_name(self) -> str:
        if self.kind == "custom_field":
            return f"Custom Field {self.custom_field_id}"
        if self.kind == "spent_on":
            return "Date"
        return self.kind.capitalize()

    def key_for(self, entry: TimeEntry) -> str:
        """エントリのグループキー"""
        if self.kind == "user":
            return entry.user.name if entry.user else "Unknown"
        if self.kind == "project":
            return entry.project.name if entry.project else "Unknown"
        if self.kind == "activity":
            return entry.activity.name
        if self.kind == "issue":
            return f"#{entry.issue.id}" if entry.issue else "No Issue"
        if self.kind == "spent_on":
            return entry.spent_on
        for cf in entry.custom_fields or []:
            if cf.id == self.custom_field_id:
                return cf.display_value()
        return "-"


class TimeEntryGroup(BaseModel):
    name: str
    entries: list[TimeEntry]
    subtotal: float


class GroupedTimeEntries(BaseModel):
    """グループ化した作業時間"""

    group_by: str
    groups: list[TimeEntryGroup]
    total_hours: float
    total_count: int

    @classmethod
    def from_entries(
        cls, entries: list[TimeEntry], field: GroupByField
    ) -> "GroupedTimeEntries":
        buckets: dict[str, list[TimeEntry]] = {}
        for entry in entries:
            buckets.setdefault(field.key_for(entry), []).append(entry)

        groups = [
            TimeEntryGroup(
                name=name,
                entries=members,
                subtotal=sum(e.hours for e in members),
            )
            for name, members in sorted(buckets.items())
        ]

        return cls(
            group_by=field.display_name(),
            groups=groups,
            total_hours=sum(g.subtotal for g in groups),
            total_count=sum(len(g.entries) for g in groups),
        )


class TimeListResult(BaseModel):
    """time list の結果（通常一覧 / グループ化）"""

    kind: Literal["list", "grouped"]
    entries: TimeEntryList
    grouped: Optional[GroupedTimeEntries] = None

    @classmethod
    def of_list(cls, entries: TimeEntryList) -> "TimeListResult":
        return cls(kind="list", entries=entries)

    @classmethod
    def of_grouped(
        cls, entries: TimeEntryList, grouped: GroupedTimeEntries
    ) -> "TimeListResult":
        return cls(kind="grouped", entries=entries, grouped=grouped)

    def data(self) -> BaseModel:
        if self.kind == "grouped" and self.grouped is not None:
            return self.grouped
        return self.entries

    def meta(self) -> Meta:
        return self.entries.meta()


# ---------------------------------------------------------------------------
# ユーザー
# ---------------------------------------------------------------------------

USER_STATUS = {1: "Active", 2: "Registered", 3: "Locked"}


class CurrentUser(BaseModel):
    """/users/current.json"""

    id: int
    login: str
    firstname: str
    lastname: str
    mail: Optional[str] = None
    admin: Optional[bool] = None
    created_on: Optional[str] = None
    last_login_on: Optional[str] = None

    def full_name(self) -> str:
        return f"{self.firstname} {self.lastname}"


class UserDetails(BaseModel):
    """/users.json の1件"""

    id: int
    login: str
    firstname: str
    lastname: str
    mail: Optional[str] = None
    created_on: Optional[str] = None
    last_login_on: Optional[str] = None
    status: Optional[int] = None

    def full_name(self) -> str:
        return f"{self.firstname} {self.lastname}"

    def status_display(self) -> str:
        return USER_STATUS.get(self.status or 0, "Unknown")


class UserList(ListPage):
    users: list[UserDetails] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# コマンド結果
# ---------------------------------------------------------------------------


class PingResponse(BaseModel):
    status: str
    url: str


class IssueCreated(BaseModel):
    issue: Issue


class IssueUpdated(BaseModel):
    id: int


class TimeEntryCreated(BaseModel):
    time_entry: TimeEntry


class TimeEntryUpdated(BaseModel):
    time_entry: TimeEntry


class TimeEntryDeleted(BaseModel):
    id: int


class ProfileAdded(BaseModel):
    name: str
    url: str
    is_active: bool


class ProfileActivated(BaseModel):
    name: str


class ProfileInfo(BaseModel):
    name: str
    url: str
    is_active: bool


class ProfileList(BaseModel):
    profiles: list[ProfileInfo]
    active: Optional[str] = None


class ProfileDeleted(BaseModel):
    name: str


class ConfigInfo(BaseModel):
    url: str
    api_key_redacted: str
    source: str
    profile_name: Optional[str] = None

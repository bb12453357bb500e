"""Redmine API クライアント"""

import json
import logging
import time
from collections.abc import Callable
from typing import Any, NamedTuple, Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    wait_exponential,
)

from .. import __version__
from ..config import Config
from ..errors import (
    AuthError,
    DryRunExit,
    NetworkError,
    NotFoundError,
    RedmineAPIError,
    RedmineCLIError,
    ValidationError,
)
from ..models import (
    ActivityList,
    CurrentUser,
    Issue,
    IssueFilters,
    IssueList,
    NewIssue,
    NewTimeEntry,
    PingResponse,
    Project,
    ProjectList,
    SearchResults,
    TimeEntry,
    TimeEntryFilters,
    TimeEntryList,
    UpdateIssue,
    UpdateTimeEntry,
    UserList,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

RETRYABLE_STATUSES = (502, 503, 504)
DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)
DEFAULT_RETRY_MAX_ELAPSED = 30.0


class ResourceRef(NamedTuple):
    """404 をどのリソースの不在として報告するか"""

    kind: str
    identifier: Any
    hint: str


def _path_segment(value: str) -> str:
    """URL パスの1要素としてエンコード（/ や ? も含めて）"""
    return quote(value, safe="")


def _issue_ref(issue_id: int) -> ResourceRef:
    return ResourceRef("Issue", issue_id, "Use `rdm issue list` to find available issues.")


def _time_entry_ref(entry_id: int) -> ResourceRef:
    return ResourceRef(
        "Time entry", entry_id, "Use `rdm time list` to find available time entries."
    )


def error_for_status(
    status: int, body: str, resource: Optional[ResourceRef] = None
) -> Optional[RedmineCLIError]:
    """HTTP ステータスをエラーに変換（2xx なら None）"""
    if status == 401:
        return AuthError(
            "Invalid API key or unauthorized",
            hint="Check your API key with `rdm config` or set REDMINE_API_KEY.",
        )
    if status == 403:
        return AuthError("Access forbidden - check your permissions")
    if status == 404:
        if resource is not None:
            return NotFoundError(resource.kind, resource.identifier, hint=resource.hint)
        return RedmineAPIError("Resource not found", status=404)
    if not 200 <= status < 300:
        return RedmineAPIError(f"API request failed: {status} - {body}", status=status)
    return None


class _UserResponse(BaseModel):
    user: CurrentUser


class _ProjectResponse(BaseModel):
    project: Project


class _IssueResponse(BaseModel):
    issue: Issue


class _TimeEntryResponse(BaseModel):
    time_entry: TimeEntry


class TransientStatusError(Exception):
    """リトライ対象のステータス（502/503/504）"""

    def __init__(self, response: httpx.Response):
        super().__init__(f"Server error: {response.status_code}")
        self.response = response


class RedmineClient:
    """Redmine API Client"""

    def __init__(
        self,
        config: Config,
        dry_run: bool = False,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        retry_max_elapsed: float = DEFAULT_RETRY_MAX_ELAPSED,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.base_url = config.url.rstrip("/")
        self.dry_run = dry_run
        self.retry_max_elapsed = retry_max_elapsed
        self._sleep = sleep
        self._clock = clock

        headers = {
            "X-Redmine-API-Key": config.api_key,
            "Content-Type": "application/json",
            "User-Agent": f"rdm/{__version__}",
        }
        self.client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=DEFAULT_TIMEOUT,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.client.close()

    # ------------------------------------------------------------------
    # 送信・リトライ・パース
    # ------------------------------------------------------------------

    def _send_once(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]],
        payload: Optional[dict[str, Any]],
    ) -> httpx.Response:
        logger.debug("Request: %s %s%s params=%s", method, self.base_url, path, params)
        response = self.client.request(method, path, params=params, json=payload)
        logger.debug("Response status: %d", response.status_code)
        if response.status_code in RETRYABLE_STATUSES:
            raise TransientStatusError(response)
        return response

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            "Transient error, will retry in %.1fs (attempt %d): %s",
            wait,
            retry_state.attempt_number,
            exc,
        )

    def _stop_after_elapsed(
        self, started: float
    ) -> Callable[[RetryCallState], bool]:
        """最初の送信から retry_max_elapsed 秒経過したらリトライをやめる"""

        def stop(retry_state: RetryCallState) -> bool:
            return self._clock() - started >= self.retry_max_elapsed

        return stop

    def _send(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """一時的な失敗はリトライしつつリクエストを送信"""
        retrying = Retrying(
            retry=retry_if_exception_type(
                (httpx.TimeoutException, httpx.ConnectError, TransientStatusError)
            ),
            wait=wait_exponential(multiplier=0.5, max=8),
            stop=self._stop_after_elapsed(self._clock()),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            return retrying(self._send_once, method, path, params, payload)
        except TransientStatusError as e:
            raise NetworkError(
                f"Request failed after retries: {e.response.status_code} "
                f"{e.response.reason_phrase}"
            ) from e
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Request failed: {e}") from e

    def _parse(self, response: httpx.Response, model: type[M]) -> M:
        body = response.text
        logger.debug("Response body: %s", body)
        try:
            return model.model_validate_json(body)
        except PydanticValidationError as e:
            raise RedmineAPIError(
                f"Failed to parse response: {e} - body: {body}"
            ) from e

    def _check(
        self, response: httpx.Response, resource: Optional[ResourceRef] = None
    ) -> None:
        error = error_for_status(response.status_code, response.text, resource)
        if error is not None:
            logger.debug("Response body: %s", response.text)
            raise error

    def _get(
        self,
        path: str,
        model: type[M],
        params: Optional[dict[str, Any]] = None,
        resource: Optional[ResourceRef] = None,
    ) -> M:
        response = self._send("GET", path, params=params)
        self._check(response, resource)
        return self._parse(response, model)

    def _refuse_dry_run(self, command: str) -> None:
        if self.dry_run:
            raise ValidationError(f"Cannot use --dry-run with '{command}' command")

    def _stop_dry_run(
        self, method: str, path: str, payload: Optional[dict[str, Any]] = None
    ) -> None:
        """--dry-run なら送信せずに終了"""
        if not self.dry_run:
            return
        body = None
        if payload is not None:
            body = json.dumps(payload, indent=2, ensure_ascii=False)
        logger.debug("Dry run: %s %s", method, path)
        raise DryRunExit(method, path, body)

    @staticmethod
    def _pagination(limit: int, offset: int) -> dict[str, Any]:
        return {"limit": limit, "offset": offset}

    @staticmethod
    def _add_custom_fields(
        params: dict[str, Any], custom_fields: list[tuple[int, str]]
    ) -> None:
        for cf_id, cf_value in custom_fields:
            params[f"cf_{cf_id}"] = cf_value

    # ------------------------------------------------------------------
    # 接続確認・ユーザー
    # ------------------------------------------------------------------

    def ping(self) -> PingResponse:
        """接続テスト"""
        if self.dry_run:
            return PingResponse(status="dry-run", url=self.base_url)

        response = self._send("GET", "/users/current.json")
        self._check(response)
        return PingResponse(status="ok", url=self.base_url)

    def me(self) -> CurrentUser:
        """現在のユーザーを取得"""
        self._refuse_dry_run("me")
        return self._get("/users/current.json", _UserResponse).user

    def list_users(
        self, status: Optional[int] = None, limit: int = 25, offset: int = 0
    ) -> UserList:
        """ユーザー一覧を取得（管理者権限が必要）"""
        if self.dry_run:
            return UserList(total_count=0, limit=limit, offset=offset)

        params = self._pagination(limit, offset)
        if status is not None:
            params["status"] = status
        return self._get("/users.json", UserList, params=params)

    # ------------------------------------------------------------------
    # プロジェクト
    # ------------------------------------------------------------------

    def list_projects(self, limit: int = 25, offset: int = 0) -> ProjectList:
        """プロジェクト一覧を取得"""
        if self.dry_run:
            return ProjectList(total_count=0, limit=limit, offset=offset)
        return self._get(
            "/projects.json", ProjectList, params=self._pagination(limit, offset)
        )

    def get_project(self, id_or_identifier: str) -> Project:
        """ID または識別子でプロジェクトを取得"""
        self._refuse_dry_run("get")
        resource = ResourceRef(
            "Project",
            id_or_identifier,
            "Use `rdm project list` to see available projects.",
        )
        return self._get(
            f"/projects/{_path_segment(id_or_identifier)}.json",
            _ProjectResponse,
            resource=resource,
        ).project

    # ------------------------------------------------------------------
    # 課題
    # ------------------------------------------------------------------

    def list_issues(self, filters: IssueFilters) -> IssueList:
        """課題一覧を取得"""
        if self.dry_run:
            return IssueList(total_count=0, limit=filters.limit, offset=filters.offset)

        params = self._pagination(filters.limit, filters.offset)
        optional = {
            "project_id": filters.project,
            "status_id": filters.status,
            "assigned_to_id": filters.assigned_to,
            "author_id": filters.author,
            "tracker_id": filters.tracker,
            "subject": filters.subject,
        }
        params.update({k: v for k, v in optional.items() if v is not None})
        self._add_custom_fields(params, filters.custom_fields)
        return self._get("/issues.json", IssueList, params=params)

    def get_issue(self, issue_id: int) -> Issue:
        """課題を取得"""
        self._refuse_dry_run("get")
        return self._get(
            f"/issues/{issue_id}.json", _IssueResponse, resource=_issue_ref(issue_id)
        ).issue

    def create_issue(self, issue: NewIssue) -> Issue:
        """課題を作成"""
        payload = {"issue": issue.model_dump(exclude_none=True)}
        self._stop_dry_run("POST", "/issues.json", payload)

        response = self._send("POST", "/issues.json", payload=payload)
        self._check(response)
        return self._parse(response, _IssueResponse).issue

    def update_issue(self, issue_id: int, update: UpdateIssue) -> None:
        """課題を更新"""
        path = f"/issues/{issue_id}.json"
        payload = {"issue": update.model_dump(exclude_none=True)}
        self._stop_dry_run("PUT", path, payload)

        response = self._send("PUT", path, payload=payload)
        self._check(response, _issue_ref(issue_id))

    def search_issues(
        self,
        query: str,
        project: Optional[str] = None,
        limit: int = 25,
        offset: int = 0,
    ) -> IssueList:
        """全文検索でヒットした課題を取得"""
        if self.dry_run:
            return IssueList(total_count=0, limit=limit, offset=offset)

        params = {"q": query, "issues": 1, **self._pagination(limit, offset)}
        path = "/search.json"
        if project:
            path = f"/projects/{_path_segment(project)}/search.json"
        results = self._get(path, SearchResults, params=params)
        return self._fetch_issues_from_search(results)

    def _fetch_issues_from_search(self, results: SearchResults) -> IssueList:
        """検索結果の課題を1件ずつ取得（取得できないものは飛ばす）"""
        issue_ids = [r.id for r in results.results if r.result_type == "issue"]
        if not issue_ids:
            return IssueList(total_count=0, limit=results.limit, offset=results.offset)

        issues = []
        for issue_id in issue_ids:
            try:
                issues.append(self.get_issue(issue_id))
            except RedmineCLIError as e:
                logger.debug("Skipping inaccessible issue #%d: %s", issue_id, e)

        return IssueList(
            issues=issues,
            total_count=results.total_count,
            limit=results.limit,
            offset=results.offset,
        )

    # ------------------------------------------------------------------
    # 作業時間
    # ------------------------------------------------------------------

    def list_activities(self) -> ActivityList:
        """作業分類一覧を取得"""
        if self.dry_run:
            return ActivityList()
        return self._get("/enumerations/time_entry_activities.json", ActivityList)

    def list_time_entries(self, filters: TimeEntryFilters) -> TimeEntryList:
        """作業時間一覧を取得"""
        if self.dry_run:
            return TimeEntryList(
                total_count=0, limit=filters.limit, offset=filters.offset
            )

        params = self._pagination(filters.limit, filters.offset)
        optional = {
            "project_id": filters.project,
            "issue_id": filters.issue,
            "user_id": filters.user,
            "from": filters.from_date,
            "to": filters.to_date,
        }
        params.update({k: v for k, v in optional.items() if v is not None})
        self._add_custom_fields(params, filters.custom_fields)
        return self._get("/time_entries.json", TimeEntryList, params=params)

    def get_time_entry(self, entry_id: int) -> TimeEntry:
        """作業時間を取得"""
        self._refuse_dry_run("get")
        return self._get(
            f"/time_entries/{entry_id}.json",
            _TimeEntryResponse,
            resource=_time_entry_ref(entry_id),
        ).time_entry

    def create_time_entry(self, entry: NewTimeEntry) -> TimeEntry:
        """作業時間を登録"""
        payload = {"time_entry": entry.model_dump(exclude_none=True)}
        self._stop_dry_run("POST", "/time_entries.json", payload)

        response = self._send("POST", "/time_entries.json", payload=payload)
        self._check(response)
        return self._parse(response, _TimeEntryResponse).time_entry

    def update_time_entry(self, entry_id: int, update: UpdateTimeEntry) -> TimeEntry:
        """作業時間を更新し、更新後の内容を取得し直す"""
        path = f"/time_entries/{entry_id}.json"
        payload = {"time_entry": update.model_dump(exclude_none=True)}
        self._stop_dry_run("PUT", path, payload)

        response = self._send("PUT", path, payload=payload)
        self._check(response, _time_entry_ref(entry_id))
        return self.get_time_entry(entry_id)

    def delete_time_entry(self, entry_id: int) -> None:
        """作業時間を削除"""
        path = f"/time_entries/{entry_id}.json"
        self._stop_dry_run("DELETE", path)

        response = self._send("DELETE", path)
        self._check(response, _time_entry_ref(entry_id))

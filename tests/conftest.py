"""pytest設定とフィクスチャ"""

import functools
import json
from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from rdm_cli.api import RedmineClient
from rdm_cli.cli import app
from rdm_cli.config import Config, ConfigPaths


@pytest.fixture
def mock_config():
    """テスト用の接続設定"""
    return Config(url="https://redmine.example.com", api_key="test-api-key-123456")


@pytest.fixture
def temp_paths(tmp_path):
    """一時ディレクトリ上の設定・キャッシュの配置場所"""
    return ConfigPaths(config_dir=tmp_path / "config", cache_dir=tmp_path / "cache")


@pytest.fixture
def issue_payload():
    """課題1件分のレスポンス"""
    return {
        "id": 42,
        "subject": "Fix login bug",
        "description": "Users cannot log in",
        "project": {"id": 1, "name": "Web App"},
        "tracker": {"id": 1, "name": "Bug"},
        "status": {"id": 1, "name": "New", "is_closed": False},
        "priority": {"id": 2, "name": "Normal"},
        "author": {"id": 3, "name": "Alice Smith"},
        "assigned_to": {"id": 4, "name": "Bob Jones"},
        "done_ratio": 0,
        "created_on": "2024-01-10T09:00:00Z",
        "updated_on": "2024-01-11T10:00:00Z",
        "custom_fields": [{"id": 7, "name": "Severity", "value": "High"}],
    }


@pytest.fixture
def activities_payload():
    """作業分類一覧のレスポンス"""
    return {
        "time_entry_activities": [
            {"id": 8, "name": "Design", "is_default": False},
            {"id": 9, "name": "Development", "is_default": True},
            {"id": 10, "name": "QA"},
        ]
    }


def make_time_entry(entry_id, activity, hours, **extra):
    """作業時間1件分のレスポンスを作る"""
    entry = {
        "id": entry_id,
        "hours": hours,
        "spent_on": "2024-01-15",
        "activity": {"id": 9, "name": activity},
        "user": {"id": 3, "name": "Alice Smith"},
        "project": {"id": 1, "name": "Web App"},
    }
    entry.update(extra)
    return entry


@pytest.fixture
def time_entry_payload():
    """作業時間1件分のレスポンス"""
    return make_time_entry(
        100, "Development", 2.5, issue={"id": 42}, comments="Implemented login"
    )


def json_response(payload, status_code=200):
    return httpx.Response(status_code, json=payload)


class RecordingHandler:
    """MockTransport 用のハンドラー（受け取ったリクエストを記録する）"""

    def __init__(self, routes):
        # routes: {(method, path): payload | httpx.Response | list[...]}
        self.routes = {key: value for key, value in routes.items()}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, text="no route")

        value = self.routes[key]
        if isinstance(value, list):
            value = value.pop(0) if len(value) > 1 else value[0]
        if isinstance(value, httpx.Response):
            return value
        return json_response(value)

    def bodies(self):
        return [json.loads(r.content) for r in self.requests if r.content]


@pytest.fixture
def make_client(mock_config):
    """MockTransport を使う RedmineClient を作るファクトリ"""

    def _make(handler, dry_run=False, **kwargs):
        kwargs.setdefault("sleep", lambda seconds: None)
        return RedmineClient(
            mock_config,
            dry_run,
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    return _make


@pytest.fixture
def run_cli(temp_paths):
    """CLI を実行するヘルパー（HTTP はハンドラーが応答する）"""
    runner = CliRunner()

    def _run(args, handler=None, env=None):
        handler = handler or RecordingHandler({})
        client_factory = functools.partial(
            RedmineClient,
            transport=httpx.MockTransport(handler),
            sleep=lambda seconds: None,
        )
        cli_env = {
            "REDMINE_URL": "https://redmine.example.com",
            "REDMINE_API_KEY": "test-api-key-123456",
        }
        cli_env.update(env or {})

        with (
            patch("rdm_cli.commands.common.RedmineClient", client_factory),
            patch("rdm_cli.cli.ConfigPaths") as mock_paths,
        ):
            mock_paths.default.return_value = temp_paths
            return runner.invoke(app, args, env=cli_env)

    return _run


@pytest.fixture
def recorder():
    """RecordingHandler クラス"""
    return RecordingHandler


@pytest.fixture
def time_entry_factory():
    """作業時間レスポンスのファクトリ"""
    return make_time_entry

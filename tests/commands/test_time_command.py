"""作業時間コマンドのテスト"""

import json
from datetime import date

import httpx

from rdm_cli.cache import ActivityCache
from rdm_cli.models import Activity

ACTIVITIES_PATH = ("GET", "/enumerations/time_entry_activities.json")


class TestActivitiesCommand:
    """time activities のテストクラス"""

    def test_fetch_and_cache(self, run_cli, recorder, activities_payload, temp_paths):
        """初回は取得してキャッシュし、2回目はキャッシュを使う"""
        handler = recorder({ACTIVITIES_PATH: activities_payload})

        result = run_cli(["time", "activities", "list"], handler)
        assert result.exit_code == 0
        assert "| 9 | Development | Yes |" in result.output
        assert ActivityCache.load(temp_paths.activity_cache_file).activities[0].id == 8

        result = run_cli(["time", "activities", "list"], handler)
        assert result.exit_code == 0
        assert len(handler.requests) == 1

    def test_refresh_ignores_cache(self, run_cli, recorder, activities_payload, temp_paths):
        ActivityCache.new([Activity(id=1, name="Old")]).save(temp_paths.activity_cache_file)
        handler = recorder({ACTIVITIES_PATH: activities_payload})

        result = run_cli(["time", "activities", "list", "--refresh"], handler)

        assert result.exit_code == 0
        assert len(handler.requests) == 1
        assert "Old" not in result.output

    def test_expired_cache_is_refetched(self, run_cli, recorder, activities_payload, temp_paths):
        ActivityCache(updated_at=0, activities=[Activity(id=1, name="Old")]).save(
            temp_paths.activity_cache_file
        )
        handler = recorder({ACTIVITIES_PATH: activities_payload})

        result = run_cli(["time", "activities", "list"], handler)

        assert len(handler.requests) == 1
        assert "Development" in result.output

    def test_broken_cache_is_a_miss(self, run_cli, recorder, activities_payload, temp_paths):
        """壊れたキャッシュは無視して取得し直す"""
        temp_paths.cache_dir.mkdir(parents=True)
        temp_paths.activity_cache_file.write_text("{broken")
        handler = recorder({ACTIVITIES_PATH: activities_payload})

        result = run_cli(["time", "activities", "list"], handler)

        assert result.exit_code == 0
        assert len(handler.requests) == 1
        assert ActivityCache.load(temp_paths.activity_cache_file) is not None

    def test_non_utf8_cache_is_a_miss(
        self, run_cli, recorder, activities_payload, temp_paths
    ):
        """UTF-8 でないキャッシュも無視して取得し直す"""
        temp_paths.cache_dir.mkdir(parents=True)
        temp_paths.activity_cache_file.write_bytes(b"\xff\xfe\x00garbage")
        handler = recorder({ACTIVITIES_PATH: activities_payload})

        result = run_cli(["time", "activities", "list"], handler)

        assert result.exit_code == 0
        assert len(handler.requests) == 1
        assert "| 9 | Development | Yes |" in result.output


class TestTimeCreateCommand:
    """time create のテストクラス"""

    def test_create_resolves_activity_name(
        self, run_cli, recorder, activities_payload, time_entry_payload
    ):
        """作業分類名を ID に解決し、作業日は今日"""
        handler = recorder(
            {
                ACTIVITIES_PATH: activities_payload,
                ("POST", "/time_entries.json"): httpx.Response(
                    201, json={"time_entry": time_entry_payload}
                ),
            }
        )
        result = run_cli(
            [
                "time",
                "create",
                "--issue",
                "42",
                "--hours",
                "2.5",
                "--activity",
                "development",
                "--comment",
                "Implemented login",
            ],
            handler,
        )

        assert result.exit_code == 0
        assert "## Time Entry Created" in result.output
        assert handler.bodies() == [
            {
                "time_entry": {
                    "issue_id": 42,
                    "hours": 2.5,
                    "activity_id": 9,
                    "spent_on": date.today().isoformat(),
                    "comments": "Implemented login",
                }
            }
        ]

    def test_create_unknown_activity(self, run_cli, recorder, activities_payload):
        handler = recorder({ACTIVITIES_PATH: activities_payload})
        result = run_cli(
            ["time", "create", "--issue", "42", "--hours", "1", "--activity", "Testing"],
            handler,
        )

        assert result.exit_code == 2
        assert "Unknown activity: 'Testing'" in result.output

    def test_hours_must_be_positive(self, run_cli, recorder):
        handler = recorder({})
        result = run_cli(
            ["time", "create", "--issue", "42", "--hours", "0", "--activity", "QA"],
            handler,
        )

        assert result.exit_code == 2
        assert "Hours must be positive" in result.output
        assert handler.requests == []

    def test_issue_or_project_required(self, run_cli):
        result = run_cli(["time", "create", "--hours", "1", "--activity", "QA"])

        assert result.exit_code == 2
        assert "Either --issue or --project is required" in result.output

    def test_issue_and_project_conflict(self, run_cli):
        result = run_cli(
            [
                "time",
                "create",
                "--issue",
                "1",
                "--project",
                "1",
                "--hours",
                "1",
                "--activity",
                "QA",
            ]
        )
        assert result.exit_code == 2

    def test_create_dry_run_with_numeric_activity(self, run_cli, recorder):
        """--dry-run では数値の作業分類をそのまま使い、送信しない"""
        handler = recorder({})
        result = run_cli(
            [
                "--dry-run",
                "time",
                "create",
                "--project",
                "1",
                "--hours",
                "1.5",
                "--activity",
                "9",
                "--spent-on",
                "2024-01-15",
            ],
            handler,
        )

        assert result.exit_code == 2
        assert handler.requests == []
        assert '"activity_id": 9' in result.output
        assert '"spent_on": "2024-01-15"' in result.output


class TestTimeListCommand:
    """time list のテストクラス"""

    def _entries(self, time_entry_factory):
        return {
            "time_entries": [
                time_entry_factory(1, "Dev", 1.0),
                time_entry_factory(2, "QA", 2.0),
                time_entry_factory(3, "Dev", 0.5),
            ],
            "total_count": 3,
            "offset": 0,
            "limit": 25,
        }

    def test_list(self, run_cli, recorder, time_entry_factory):
        handler = recorder(
            {("GET", "/time_entries.json"): self._entries(time_entry_factory)}
        )
        result = run_cli(
            ["time", "list", "--from", "2024-01-01", "--to", "2024-01-31"], handler
        )

        assert result.exit_code == 0
        params = handler.requests[0].url.params
        assert params["from"] == "2024-01-01"
        assert params["to"] == "2024-01-31"
        assert "**Total: 3.50 hours**" in result.output

    def test_group_by_activity_json(self, run_cli, recorder, time_entry_factory):
        """グループ化結果の JSON"""
        handler = recorder(
            {("GET", "/time_entries.json"): self._entries(time_entry_factory)}
        )
        result = run_cli(
            ["--format", "json", "time", "list", "--group-by", "activity"], handler
        )

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        data = payload["data"]
        assert [(g["name"], g["subtotal"]) for g in data["groups"]] == [
            ("Dev", 1.5),
            ("QA", 2.0),
        ]
        assert data["total_hours"] == 3.5
        assert data["total_count"] == 3
        assert payload["meta"]["total_count"] == 3

    def test_group_by_markdown(self, run_cli, recorder, time_entry_factory):
        handler = recorder(
            {("GET", "/time_entries.json"): self._entries(time_entry_factory)}
        )
        result = run_cli(["time", "list", "--group-by", "activity"], handler)

        assert "### Dev (1.50 hours)" in result.output
        assert "**Grand Total: 3.50 hours**" in result.output

    def test_invalid_group_by(self, run_cli, recorder):
        handler = recorder({})
        result = run_cli(["time", "list", "--group-by", "priority"], handler)

        assert result.exit_code == 2
        assert "Invalid group-by field: 'priority'" in result.output
        assert "cf_<id>" in result.output
        assert handler.requests == []


class TestTimeEntryCommands:
    """time get / update / delete のテストクラス"""

    def test_get(self, run_cli, recorder, time_entry_payload):
        handler = recorder(
            {("GET", "/time_entries/100.json"): {"time_entry": time_entry_payload}}
        )
        result = run_cli(["time", "get", "--id", "100"], handler)

        assert result.exit_code == 0
        assert "## Time Entry #100" in result.output
        assert "| Issue | #42 |" in result.output

    def test_update_refetches(
        self, run_cli, recorder, activities_payload, time_entry_payload
    ):
        """更新後に取得し直した内容を表示"""
        handler = recorder(
            {
                ACTIVITIES_PATH: activities_payload,
                ("PUT", "/time_entries/100.json"): httpx.Response(204),
                ("GET", "/time_entries/100.json"): {"time_entry": time_entry_payload},
            }
        )
        result = run_cli(
            ["time", "update", "--id", "100", "--hours", "2.5", "--activity", "QA"],
            handler,
        )

        assert result.exit_code == 0
        assert "## Time Entry Updated" in result.output
        assert handler.bodies() == [{"time_entry": {"hours": 2.5, "activity_id": 10}}]

    def test_delete(self, run_cli, recorder):
        handler = recorder({("DELETE", "/time_entries/100.json"): httpx.Response(204)})
        result = run_cli(["time", "delete", "--id", "100"], handler)

        assert result.exit_code == 0
        assert "Time entry #100 has been deleted." in result.output

    def test_delete_not_found(self, run_cli, recorder):
        result = run_cli(["time", "delete", "--id", "5"], recorder({}))

        assert result.exit_code == 4
        assert "rdm time list" in result.output

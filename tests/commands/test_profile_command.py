"""プロファイル・設定表示コマンドのテスト"""

import json

from rdm_cli.config import ProfileStore

NO_ENV = {"REDMINE_URL": None, "REDMINE_API_KEY": None}


class TestProfileCommand:
    """profile コマンドのテストクラス"""

    def _add(self, run_cli, name, url=None):
        return run_cli(
            [
                "profile",
                "add",
                "--name",
                name,
                "--url",
                url or f"https://{name}.example.com",
                "--api-key",
                f"{name}-secret-api-key",
            ],
            env=NO_ENV,
        )

    def test_add_first_profile(self, run_cli, temp_paths):
        """最初のプロファイルはアクティブになり、ファイルに保存される"""
        result = self._add(run_cli, "work")

        assert result.exit_code == 0
        assert "## Profile Added" in result.output
        assert "- **Status**: Active" in result.output
        store = ProfileStore.load(temp_paths.config_file)
        assert store.active == "work"
        assert store.get("work").api_key == "work-secret-api-key"

    def test_add_second_profile_is_not_active(self, run_cli):
        self._add(run_cli, "work")
        result = run_cli(
            [
                "--format",
                "json",
                "profile",
                "add",
                "--name",
                "home",
                "--url",
                "https://home.example.com",
                "--api-key",
                "home-secret",
            ],
            env=NO_ENV,
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)["data"] == {
            "name": "home",
            "url": "https://home.example.com",
            "is_active": False,
        }

    def test_use_and_list(self, run_cli):
        """切り替え後の一覧は名前順でアクティブを示す"""
        self._add(run_cli, "work")
        self._add(run_cli, "home")

        result = run_cli(["profile", "use", "home"], env=NO_ENV)
        assert result.exit_code == 0
        assert "Now using profile: **home**" in result.output

        result = run_cli(["--format", "json", "profile", "list"], env=NO_ENV)
        data = json.loads(result.stdout)["data"]
        assert data["active"] == "home"
        assert [p["name"] for p in data["profiles"]] == ["home", "work"]
        assert data["profiles"][0]["is_active"] is True

    def test_use_unknown_profile(self, run_cli):
        """存在しないプロファイルへの切り替えは NotFound (終了コード 4)"""
        result = run_cli(["profile", "use", "nope"], env=NO_ENV)

        assert result.exit_code == 4
        assert "**Error: NOT_FOUND**" in result.output
        assert "rdm profile list" in result.output

    def test_delete_active_profile(self, run_cli, temp_paths):
        """アクティブを削除すると残りがアクティブになる"""
        self._add(run_cli, "work")
        self._add(run_cli, "home")

        result = run_cli(["profile", "delete", "--name", "work"], env=NO_ENV)

        assert result.exit_code == 0
        assert "Profile **work** has been removed." in result.output
        assert ProfileStore.load(temp_paths.config_file).active == "home"

    def test_list_empty(self, run_cli):
        result = run_cli(["profile", "list"], env=NO_ENV)
        assert result.exit_code == 0
        assert "*No profiles configured*" in result.output

    def test_non_utf8_profile_file(self, run_cli, temp_paths):
        """UTF-8 でないプロファイルファイルは CONFIG_ERROR (終了コード 3)"""
        temp_paths.config_dir.mkdir(parents=True)
        temp_paths.config_file.write_bytes(b"\xff\xfe bad")

        result = run_cli(["profile", "list"], env=NO_ENV)

        assert result.exit_code == 3
        assert "**Error: CONFIG_ERROR**" in result.output

    def test_profile_commands_do_not_need_credentials(self, run_cli, recorder):
        """profile コマンドは接続情報も HTTP も使わない"""
        handler = recorder({})
        result = run_cli(["profile", "list"], handler=handler, env=NO_ENV)

        assert result.exit_code == 0
        assert handler.requests == []


class TestConfigCommand:
    """config コマンドのテストクラス"""

    def test_from_environment(self, run_cli):
        result = run_cli(["config"])

        assert result.exit_code == 0
        assert "- **URL**: https://redmine.example.com" in result.output
        assert "- **API Key**: test...3456" in result.output
        assert "- **Source**: environment variables" in result.output
        assert "test-api-key-123456" not in result.output

    def test_from_cli_flags(self, run_cli):
        result = run_cli(
            ["--url", "https://cli.example.com", "--api-key", "short", "config"],
            env=NO_ENV,
        )

        assert result.exit_code == 0
        assert "- **API Key**: ****" in result.output
        assert "- **Source**: CLI flags" in result.output

    def test_from_profile(self, run_cli):
        run_cli(
            [
                "profile",
                "add",
                "--name",
                "work",
                "--url",
                "https://work.example.com",
                "--api-key",
                "work-secret-api-key",
            ],
            env=NO_ENV,
        )

        result = run_cli(["--format", "json", "config"], env=NO_ENV)

        data = json.loads(result.stdout)["data"]
        assert data["source"] == "config file"
        assert data["profile_name"] == "work"
        assert data["url"] == "https://work.example.com"

    def test_no_credentials(self, run_cli):
        """接続情報がなければ CONFIG_ERROR (終了コード 3)"""
        result = run_cli(["config"], env=NO_ENV)

        assert result.exit_code == 3
        assert "**Error: CONFIG_ERROR**" in result.output
        assert "rdm profile add" in result.output

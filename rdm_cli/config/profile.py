"""接続プロファイルの永続化"""

import tomllib
from pathlib import Path
from typing import Optional

import tomli_w
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..errors import ConfigError, IOFailure, NotFoundError

PROFILE_LIST_HINT = "Use `rdm profile list` to see available profiles."


def redact_api_key(api_key: str) -> str:
    """API キーを表示用に伏せ字にする"""
    if len(api_key) <= 8:
        return "****"
    return f"{api_key[:4]}...{api_key[-4:]}"


class Profile(BaseModel):
    """Redmine 接続プロファイル"""

    name: str
    url: str
    api_key: str

    def redacted_api_key(self) -> str:
        return redact_api_key(self.api_key)


class ProfileStore(BaseModel):
    """プロファイル一覧とアクティブプロファイル"""

    active: Optional[str] = Field(default=None)
    profiles: dict[str, Profile] = Field(default_factory=dict)

    @classmethod
    def load(cls, path: str | Path) -> "ProfileStore":
        """TOML ファイルから読み込み（ファイルが無ければ空のストア）"""
        path = Path(path)
        if not path.exists():
            return cls()

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
            return cls.model_validate(data)
        except (
            tomllib.TOMLDecodeError,
            UnicodeDecodeError,
            PydanticValidationError,
        ) as e:
            raise ConfigError(
                f"Invalid profile file {path}: {e}",
                hint="Fix or remove the file, then re-add profiles with `rdm profile add`.",
            ) from e
        except OSError as e:
            raise IOFailure(f"Failed to read {path}: {e}") from e

    def save(self, path: str | Path) -> None:
        """TOML ファイルへ全体を書き出す"""
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                tomli_w.dump(self.model_dump(exclude_none=True), f)
        except OSError as e:
            raise IOFailure(f"Failed to write {path}: {e}") from e

    def add(self, profile: Profile) -> None:
        """プロファイルを追加または上書き（最初の1件はアクティブになる）"""
        self.profiles[profile.name] = profile
        if self.active is None:
            self.active = profile.name

    def delete(self, name: str) -> None:
        """プロファイルを削除"""
        if name not in self.profiles:
            raise NotFoundError("Profile", name, hint=PROFILE_LIST_HINT)

        del self.profiles[name]
        # アクティブを消した場合は残りのどれかに切り替える
        if self.active == name:
            self.active = next(iter(self.profiles), None)

    def set_active(self, name: str) -> None:
        if name not in self.profiles:
            raise NotFoundError("Profile", name, hint=PROFILE_LIST_HINT)
        self.active = name

    def get_active(self) -> Optional[Profile]:
        if self.active is None:
            return None
        return self.profiles.get(self.active)

    def get(self, name: str) -> Optional[Profile]:
        return self.profiles.get(name)

    def names(self) -> list[str]:
        return sorted(self.profiles)

"""作業分類（time entry activity）のローカルキャッシュ"""

import json
import logging
import time
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import Activity, parse_unsigned

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 24 * 60 * 60


class CacheFormatError(Exception):
    """キャッシュファイルが壊れている"""

    pass


class ActivityCache(BaseModel):
    """作業分類一覧と取得時刻"""

    updated_at: int
    activities: list[Activity] = Field(default_factory=list)

    @classmethod
    def new(cls, activities: list[Activity]) -> "ActivityCache":
        return cls(updated_at=int(time.time()), activities=activities)

    @classmethod
    def load(cls, path: str | Path) -> Optional["ActivityCache"]:
        """キャッシュを読み込む（ファイルが無ければ None）"""
        path = Path(path)
        if not path.exists():
            return None

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return cls.model_validate(data)
        except (
            json.JSONDecodeError,
            UnicodeDecodeError,
            PydanticValidationError,
        ) as e:
            raise CacheFormatError(f"Invalid activity cache {path}: {e}") from e

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.model_dump_json(indent=2, exclude_none=True))

    def _age(self, now: Optional[int]) -> int:
        if now is None:
            now = int(time.time())
        return max(now - self.updated_at, 0)

    def is_valid(self, now: Optional[int] = None) -> bool:
        """取得から24時間未満なら有効"""
        return self._age(now) < CACHE_TTL_SECONDS

    def age_string(self, now: Optional[int] = None) -> str:
        age = self._age(now)
        if age < 60:
            return f"{age}s ago"
        if age < 3600:
            return f"{age // 60}m ago"
        return f"{age // 3600}h ago"

    def find_by_id(self, activity_id: int) -> Optional[Activity]:
        for activity in self.activities:
            if activity.id == activity_id:
                return activity
        return None

    def find_by_name(self, name: str) -> Optional[Activity]:
        lowered = name.lower()
        for activity in self.activities:
            if activity.name.lower() == lowered:
                return activity
        return None

    def resolve(self, token: str) -> Optional[Activity]:
        """数値なら ID を優先し、見つからなければ名前で探す"""
        activity_id = parse_unsigned(token)
        if activity_id is not None:
            activity = self.find_by_id(activity_id)
            if activity is not None:
                return activity
        return self.find_by_name(token)


def resolve_activity(cache: ActivityCache, token: str) -> int:
    """作業分類の名前または ID を ID に解決"""
    activity = cache.resolve(token)
    if activity is None:
        raise ValidationError(
            f"Unknown activity: '{token}'",
            hint="Use `rdm time activities list` to see available activities.",
        )
    logger.debug("Resolved activity %r to id %d", token, activity.id)
    return activity.id

"""--format json 用のエンベロープ"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from ..errors import RedmineCLIError


class Meta(BaseModel):
    """ページング等のメタデータ"""

    total_count: Optional[int] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    next_offset: Optional[int] = None

    @classmethod
    def paginated(cls, total_count: int, limit: int, offset: int) -> "Meta":
        """次ページがある場合のみ next_offset を設定"""
        next_offset = offset + limit if offset + limit < total_count else None
        return cls(
            total_count=total_count,
            limit=limit,
            offset=offset,
            next_offset=next_offset,
        )


class ErrorInfo(BaseModel):
    """エラー情報"""

    code: str
    message: str
    details: Optional[dict[str, Any]] = None

    @classmethod
    def from_error(cls, error: RedmineCLIError) -> "ErrorInfo":
        return cls(code=error.code, message=str(error), details=error.details())


class Envelope(BaseModel):
    """{ok, data, meta, error}"""

    ok: bool
    data: Any = None
    meta: Meta = Field(default_factory=Meta)
    error: Optional[ErrorInfo] = None

    @classmethod
    def success(cls, data: Any, meta: Optional[Meta] = None) -> "Envelope":
        return cls(ok=True, data=data, meta=meta or Meta())

    @classmethod
    def failure(cls, error: RedmineCLIError) -> "Envelope":
        return cls(ok=False, error=ErrorInfo.from_error(error))

    def to_dict(self) -> dict[str, Any]:
        """meta の未設定項目と error の空 details は出力しない"""
        data = self.data
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json")

        payload: dict[str, Any] = {
            "ok": self.ok,
            "data": data,
            "meta": self.meta.model_dump(exclude_none=True),
            "error": None,
        }
        if self.error is not None:
            payload["error"] = self.error.model_dump(exclude_none=True)
        return payload

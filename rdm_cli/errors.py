"""エラー定義と終了コード"""

from typing import Any, Optional

# 終了コード
EXIT_VALIDATION = 2
EXIT_AUTH = 3
EXIT_NOT_FOUND = 4
EXIT_API = 5


class RedmineCLIError(Exception):
    """CLI 共通の基底エラー"""

    code = "ERROR"
    exit_code = EXIT_API

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    @property
    def label(self) -> str:
        return "Error"

    def __str__(self) -> str:
        return f"{self.label}: {self.message}"

    def details(self) -> Optional[dict[str, Any]]:
        """JSON エンベロープの details に載せる情報"""
        if self.hint:
            return {"hint": self.hint}
        return None


class ValidationError(RedmineCLIError):
    """引数の不足・不正"""

    code = "VALIDATION_ERROR"
    exit_code = EXIT_VALIDATION

    @property
    def label(self) -> str:
        return "Validation error"


class ConfigError(RedmineCLIError):
    """接続情報が解決できない、またはプロファイルファイルが壊れている"""

    code = "CONFIG_ERROR"
    exit_code = EXIT_AUTH

    @property
    def label(self) -> str:
        return "Configuration error"


class AuthError(RedmineCLIError):
    """401 / 403"""

    code = "AUTH_ERROR"
    exit_code = EXIT_AUTH

    @property
    def label(self) -> str:
        return "Authentication error"


class NotFoundError(RedmineCLIError):
    """404 または名前で指定したエンティティが存在しない"""

    code = "NOT_FOUND"
    exit_code = EXIT_NOT_FOUND

    def __init__(self, resource: str, identifier: Any, hint: Optional[str] = None):
        super().__init__(f"{resource} #{identifier}", hint)
        self.resource = resource
        self.identifier = str(identifier)

    @property
    def label(self) -> str:
        return "Not found"


class RedmineAPIError(RedmineCLIError):
    """Redmine API エラー"""

    code = "API_ERROR"
    exit_code = EXIT_API

    def __init__(
        self, message: str, status: Optional[int] = None, hint: Optional[str] = None
    ):
        super().__init__(message, hint)
        self.status = status

    @property
    def label(self) -> str:
        return "API error"

    def details(self) -> Optional[dict[str, Any]]:
        details = super().details() or {}
        if self.status is not None:
            details["status"] = self.status
        return details or None


class NetworkError(RedmineCLIError):
    """接続失敗・タイムアウト・リトライ上限"""

    code = "NETWORK_ERROR"
    exit_code = EXIT_API

    @property
    def label(self) -> str:
        return "Network error"


class IOFailure(RedmineCLIError):
    """ローカルファイルの読み書き失敗"""

    code = "IO_ERROR"
    exit_code = EXIT_API

    @property
    def label(self) -> str:
        return "IO error"


class DryRunExit(RedmineCLIError):
    """--dry-run で送信を止めたことを示す早期終了"""

    code = "DRY_RUN"
    exit_code = EXIT_VALIDATION

    def __init__(self, method: str, path: str, body: Optional[str] = None):
        super().__init__(f"No request sent: {method} {path}")
        self.method = method
        self.path = path
        self.body = body

    @property
    def label(self) -> str:
        return "Dry run"

    def details(self) -> Optional[dict[str, Any]]:
        details: dict[str, Any] = {"method": self.method, "path": self.path}
        if self.body is not None:
            details["body"] = self.body
        return details

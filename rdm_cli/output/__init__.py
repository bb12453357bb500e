"""出力フォーマット（Markdown / JSON エンベロープ）"""

from .envelope import Envelope, ErrorInfo, Meta

__all__ = ["Envelope", "ErrorInfo", "Meta"]

"""API クライアントモジュール"""

from .client import RedmineClient, ResourceRef, error_for_status

__all__ = ["RedmineClient", "ResourceRef", "error_for_status"]

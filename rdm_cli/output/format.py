"""出力形式の切り替えとコンソール出力"""

import json
from enum import Enum
from typing import Any, Optional

from rich.console import Console

from ..errors import RedmineCLIError
from .envelope import Envelope, Meta
from .markdown import format_error_markdown, render_markdown

# Markdown をそのまま流すため rich のマークアップ解釈と折り返しは無効化する
console = Console(markup=False, emoji=False, highlight=False, soft_wrap=True)
err_console = Console(
    stderr=True, markup=False, emoji=False, highlight=False, soft_wrap=True
)


class OutputFormat(str, Enum):
    """--format の選択肢"""

    markdown = "markdown"
    json = "json"


def _to_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def render_success(fmt: OutputFormat, data: Any, meta: Optional[Meta] = None) -> str:
    """成功結果を文字列化"""
    meta = meta or Meta()
    if fmt == OutputFormat.json:
        return _to_json(Envelope.success(data, meta).to_dict()) + "\n"
    return render_markdown(data, meta)


def render_error(fmt: OutputFormat, error: RedmineCLIError) -> str:
    """エラーを文字列化"""
    if fmt == OutputFormat.json:
        return _to_json(Envelope.failure(error).to_dict()) + "\n"
    return format_error_markdown(error)


def print_success(fmt: OutputFormat, data: Any, meta: Optional[Meta] = None) -> None:
    """成功結果を stdout へ出力"""
    console.print(render_success(fmt, data, meta), end="")


def print_error(fmt: OutputFormat, error: RedmineCLIError) -> None:
    """エラーを stderr へ出力"""
    err_console.print(render_error(fmt, error), end="")

"""
ユーティリティ関数

共通で使用される汎用的な関数を提供します。
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from rich.console import Console

console = Console()
# エラーメッセージは標準エラー出力に表示する
err_console = Console(stderr=True)


class YamlLoadError(ValueError):
    """YAMLファイルの読み込みまたは解析に失敗した場合に発生する例外。"""

    pass


def load_yaml_file(file_path: Path) -> dict[str, Any] | None:
    """
    YAMLファイルを読み込む。

    ファイルが存在しない場合はNoneを返す。
    空ファイルの場合は空の辞書を返す。

    Args:
        file_path: 読み込むYAMLファイルのパス

    Returns:
        パースされたYAML（辞書）、ファイルが存在しない場合はNone

    Raises:
        YamlLoadError: 読み込みエラー、構文エラー、またはトップレベルが辞書でない場合
    """
    if not file_path.exists():
        return None

    try:
        with open(file_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise YamlLoadError(f"Invalid YAML in {file_path}: {e}") from e
    except OSError as e:
        raise YamlLoadError(f"Could not read {file_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise YamlLoadError(f"Expected a mapping at the top level of {file_path}")

    return data


def dump_yaml(data: dict[str, Any]) -> str:
    """
    辞書をYAML文字列に変換する。

    キーの順序は保持される。

    Args:
        data: 変換する辞書

    Returns:
        YAML形式の文字列
    """
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)

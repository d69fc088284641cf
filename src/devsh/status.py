"""
コンテナステータス表示モジュール
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from rich.markup import escape

from .config import ResolvedConfig
from .container import (
    DOCKER_ID_SHORT_SIZE,
    RuntimeOptions,
    get_container_id,
    is_container_present,
    is_container_running,
)
from .utils import console


class ContainerState(Enum):
    ABSENT = "absent"
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class ContainerStatus:
    """Dockerから取得したコンテナの状態"""

    name: str
    state: ContainerState
    container_id: str | None = None

    @property
    def short_id(self) -> str:
        return (self.container_id or "")[:DOCKER_ID_SHORT_SIZE]


def get_container_status(name: str, options: RuntimeOptions) -> ContainerStatus:
    """
    コンテナの状態を取得する。

    存在確認を行い、存在する場合のみ実行状態とIDを問い合わせる。
    このツールの外で停止されたコンテナもSTOPPEDとして報告する。

    Args:
        name: コンテナ名
        options: ランタイムオプション

    Returns:
        コンテナの状態
    """
    if not is_container_present(name, options):
        return ContainerStatus(name, ContainerState.ABSENT)

    state = ContainerState.RUNNING if is_container_running(name, options) else ContainerState.STOPPED
    return ContainerStatus(name, state, get_container_id(name, options))


def format_status(status: ContainerStatus) -> str:
    if status.state is ContainerState.RUNNING:
        return f"* Dev container {status.name} is running ({status.short_id})"
    if status.state is ContainerState.STOPPED:
        return f"* Dev container {status.name} is stopped ({status.short_id})"
    return f"* Dev container {status.name} does not exist (stopped and/or removed)"


def display_status(config: ResolvedConfig, options: RuntimeOptions) -> ContainerStatus:
    """開発コンテナの状態を1行で表示する。"""
    status = get_container_status(config.dev_container_name, options)

    line = escape(format_status(status))
    if status.state is ContainerState.RUNNING:
        console.print(f"[green]{line}[/green]", soft_wrap=True)
    else:
        console.print(line, soft_wrap=True)

    return status

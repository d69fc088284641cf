"""
コンテナ操作モジュール

Docker CLIのコマンド構築と実行、および開発コンテナの操作に関する機能を提供します。
"""

from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass
from typing import Any, Callable

from rich.markup import escape

from .config import ConfigError, DevshError, ResolvedConfig, validate_image
from .utils import console

DOCKER_CLI = "docker"
DOCKER_ID_SHORT_SIZE = 12  # 16進数の文字数

STATE_FORMAT = "{{.State.Status}}"
ID_FORMAT = "{{.Id}}"


class ContainerCommandError(DevshError):
    """
    Dockerコマンドの実行に失敗した場合に発生する例外。

    終了コードが判明している場合はそれをプロセスの終了コードとして使用する。
    """

    def __init__(self, cmd: list[str], returncode: int | None = None, stderr: str = "") -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr.strip()
        if returncode is not None and returncode < 0:
            # シグナルで終了した場合はシェルと同じく 128 + シグナル番号
            self.exit_code = 128 - returncode
        elif returncode:
            self.exit_code = returncode

        message = f"Command failed: {shlex.join(cmd)}"
        if returncode is not None:
            message += f" (exit code {returncode})"
        if self.stderr:
            message += f"\n{self.stderr}"
        super().__init__(message)


@dataclass(frozen=True)
class RuntimeOptions:
    """コンテナランタイムの実行オプション"""

    verbose: bool = False
    docker_cli: str = DOCKER_CLI


def _docker(options: RuntimeOptions | None, *args: str) -> list[str]:
    cli = options.docker_cli if options else DOCKER_CLI
    return [cli, *args]


def build_inspect_command(
    name: str, fmt: str | None = None, options: RuntimeOptions | None = None
) -> list[str]:
    """
    docker inspectコマンドを構築する。

    同名のイメージやボリュームに一致しないよう、対象はコンテナに限定する。

    Args:
        name: コンテナ名
        fmt: --formatに渡すGoテンプレート（省略時は指定しない）
        options: ランタイムオプション

    Returns:
        コマンドのリスト
    """
    cmd = _docker(options, "inspect", "--type", "container")
    if fmt:
        cmd.extend(["--format", fmt])
    cmd.append(name)
    return cmd


def build_run_command(config: ResolvedConfig, options: RuntimeOptions | None = None) -> list[str]:
    """
    開発コンテナを起動するdocker runコマンドを構築する。

    コンテナは常にデタッチモードで起動する。シェルへの接続は
    build_exec_commandで別途行う。
    network, dns, ports, volumesは値がある場合のみフラグを追加し、
    リストの値は順序を保って1要素につき1フラグとなる。

    Args:
        config: マージ済みの設定
        options: ランタイムオプション

    Returns:
        コマンドのリスト
    """
    cmd = _docker(
        options,
        "run",
        "--name",
        config.dev_container_name,
        "--hostname",
        config.dev_container_host,
        "--workdir",
        config.dev_container_dir,
        "--detach",
    )
    if config.dev_container_network:
        cmd.extend(["--network", config.dev_container_network])
    if config.dev_container_dns:
        cmd.extend(["--dns", config.dev_container_dns])
    for port in config.dev_container_ports:
        cmd.extend(["--publish", port])
    for volume in config.dev_container_volumes:
        cmd.extend(["--volume", volume])
    cmd.append(config.image)
    return cmd


def build_exec_command(config: ResolvedConfig, options: RuntimeOptions | None = None) -> list[str]:
    """
    コンテナ内でシェルを起動するdocker execコマンドを構築する。

    shell_cmdはシェルの単語分割規則で引数に分割される（例: "bash -l"）。

    Raises:
        ConfigError: shell_cmdを分割できない場合、または空の場合
    """
    try:
        shell_words = shlex.split(config.shell_cmd)
    except ValueError as e:
        raise ConfigError(f"Invalid shell_cmd {config.shell_cmd!r}: {e}") from e
    if not shell_words:
        raise ConfigError("shell_cmd is empty")

    return _docker(
        options,
        "exec",
        "--interactive",
        "--tty",
        config.dev_container_name,
        *shell_words,
    )


def build_start_command(name: str, options: RuntimeOptions | None = None) -> list[str]:
    return _docker(options, "start", name)


def build_stop_command(name: str, options: RuntimeOptions | None = None) -> list[str]:
    return _docker(options, "stop", name)


def build_rm_command(name: str, options: RuntimeOptions | None = None) -> list[str]:
    return _docker(options, "rm", name)


_BUILDERS: dict[str, Callable[..., list[str]]] = {
    "inspect": lambda config, options, fmt=None: build_inspect_command(
        config.dev_container_name, fmt, options
    ),
    "run": lambda config, options: build_run_command(config, options),
    "exec": lambda config, options: build_exec_command(config, options),
    "start": lambda config, options: build_start_command(config.dev_container_name, options),
    "stop": lambda config, options: build_stop_command(config.dev_container_name, options),
    "rm": lambda config, options: build_rm_command(config.dev_container_name, options),
}


def build_command(
    operation: str,
    config: ResolvedConfig,
    options: RuntimeOptions | None = None,
    **kwargs: Any,
) -> list[str]:
    """
    操作名からDockerコマンドを構築する。

    Args:
        operation: inspect, run, exec, start, stop, rm のいずれか
        config: マージ済みの設定
        options: ランタイムオプション
        **kwargs: 操作固有の引数（inspectのfmtなど）

    Returns:
        コマンドのリスト

    Raises:
        ValueError: 未知の操作が指定された場合
    """
    try:
        builder = _BUILDERS[operation]
    except KeyError:
        raise ValueError(f"Unknown docker operation: {operation}") from None
    return builder(config, options, **kwargs)


def run_command(
    cmd: list[str],
    options: RuntimeOptions,
    check: bool = False,
    capture_output: bool = True,
) -> subprocess.CompletedProcess[str]:
    """
    コマンドを実行し、結果を返す。

    verboseが有効な場合は実行前にコマンドを表示する。

    Args:
        cmd: 実行するコマンドのリスト
        options: ランタイムオプション
        check: エラー時に例外を発生させるかどうか
        capture_output: 出力をキャプチャするかどうか

    Returns:
        コマンドの実行結果

    Raises:
        ContainerCommandError: 実行ファイルが見つからない場合、
            またはcheck=Trueで終了コードが0以外の場合
    """
    if options.verbose:
        console.print(f"[dim]+ {escape(shlex.join(cmd))}[/dim]", soft_wrap=True, emoji=False)

    try:
        result = subprocess.run(cmd, check=False, capture_output=capture_output, text=True)
    except FileNotFoundError as e:
        raise ContainerCommandError(cmd, stderr=f"Executable not found: {cmd[0]}") from e

    if check and result.returncode != 0:
        raise ContainerCommandError(cmd, result.returncode, result.stderr or "")

    return result


def run_capture(cmd: list[str], options: RuntimeOptions) -> str:
    """
    コマンドを実行し、前後の空白を除いた標準出力を返す。

    Raises:
        ContainerCommandError: 終了コードが0以外の場合
    """
    result = run_command(cmd, options, check=True)
    return (result.stdout or "").strip()


def run_interactive(cmd: list[str], options: RuntimeOptions) -> int:
    """
    端末を接続した状態でコマンドを実行する。

    標準入出力はこのプロセスのものをそのまま引き継ぐ。
    子プロセスが終了するまでブロックする。

    Returns:
        終了コード（常に0）

    Raises:
        ContainerCommandError: 終了コードが0以外の場合
    """
    result = run_command(cmd, options, check=True, capture_output=False)
    return result.returncode


def is_container_present(name: str, options: RuntimeOptions) -> bool:
    """
    指定した名前のコンテナが存在するか（実行中・停止中を問わず）確認する。

    inspectが失敗した場合は存在しないとみなす。
    """
    result = run_command(build_inspect_command(name, options=options), options)
    return result.returncode == 0


def is_container_running(name: str, options: RuntimeOptions) -> bool:
    """
    指定した名前のコンテナが実行中か確認する。

    inspectが失敗した場合は実行中でないとみなす。
    """
    result = run_command(build_inspect_command(name, STATE_FORMAT, options), options)
    if result.returncode != 0:
        return False
    return (result.stdout or "").strip() == "running"


def get_container_id(name: str, options: RuntimeOptions) -> str:
    """指定した名前のコンテナのIDを取得する。"""
    return run_capture(build_inspect_command(name, ID_FORMAT, options), options)


def get_container_id_short(name: str, options: RuntimeOptions) -> str:
    """指定した名前のコンテナの短縮ID（先頭12文字）を取得する。"""
    return get_container_id(name, options)[:DOCKER_ID_SHORT_SIZE]


def ensure_container(config: ResolvedConfig, options: RuntimeOptions) -> None:
    """
    開発コンテナが実行されていることを確認し、必要に応じて作成・起動する。

    - 存在しない場合: イメージを検証してからdocker runで作成する
    - 停止している場合: docker startで再起動する
    - 実行中の場合: 何もしない

    Raises:
        ConfigError: コンテナ作成が必要でimageが指定されていない場合
        ContainerCommandError: Dockerコマンドが失敗した場合
    """
    name = config.dev_container_name

    if not is_container_present(name, options):
        validate_image(config)
        console.print(f"[yellow]Starting dev container {escape(name)}...[/yellow]")
        run_capture(build_run_command(config, options), options)
        return

    if not is_container_running(name, options):
        console.print(f"[yellow]Dev container {escape(name)} is stopped, restarting...[/yellow]")
        run_capture(build_start_command(name, options), options)


def open_shell(config: ResolvedConfig, options: RuntimeOptions) -> int:
    """
    コンテナ内で対話シェルを開く。

    Returns:
        シェルの終了コード

    Raises:
        ContainerCommandError: シェルがエラーで終了した場合
    """
    return run_interactive(build_exec_command(config, options), options)


def stop_and_remove_container(name: str, options: RuntimeOptions) -> bool:
    """
    コンテナが存在する場合は停止し、削除する。

    Args:
        name: コンテナ名
        options: ランタイムオプション

    Returns:
        コンテナを削除した場合True、もともと存在しなかった場合False

    Raises:
        ContainerCommandError: 停止または削除に失敗した場合
    """
    if not is_container_present(name, options):
        return False

    console.print(f"[yellow]Stopping dev container {escape(name)}...[/yellow]")
    run_capture(build_stop_command(name, options), options)
    run_capture(build_rm_command(name, options), options)
    return True

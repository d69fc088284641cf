"""
CLI メインモジュール

開発コンテナ管理ツールのコマンドラインインターフェースを提供します。
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import click
from rich.markup import escape

from . import __version__
from .config import (
    GLOBAL_CONFIG_PATH,
    DevshError,
    ResolvedConfig,
    config_to_dict,
    load_config,
    validate_image,
)
from .container import RuntimeOptions, ensure_container, open_shell, stop_and_remove_container
from .status import display_status
from .utils import console, dump_yaml, err_console


@dataclass
class AppContext:
    """サブコマンド間で共有する実行コンテキスト"""

    workspace: Path
    global_config_path: Path
    options: RuntimeOptions
    image: Optional[str] = None

    def load(self, image: Optional[str] = None) -> ResolvedConfig:
        """
        現在のワークスペースの設定を読み込む。

        サブコマンドの--imageがグループの--imageより優先される。
        """
        overrides = {}
        if image or self.image:
            overrides["image"] = image or self.image
        return load_config(self.workspace, self.global_config_path, overrides)


class DevshGroup(click.Group):
    """
    devshのエラーを一箇所で処理するコマンドグループ。

    DevshErrorはメッセージを表示し、エラーごとの終了コードで終了する。
    """

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except DevshError as e:
            err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}", soft_wrap=True)
            ctx.exit(e.exit_code)


@click.group(cls=DevshGroup, invoke_without_command=True)
@click.version_option(version=__version__, prog_name="devsh")
@click.option("-v", "--verbose", is_flag=True, help="実行するdockerコマンドを表示")
@click.option("-i", "--image", help="開発コンテナに使用するdockerイメージ")
@click.option(
    "--global-config",
    type=click.Path(dir_okay=False, path_type=Path),
    default=GLOBAL_CONFIG_PATH,
    show_default=True,
    help="グローバル設定ファイル",
)
@click.option(
    "--workspace",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="ワークスペースフォルダ（デフォルト: カレントディレクトリ）",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    image: Optional[str],
    global_config: Path,
    workspace: Optional[Path],
) -> None:
    """
    開発コンテナでシェルを実行するツール

    プロジェクトをマウントした開発コンテナを起動し、その中でシェルを開きます。

    \b
    例:
      devsh start  # 開発コンテナを起動
      devsh open   # 開発コンテナでシェルを開く
      devsh        # 起動とシェルの接続を一度に行う
    """
    app = AppContext(
        workspace=workspace or Path.cwd(),
        global_config_path=global_config,
        options=RuntimeOptions(verbose=verbose),
        image=image,
    )
    ctx.obj = app

    if ctx.invoked_subcommand is None:
        # デフォルト動作: 起動 → シェル → ステータス
        resolved = app.load()
        ensure_container(resolved, app.options)
        open_shell(resolved, app.options)
        display_status(resolved, app.options)


@cli.command()
@click.pass_obj
def config(app: AppContext) -> None:
    """
    現在のプロジェクト設定を表示する。

    グローバル設定（~/.devsh/config）とプロジェクトルートの.devshファイルを
    マージした結果をYAML形式で表示します。

    \b
    .devshファイルの形式（すべてのキーは省略可能）:
      image: 開発コンテナに使用するdockerイメージ
      name: プロジェクト名（省略時はディレクトリ名）
      shell_cmd: コンテナ内で起動するシェル（例: /bin/bash）
      dev_container_host: 開発コンテナのホスト名
      dev_container_dir: コンテナ内でプロジェクトをマウントするパス
      dev_container_name: dockerでの開発コンテナ名
      dev_container_volumes: 追加でマウントするボリューム
      dev_container_network: 開発コンテナのdockerネットワーク
      dev_container_dns: 開発コンテナで使用するDNSサーバー
      dev_container_ports: 公開するポート（例: "8080:80"）
    """
    resolved = app.load()
    console.print(
        "---\n" + dump_yaml(config_to_dict(resolved)),
        markup=False,
        highlight=False,
        emoji=False,
        soft_wrap=True,
        end="",
    )


@cli.command()
@click.option("-i", "--image", help="開発コンテナに使用するdockerイメージ")
@click.pass_obj
def start(app: AppContext, image: Optional[str]) -> None:
    """
    現在のプロジェクトの開発コンテナを起動する。

    コンテナが存在しない場合は作成し、停止している場合は再起動します。
    シェルには接続しません。
    """
    resolved = app.load(image)
    # コンテナを作成するコマンドのため、dockerを呼び出す前に検証する
    validate_image(resolved)
    ensure_container(resolved, app.options)
    display_status(resolved, app.options)


@cli.command(name="open")
@click.pass_obj
def open_(app: AppContext) -> None:
    """
    開発コンテナでシェルを開く。

    コンテナが存在しない場合は先に起動します。
    """
    resolved = app.load()
    ensure_container(resolved, app.options)
    open_shell(resolved, app.options)
    display_status(resolved, app.options)


@cli.command()
@click.pass_obj
def status(app: AppContext) -> None:
    """開発コンテナのステータスを表示する。"""
    resolved = app.load()
    display_status(resolved, app.options)


@cli.command()
@click.pass_obj
def stop(app: AppContext) -> None:
    """
    開発コンテナを停止・削除する。
    """
    resolved = app.load()
    stop_and_remove_container(resolved.dev_container_name, app.options)
    display_status(resolved, app.options)


if __name__ == "__main__":
    cli()

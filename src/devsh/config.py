"""
設定管理モジュール

グローバル設定（~/.devsh/config）とプロジェクト設定（.devsh）を読み込み、
コマンドラインオプションと合わせて一つの設定にマージする機能を提供します。
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

from .utils import YamlLoadError, load_yaml_file

GLOBAL_CONFIG_PATH = Path.home() / ".devsh" / "config"
PROJECT_CONFIG_FILENAME = ".devsh"

DEFAULT_SHELL_CMD = "/bin/bash"


class DevshError(Exception):
    """
    devshのすべてのエラーの基底クラス。

    exit_codeはCLIのトップレベルでプロセスの終了コードとして使用される。
    """

    exit_code = 1


class ConfigError(DevshError):
    """設定ファイルが不正、または必須の設定値が不足している場合に発生する例外。"""

    pass


@dataclass(frozen=True)
class GlobalConfig:
    """マシン全体のデフォルト設定"""

    image: str = ""
    shell_cmd: str = DEFAULT_SHELL_CMD
    dev_container_volumes: list[str] = field(default_factory=list)
    dev_container_network: str = ""
    dev_container_dns: str = ""


@dataclass(frozen=True)
class ProjectConfig:
    """プロジェクトごとの設定。空の値はグローバル設定で補完される。"""

    image: str = ""
    name: str = ""
    shell_cmd: str = ""
    dev_container_host: str = ""
    dev_container_dir: str = ""
    dev_container_name: str = ""
    dev_container_volumes: list[str] = field(default_factory=list)
    dev_container_network: str = ""
    dev_container_dns: str = ""
    dev_container_ports: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ResolvedConfig:
    """
    すべての設定ソースをマージした結果。

    imageを除くname, shell_cmd, dev_container_host, dev_container_dir,
    dev_container_nameは常に空でない。dev_container_volumesの先頭は
    常にプロジェクトディレクトリのマウント（プライマリボリューム）となる。
    """

    image: str
    name: str
    shell_cmd: str
    dev_container_host: str
    dev_container_dir: str
    dev_container_name: str
    dev_container_volumes: list[str]
    dev_container_network: str
    dev_container_dns: str
    dev_container_ports: list[str]


def _get_str(data: dict[str, Any], key: str, source: Path) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise ConfigError(f"'{key}' in {source} must be a string")
    return str(value)


def _get_list(
    data: dict[str, Any], key: str, source: Path, strings_only: bool = False
) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' in {source} must be a list")
    items = [item for item in value if item is not None]
    if strings_only:
        # YAML 1.1では引用符のない 2222:22 は60進数の整数として読まれる
        for item in items:
            if not isinstance(item, str):
                raise ConfigError(
                    f"'{key}' in {source} must contain quoted strings, got {item!r}"
                )
    return [str(item) for item in items]


def _load(path: Path) -> Optional[dict[str, Any]]:
    try:
        return load_yaml_file(path)
    except YamlLoadError as e:
        raise ConfigError(str(e)) from e


def load_global_config(path: Path = GLOBAL_CONFIG_PATH) -> GlobalConfig:
    """
    グローバル設定を読み込む。

    ファイルが存在しない場合や値が空の場合は組み込みのデフォルト値を使用する。
    プロジェクト専用のキー（name, dev_container_dir など）は無視される。

    Args:
        path: グローバル設定ファイルのパス

    Returns:
        グローバル設定

    Raises:
        ConfigError: 設定ファイルが不正な場合
    """
    data = _load(path)
    if data is None:
        return GlobalConfig()

    defaults = GlobalConfig()
    return GlobalConfig(
        image=_get_str(data, "image", path) or defaults.image,
        shell_cmd=_get_str(data, "shell_cmd", path) or defaults.shell_cmd,
        dev_container_volumes=_get_list(data, "dev_container_volumes", path),
        dev_container_network=_get_str(data, "dev_container_network", path)
        or defaults.dev_container_network,
        dev_container_dns=_get_str(data, "dev_container_dns", path) or defaults.dev_container_dns,
    )


def load_project_config(workspace: Path) -> ProjectConfig:
    """
    プロジェクト設定（ワークスペース直下の.devsh）を読み込む。

    Args:
        workspace: ワークスペースのパス

    Returns:
        プロジェクト設定（ファイルが存在しない場合はすべて空）

    Raises:
        ConfigError: 設定ファイルが不正な場合
    """
    path = workspace / PROJECT_CONFIG_FILENAME
    data = _load(path)
    if data is None:
        return ProjectConfig()

    return ProjectConfig(
        image=_get_str(data, "image", path),
        name=_get_str(data, "name", path),
        shell_cmd=_get_str(data, "shell_cmd", path),
        dev_container_host=_get_str(data, "dev_container_host", path),
        dev_container_dir=_get_str(data, "dev_container_dir", path),
        dev_container_name=_get_str(data, "dev_container_name", path),
        dev_container_volumes=_get_list(data, "dev_container_volumes", path),
        dev_container_network=_get_str(data, "dev_container_network", path),
        dev_container_dns=_get_str(data, "dev_container_dns", path),
        dev_container_ports=_get_list(data, "dev_container_ports", path, strings_only=True),
    )


def primary_volume(workspace: Path, dev_container_dir: str) -> str:
    """
    プロジェクトディレクトリをコンテナ内にマウントするボリューム指定を返す。

    例: primary_volume(Path("/home/alex/devsh"), "/devsh") -> "/home/alex/devsh:/devsh"
    """
    return f"{workspace.resolve()}:{dev_container_dir}"


def resolve_config(
    global_config: GlobalConfig,
    project_config: ProjectConfig,
    overrides: Optional[dict[str, str]],
    workspace: Path,
) -> ResolvedConfig:
    """
    すべての設定をマージする。

    マージ順序（優先度順、最初の空でない値を採用）:
    1. コマンドラインオプション
    2. プロジェクト設定（.devsh）
    3. グローバル設定（~/.devsh/config、組み込みデフォルトを含む）
    4. ディレクトリ名から導出される規約値

    ボリュームは上書きせずに結合する:
    プライマリボリューム + プロジェクト設定 + グローバル設定

    この関数は失敗しない。必須値の検証は値を必要とするコマンド側で行う。

    Args:
        global_config: グローバル設定
        project_config: プロジェクト設定
        overrides: コマンドラインで指定された値（フィールド名 -> 値）
        workspace: ワークスペース（プロジェクトディレクトリ）のパス

    Returns:
        マージされた設定
    """
    overrides = overrides or {}
    workspace = workspace.resolve()

    def pick(key: str, *candidates: str) -> str:
        for value in (overrides.get(key, ""), *candidates):
            if value and value.strip():
                return value
        return ""

    name = pick("name", project_config.name) or workspace.name
    dev_container_dir = pick("dev_container_dir", project_config.dev_container_dir) or f"/{name}"

    volumes = [primary_volume(workspace, dev_container_dir)]
    volumes.extend(project_config.dev_container_volumes)
    volumes.extend(global_config.dev_container_volumes)

    return ResolvedConfig(
        image=pick("image", project_config.image, global_config.image),
        name=name,
        shell_cmd=pick("shell_cmd", project_config.shell_cmd, global_config.shell_cmd)
        or DEFAULT_SHELL_CMD,
        dev_container_host=pick("dev_container_host", project_config.dev_container_host) or name,
        dev_container_dir=dev_container_dir,
        dev_container_name=pick("dev_container_name", project_config.dev_container_name) or name,
        dev_container_volumes=volumes,
        dev_container_network=pick(
            "dev_container_network",
            project_config.dev_container_network,
            global_config.dev_container_network,
        ),
        dev_container_dns=pick(
            "dev_container_dns",
            project_config.dev_container_dns,
            global_config.dev_container_dns,
        ),
        dev_container_ports=list(project_config.dev_container_ports),
    )


def load_config(
    workspace: Path,
    global_config_path: Path = GLOBAL_CONFIG_PATH,
    overrides: Optional[dict[str, str]] = None,
) -> ResolvedConfig:
    """
    ワークスペースの設定を読み込み、マージ済みの設定を返す。

    Args:
        workspace: ワークスペースのパス
        global_config_path: グローバル設定ファイルのパス
        overrides: コマンドラインで指定された値

    Returns:
        マージされた設定
    """
    return resolve_config(
        load_global_config(global_config_path),
        load_project_config(workspace),
        overrides,
        workspace,
    )


def validate_image(config: ResolvedConfig) -> None:
    """
    コンテナ作成に必要なイメージが指定されているか検証する。

    Raises:
        ConfigError: imageが空の場合
    """
    if not config.image:
        raise ConfigError(
            "Docker image for dev container is not specified, "
            f"consider specifying 'image' in a {PROJECT_CONFIG_FILENAME} file "
            "or passing --image"
        )


def config_to_dict(config: ResolvedConfig) -> dict[str, Any]:
    """
    表示用に設定を辞書に変換する。空の値は省略される。
    """
    result: dict[str, Any] = {}
    for f in fields(config):
        value = getattr(config, f.name)
        if value:
            result[f.name] = value
    return result

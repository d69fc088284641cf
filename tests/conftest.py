"""
テスト共通のフィクスチャ
"""

import subprocess
from unittest.mock import patch

import pytest

FAKE_CONTAINER_ID = "0123456789ab" + "cdef" * 13


class FakeDocker:
    """
    subprocess.runの代わりに呼び出され、docker CLIの振る舞いを再現する。

    コンテナの状態は名前 -> 状態文字列（"running", "exited"）で保持する。
    """

    def __init__(self) -> None:
        self.containers: dict[str, str] = {}
        # ローカルにあるイメージ名。--type containerなしのinspectはこれにも一致する
        self.images: set[str] = set()
        self.calls: list[list[str]] = []

    def __call__(self, cmd, check=False, capture_output=True, text=True):
        self.calls.append(list(cmd))
        operation = cmd[1]

        if operation == "inspect":
            name = cmd[-1]
            if cmd[2:4] != ["--type", "container"]:
                if name in self.images:
                    return self._result(cmd, 0, '[{"RepoTags": ["%s"]}]\n' % name)
            if name not in self.containers:
                return self._result(cmd, 1, stderr=f"Error: No such object: {name}")
            if "--format" in cmd:
                fmt = cmd[cmd.index("--format") + 1]
                if fmt == "{{.State.Status}}":
                    return self._result(cmd, 0, f"{self.containers[name]}\n")
                return self._result(cmd, 0, f"{FAKE_CONTAINER_ID}\n")
            return self._result(cmd, 0, '[{"Id": "%s"}]\n' % FAKE_CONTAINER_ID)

        if operation == "run":
            name = cmd[cmd.index("--name") + 1]
            if name in self.containers:
                return self._result(cmd, 125, stderr="Conflict. The container name is already in use")
            self.containers[name] = "running"
            return self._result(cmd, 0, f"{FAKE_CONTAINER_ID}\n")

        if operation in ("start", "stop", "rm"):
            name = cmd[-1]
            if name not in self.containers:
                return self._result(cmd, 1, stderr=f"Error: No such container: {name}")
            if operation == "start":
                self.containers[name] = "running"
            elif operation == "stop":
                self.containers[name] = "exited"
            else:
                del self.containers[name]
            return self._result(cmd, 0, f"{name}\n")

        if operation == "exec":
            name = cmd[4]
            if self.containers.get(name) != "running":
                return self._result(cmd, 1)
            return self._result(cmd, 0)

        return self._result(cmd, 1, stderr=f"unknown command: {operation}")

    @staticmethod
    def _result(cmd, returncode, stdout="", stderr=""):
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)

    def operations(self) -> list[str]:
        return [call[1] for call in self.calls]


@pytest.fixture
def fake_docker():
    """subprocess.runをFakeDockerに差し替える"""
    docker = FakeDocker()
    with patch("subprocess.run", side_effect=docker):
        yield docker

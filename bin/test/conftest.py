from __future__ import annotations

import subprocess
from collections.abc import Sequence
from pathlib import Path
from unittest import mock

import pytest
from rocky_wsl.config import Config
from rocky_wsl.context import SystemContext


def feature_info(name: str, state: str) -> str:
    return (
        "Deployment Image Servicing and Management tool\n"
        "Version: 10.0.19041.844\n\n"
        "Feature Information:\n\n"
        f"Feature Name : {name}\n"
        f"Display Name : {name}\n"
        "Restart Required : Possible\n"
        f"State : {state}\n\n"
        "The operation completed successfully.\n"
    )


class FakeSystem:
    """Stands in for subprocess.run, recording every command line.

    Commands without a scripted response succeed with no output. When
    several responses match, the most recently added wins.
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        self._responses: list[tuple[tuple[str, ...], int, str, BaseException | None]] = []

    def respond(self, *prefix: str, returncode: int = 0, stdout: str = "", raises: BaseException | None = None):
        self._responses.append((prefix, returncode, stdout, raises))

    def feature(self, name: str, state: str):
        self.respond(
            "dism.exe", "/online", "/get-featureinfo", f"/featurename:{name}", stdout=feature_info(name, state)
        )

    def __call__(self, argv: Sequence[str], **_kwargs):
        argv = [str(arg) for arg in argv]
        self.calls.append(argv)
        for prefix, returncode, stdout, raises in reversed(self._responses):
            if tuple(argv[: len(prefix)]) == prefix:
                if raises is not None:
                    raise raises
                return subprocess.CompletedProcess(argv, returncode, stdout, "")
        return subprocess.CompletedProcess(argv, 0, "", "")

    def commands(self, *prefix: str) -> list[list[str]]:
        return [call for call in self.calls if tuple(call[: len(prefix)]) == prefix]

    def index_of(self, *prefix: str) -> int:
        for index, call in enumerate(self.calls):
            if tuple(call[: len(prefix)]) == prefix:
                return index
        raise AssertionError(f"{prefix} was never run; ran {self.calls}")


@pytest.fixture(name="fake_system")
def fake_system_fixture(tmp_path):
    system = FakeSystem()
    desktop = tmp_path / "Desktop"
    desktop.mkdir()
    system.respond(
        "powershell.exe", "-NoProfile", "-Command", "[Environment]::GetFolderPath('Desktop')", stdout=f"{desktop}\r\n"
    )
    with mock.patch("subprocess.run", side_effect=system):
        yield system


@pytest.fixture(name="workdir")
def workdir_fixture(tmp_path) -> Path:
    workdir = tmp_path / "work"
    workdir.mkdir()
    return workdir


@pytest.fixture(name="make_context")
def make_context_fixture(workdir):
    def _make(config: Config | None = None, dry_run: bool = False) -> SystemContext:
        return SystemContext(
            workdir=workdir,
            config=config or Config(),
            dry_run=dry_run,
            entry_point=["C:\\Python312\\python.exe", "C:\\setup\\rocky_wsl_setup.py"],
        )

    return _make

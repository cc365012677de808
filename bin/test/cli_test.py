import logging
import subprocess
import sys
from unittest import mock

import pytest
from click.testing import CliRunner
from rocky_wsl.cli import cli

WSL_FEATURE = "Microsoft-Windows-Subsystem-Linux"
VM_FEATURE = "VirtualMachinePlatform"


@pytest.fixture(autouse=True)
def restore_root_logger():
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in root_logger.handlers:
        if handler not in handlers:
            handler.close()
    root_logger.handlers = handlers
    root_logger.setLevel(level)


def _invoke(workdir, *args, input=None):
    return CliRunner().invoke(cli, ["--workdir", str(workdir), "--no-log-to-console", *args], input=input)


def test_dry_run_with_features_enabled(fake_system, workdir):
    fake_system.feature(WSL_FEATURE, "Enabled")
    fake_system.feature(VM_FEATURE, "Enabled")

    result = _invoke(workdir, "--dry-run")

    assert result.exit_code == 0, result.output
    assert "RockyLinux installed" in result.output
    # Only queries reach the system in dry-run mode
    assert fake_system.commands("wsl.exe", "--import") == []
    assert fake_system.commands("dism.exe", "/online", "/enable-feature") == []
    assert "Working in" in (workdir / "rocky-wsl.log").read_text(encoding="utf-8")


def test_log_file_is_appended(fake_system, workdir):
    fake_system.feature(WSL_FEATURE, "Enabled")
    fake_system.feature(VM_FEATURE, "Enabled")
    log = workdir / "setup.log"
    log.write_text("previous run\n", encoding="utf-8")

    result = _invoke(workdir, "--dry-run", "--log", str(log))

    assert result.exit_code == 0, result.output
    content = log.read_text(encoding="utf-8")
    assert content.startswith("previous run\n")
    assert "Working in" in content


def test_instance_name_override(fake_system, workdir):
    fake_system.feature(WSL_FEATURE, "Enabled")
    fake_system.feature(VM_FEATURE, "Enabled")

    result = _invoke(workdir, "--dry-run", "--instance-name", "Rocky9")

    assert result.exit_code == 0, result.output
    assert "Rocky9 installed" in result.output


def test_restart_prompt_confirmed(fake_system, workdir):
    fake_system.feature(WSL_FEATURE, "Disabled")
    fake_system.feature(VM_FEATURE, "Enabled")

    result = _invoke(workdir, "--dry-run", input="Y\n")

    assert result.exit_code == 0, result.output
    assert "Restart now?" in result.output
    assert "Restarting to finish enabling WSL" in result.output
    assert "installed" not in result.output


def test_invalid_config_fails(fake_system, workdir):
    (workdir / "rocky-wsl.yaml").write_text("instance:\n  colour: blue\n", encoding="utf-8")

    result = _invoke(workdir)

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
    assert fake_system.calls == []


def test_provision_error_fails(fake_system, workdir):
    fake_system.feature(WSL_FEATURE, "Enabled")
    fake_system.feature(VM_FEATURE, "Disabled")
    fake_system.respond("dism.exe", "/online", "/enable-feature", returncode=87)

    result = _invoke(workdir)

    assert result.exit_code == 1
    assert f"Failed to enable {VM_FEATURE}" in result.output


def test_failed_command_fails(fake_system, workdir):
    fake_system.feature(WSL_FEATURE, "Enabled")
    fake_system.feature(VM_FEATURE, "Enabled")
    fake_system.respond("wsl.exe", "--set-default-version", returncode=1)

    result = _invoke(workdir)

    assert result.exit_code == 1
    assert "Command failed" in result.output


def test_resumption_task_keeps_the_command_line_options(fake_system, workdir):
    fake_system.feature(WSL_FEATURE, "Enabled")
    fake_system.feature(VM_FEATURE, "Disabled")
    fake_system.respond("schtasks", "/query", returncode=1)
    script = workdir / "rocky_wsl_setup.py"
    argv = [str(script), "--instance-name", "Rocky9", "--workdir", str(workdir)]

    with mock.patch.object(sys, "argv", argv):
        result = CliRunner().invoke(cli, argv[1:] + ["--no-log-to-console"], input="Y\n")

    assert result.exit_code == 0, result.output
    (create,) = fake_system.commands("schtasks", "/create")
    assert create[create.index("/tr") + 1] == subprocess.list2cmdline(
        [sys.executable, str(script.resolve()), "--instance-name", "Rocky9", "--workdir", str(workdir)]
    )


def test_missing_desktop_folder_fails(fake_system, workdir):
    fake_system.feature(WSL_FEATURE, "Enabled")
    fake_system.feature(VM_FEATURE, "Enabled")
    fake_system.respond("powershell.exe", returncode=1)

    result = _invoke(workdir, "--dry-run")

    assert result.exit_code == 1
    assert "Unable to find the desktop folder" in result.output
    assert "Traceback" not in result.output

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import tempfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from rocky_wsl.config import Config

_LOGGER = logging.getLogger(__name__)
PathOrString = Path | str

FALLBACK_WORKDIR = Path("C:\\")

# Asks the operator a question and returns the raw answer
Ask = Callable[[str], str]


@dataclass(frozen=True)
class CommandResult:
    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _is_writable_dir(path: Path) -> bool:
    if not path.is_dir():
        return False
    try:
        with tempfile.TemporaryFile(dir=path):
            pass
    except OSError:
        return False
    return True


def default_workdir(script_path: PathOrString | None) -> Path:
    """Directory holding the entry script, or the drive root when that isn't usable."""
    if script_path:
        try:
            candidate = Path(script_path).resolve().parent
        except OSError:
            _LOGGER.debug("Unable to resolve %s", script_path)
        else:
            if _is_writable_dir(candidate):
                return candidate
            _LOGGER.debug("%s is not a writable directory", candidate)
    _LOGGER.info("Falling back to %s as the working directory", FALLBACK_WORKDIR)
    return FALLBACK_WORKDIR


class SystemContext:
    """Where and how the provisioning steps touch the host.

    Commands that only inspect the system always run. Anything that changes
    the system is logged and skipped in dry-run mode.
    """

    def __init__(self, workdir: Path, config: Config, dry_run: bool, entry_point: Sequence[str] = ()):
        self._workdir = workdir
        self.config = config
        self.dry_run = dry_run
        # The command line that re-runs this provisioning after a reboot
        self.entry_point = list(entry_point)

    @property
    def workdir(self) -> Path:
        return self._workdir

    def resolve(self, path: PathOrString) -> Path:
        return self._workdir / path

    def query(self, args: Sequence[str]) -> CommandResult:
        """Run a read-only command, returning its result whatever the exit code."""
        argv = [str(arg) for arg in args]
        _LOGGER.debug("Querying %s", shlex.join(argv))
        process = subprocess.run(argv, capture_output=True, text=True, stdin=subprocess.DEVNULL, check=False)
        _LOGGER.debug("%s returned %d", argv[0], process.returncode)
        return CommandResult(argv=argv, returncode=process.returncode, stdout=process.stdout, stderr=process.stderr)

    def run(self, args: Sequence[str], check: bool = True) -> CommandResult:
        """Run a command that changes the system.

        With check set, a non-zero exit raises subprocess.CalledProcessError.
        """
        argv = [str(arg) for arg in args]
        if self.dry_run:
            _LOGGER.info("Would run %s but in dry-run mode", shlex.join(argv))
            return CommandResult(argv=argv, returncode=0)

        _LOGGER.info("Running %s", shlex.join(argv))
        process = subprocess.run(argv, capture_output=True, text=True, stdin=subprocess.DEVNULL, check=False)
        if process.stdout:
            _LOGGER.debug("stdout: %s", process.stdout.strip())
        if process.stderr:
            _LOGGER.debug("stderr: %s", process.stderr.strip())
        if check and process.returncode != 0:
            _LOGGER.error("%s failed with exit code %d", argv[0], process.returncode)
            raise subprocess.CalledProcessError(process.returncode, argv, process.stdout, process.stderr)
        return CommandResult(argv=argv, returncode=process.returncode, stdout=process.stdout, stderr=process.stderr)

    def make_dir(self, directory: Path) -> None:
        if self.dry_run:
            _LOGGER.info("Would create directory %s but in dry-run mode", directory)
            return
        _LOGGER.info("Creating directory %s", directory)
        directory.mkdir(parents=True, exist_ok=True)

    def copy(self, source: Path, dest: Path) -> None:
        if self.dry_run:
            _LOGGER.info("Would copy %s to %s but in dry-run mode", source, dest)
            return
        _LOGGER.info("Copying %s to %s", source, dest)
        shutil.copy2(source, dest)

    def remove_file(self, path: Path) -> None:
        if self.dry_run:
            _LOGGER.info("Would remove %s but in dry-run mode", path)
            return
        _LOGGER.info("Removing %s", path)
        os.remove(path)

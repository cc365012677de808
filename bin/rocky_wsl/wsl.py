from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from rocky_wsl.context import CommandResult, SystemContext

_LOGGER = logging.getLogger(__name__)

WSL = "wsl.exe"


@dataclass(frozen=True)
class ImportedInstance:
    name: str
    backing_folder: Path
    archive_path: Path


def import_image(context: SystemContext, name: str, backing_folder: Path, archive: Path) -> ImportedInstance:
    """Register archive as the WSL distribution name, stored in backing_folder.

    The archive is copied next to the distribution's disk and removed once
    imported. Nothing is rolled back if a step fails.
    """
    context.make_dir(backing_folder)
    archive_copy = backing_folder / archive.name
    context.copy(archive, archive_copy)
    _LOGGER.info("Importing %s as %s", archive_copy, name)
    context.run([WSL, "--import", name, backing_folder, archive_copy])
    context.remove_file(archive_copy)
    return ImportedInstance(name=name, backing_folder=backing_folder, archive_path=archive_copy)


def run_in_instance(context: SystemContext, instance: ImportedInstance, command: str) -> CommandResult:
    argv = [WSL, "-d", instance.name, "--", "bash", "-c", command]
    try:
        return context.run(argv, check=False)
    except OSError as e:
        # 127 is what a shell reports for a command it couldn't start
        return CommandResult(argv=argv, returncode=127, stderr=str(e))


def configure_locale(
    context: SystemContext, instance: ImportedInstance, commands: Sequence[str]
) -> list[CommandResult]:
    """Run each locale setup command in turn, carrying on past failures."""
    results = []
    for command in commands:
        result = run_in_instance(context, instance, command)
        if not result.ok:
            _LOGGER.warning("'%s' failed in %s with exit code %d", command, instance.name, result.returncode)
        results.append(result)
    return results

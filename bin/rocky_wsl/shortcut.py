from __future__ import annotations

import logging
from pathlib import Path

from rocky_wsl.context import SystemContext
from rocky_wsl.wsl import ImportedInstance

_LOGGER = logging.getLogger(__name__)

POWERSHELL = "powershell.exe"


def _powershell_quote(value: str | Path) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def desktop_path(context: SystemContext) -> Path:
    result = context.query([POWERSHELL, "-NoProfile", "-Command", "[Environment]::GetFolderPath('Desktop')"])
    desktop = result.stdout.strip()
    if not result.ok or not desktop:
        raise FileNotFoundError(f"Unable to find the desktop folder: {result.stderr.strip()}")
    return Path(desktop)


def create_shortcut(context: SystemContext, instance: ImportedInstance) -> Path:
    """Put a shortcut on the desktop that opens a shell in instance."""
    launcher = context.config.instance.launcher
    shortcut = desktop_path(context) / f"{instance.name}.lnk"
    if shortcut.exists():
        _LOGGER.info("Replacing existing shortcut %s", shortcut)
        context.remove_file(shortcut)

    script = "\n".join(
        [
            "$WScriptShell = New-Object -ComObject WScript.Shell",
            f"$Shortcut = $WScriptShell.CreateShortcut({_powershell_quote(shortcut)})",
            f"$Shortcut.TargetPath = {_powershell_quote(launcher)}",
            f"$Shortcut.Arguments = {_powershell_quote(f'-d {instance.name}')}",
            f"$Shortcut.IconLocation = {_powershell_quote(f'{launcher},0')}",
            "$Shortcut.Save()",
        ]
    )
    _LOGGER.info("Creating shortcut %s -> %s -d %s", shortcut, launcher, instance.name)
    context.run([POWERSHELL, "-NoProfile", "-Command", script])
    return shortcut

from __future__ import annotations

import logging

from rocky_wsl.context import SystemContext
from rocky_wsl.fetch import DownloadError, Fetcher, FetchResult, fetch_asset
from rocky_wsl.wsl import WSL

_LOGGER = logging.getLogger(__name__)


def wsl_version_installed(context: SystemContext) -> bool:
    """Whether a WSL package with its own kernel is present. Failures count as absent."""
    try:
        result = context.query([WSL, "--version"])
    except OSError as e:
        _LOGGER.info("Unable to run %s: %s", WSL, e)
        return False
    if not result.ok:
        _LOGGER.info("%s --version failed with exit code %d", WSL, result.returncode)
        return False
    # Older wsl.exe builds print their output as UTF-16, which arrives full of NULs
    lines = result.stdout.replace("\0", "").strip().splitlines()
    _LOGGER.info("Found %s", lines[0] if lines else "WSL")
    return True


def update_kernel(context: SystemContext, fetcher: Fetcher) -> FetchResult | None:
    """Install the WSL2 kernel update package unless WSL already reports a version.

    Returns None when nothing needed doing, otherwise the outcome of
    fetching the package.
    """
    if wsl_version_installed(context):
        return None

    kernel = context.config.kernel
    msi_path = context.resolve(kernel.file_name)
    result = fetch_asset(fetcher, kernel.url, msi_path, ask=lambda _prompt: "y")
    if isinstance(result, DownloadError):
        return result

    context.run(["msiexec", "/i", msi_path, "/quiet", "/norestart"])
    _LOGGER.info("Installed WSL2 kernel update from %s", msi_path)
    context.remove_file(msi_path)
    return result


def set_default_version(context: SystemContext, version: int = 2) -> None:
    context.run([WSL, "--set-default-version", str(version)])

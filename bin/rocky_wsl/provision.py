"""Runs the provisioning steps in order, once.

1. Enable the WSL optional features.
2. Restart if that needs one and the operator agrees (the run ends here).
3. Install the WSL2 kernel update and default new distributions to WSL2.
4. Download the Rocky Linux archive.
5. Import it as a WSL distribution.
6. Put a launcher for it on the desktop.
7. Generate the en_US.UTF-8 locale inside it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from rocky_wsl.config import DownloadFailurePolicy, LocalePolicy
from rocky_wsl.context import Ask, CommandResult, SystemContext
from rocky_wsl.errors import AssetUnavailable, LocaleConfigurationError
from rocky_wsl.features import FeatureStatus, ensure_features
from rocky_wsl.fetch import DownloadError, Fetcher, FetchResult, fetch_asset
from rocky_wsl.kernel import set_default_version, update_kernel
from rocky_wsl.restart import RestartCoordinator, RestartState
from rocky_wsl.shortcut import create_shortcut
from rocky_wsl.wsl import ImportedInstance, configure_locale, import_image

_LOGGER = logging.getLogger(__name__)


@dataclass
class ProvisionReport:
    features: list[FeatureStatus] = field(default_factory=list)
    restart_state: RestartState = RestartState.NO_RESTART
    kernel: FetchResult | None = None
    asset: FetchResult | None = None
    instance: ImportedInstance | None = None
    shortcut: Path | None = None
    locale_results: list[CommandResult] = field(default_factory=list)

    @property
    def locale_failures(self) -> list[CommandResult]:
        return [result for result in self.locale_results if not result.ok]


def _check_download(context: SystemContext, result: FetchResult, what: str) -> None:
    if not isinstance(result, DownloadError):
        return
    if context.config.download_failure == DownloadFailurePolicy.CONTINUE:
        _LOGGER.warning("Continuing without %s: %s", what, result.reason)
        return
    raise AssetUnavailable(f"Unable to download {what} from {result.asset.url}: {result.reason}")


def provision(context: SystemContext, fetcher: Fetcher, ask: Ask) -> ProvisionReport:
    config = context.config
    report = ProvisionReport()

    report.features, decision = ensure_features(context, config.features.names)
    coordinator = RestartCoordinator(context, ask)
    coordinator.coordinate(decision)
    report.restart_state = coordinator.state
    if coordinator.state.is_terminal:
        _LOGGER.info("Restart issued; setup resumes after logon")
        return report

    coordinator.remove_resumption()

    report.kernel = update_kernel(context, fetcher)
    if report.kernel is not None:
        _check_download(context, report.kernel, "the WSL2 kernel update")
    set_default_version(context, config.kernel.default_version)

    archive = context.resolve(config.archive.file_name)
    report.asset = fetch_asset(fetcher, config.archive.url, archive, ask)
    _check_download(context, report.asset, "the Rocky Linux image")

    report.instance = import_image(context, config.instance.name, context.resolve(config.instance.folder), archive)
    report.shortcut = create_shortcut(context, report.instance)
    report.locale_results = configure_locale(context, report.instance, config.locale.commands)

    if report.locale_failures:
        failed = ", ".join(f"'{result.argv[-1]}'" for result in report.locale_failures)
        if config.locale.policy == LocalePolicy.STRICT:
            raise LocaleConfigurationError(f"Locale setup failed in {report.instance.name}: {failed}")
        _LOGGER.warning("Some locale commands failed in %s: %s", report.instance.name, failed)

    _LOGGER.info("%s is ready; use the desktop shortcut or 'wsl -d %s'", report.instance.name, report.instance.name)
    return report

from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from rocky_wsl.config import DEFAULT_CONFIG_NAME, Config
from rocky_wsl.context import SystemContext, default_workdir
from rocky_wsl.errors import ProvisionError
from rocky_wsl.fetch import Fetcher
from rocky_wsl.provision import provision
from rocky_wsl.restart import RestartState

_LOGGER = logging.getLogger(__name__)

DEFAULT_LOG_NAME = "rocky-wsl.log"


def ask(prompt: str) -> str:
    return click.prompt(prompt, default="", show_default=False)


def _configure_logging(log: Path, debug: bool, log_to_console: bool) -> None:
    formatter = logging.Formatter(fmt="%(asctime)s %(name)-15s %(levelname)-8s %(message)s")
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    file_handler = logging.FileHandler(log, mode="a", encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)
    if log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _entry_point() -> list[str]:
    script = Path(sys.argv[0]).resolve()
    # Re-run with the same options after the restart
    options = sys.argv[1:]
    if script.suffix == ".py":
        return [sys.executable, str(script), *options]
    return [str(script), *options]


@click.command()
@click.option(
    "--workdir",
    type=click.Path(file_okay=False, path_type=Path),
    metavar="DIR",
    help="Download and install relative to DIR (default: the directory holding this script)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    metavar="CONFIG",
    help=f"Read settings from CONFIG (default: {DEFAULT_CONFIG_NAME} in the working directory)",
)
@click.option("--instance-name", metavar="NAME", help="Import the distribution as NAME")
@click.option(
    "--continue-on-download-failure",
    is_flag=True,
    help="Carry on with the remaining steps even if a download fails",
)
@click.option("--strict-locale", is_flag=True, help="Fail if any locale command fails inside the distribution")
@click.option("--debug/--no-debug", help="Turn on debugging")
@click.option("--dry-run/--for-real", help="Dry run only")
@click.option(
    "--log",
    metavar="LOGFILE",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    help=f"Append log output to LOGFILE (default: {DEFAULT_LOG_NAME} in the working directory)",
)
@click.option("--log-to-console/--no-log-to-console", default=True, help="Also log to the console")
def cli(
    workdir: Path | None,
    config_path: Path | None,
    instance_name: str | None,
    continue_on_download_failure: bool,
    strict_locale: bool,
    debug: bool,
    dry_run: bool,
    log: Path | None,
    log_to_console: bool,
):
    """Install Rocky Linux as a WSL2 distribution."""
    workdir = workdir or default_workdir(sys.argv[0])
    _configure_logging(log or workdir / DEFAULT_LOG_NAME, debug, log_to_console)
    _LOGGER.info("Working in %s", workdir)

    try:
        config = Config.load(config_path or workdir / DEFAULT_CONFIG_NAME).with_cli_overrides(
            instance_name=instance_name,
            continue_on_download_failure=continue_on_download_failure,
            strict_locale=strict_locale,
        )
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e

    context = SystemContext(workdir=workdir, config=config, dry_run=dry_run, entry_point=_entry_point())
    try:
        report = provision(context, Fetcher(dry_run=dry_run), ask)
    except ProvisionError as e:
        _LOGGER.error("%s", e)
        raise click.ClickException(str(e)) from e
    except subprocess.CalledProcessError as e:
        _LOGGER.error("Command failed: %s", e)
        raise click.ClickException(f"Command failed: {e}") from e
    except OSError as e:
        _LOGGER.error("%s", e)
        raise click.ClickException(str(e)) from e

    if report.restart_state == RestartState.RESTART_CONFIRMED:
        click.echo("Restarting to finish enabling WSL; setup will continue after you log back in.")
    elif report.instance:
        name = report.instance.name
        click.echo(f"{name} installed. Launch it from the desktop shortcut or with 'wsl -d {name}'.")

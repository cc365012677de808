#!/usr/bin/env python3
"""Configuration for the Rocky Linux WSL provisioning run.

Every value has a default matching the stock install, so a missing config
file gives a working setup. A YAML file next to the script can override any
of them.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

_LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "rocky-wsl.yaml"


class ConfigSafeLoader(yaml.SafeLoader):
    """SafeLoader that leaves timestamp-looking scalars (e.g. release tags) as strings."""

    @classmethod
    def remove_implicit_resolver(cls, tag_to_remove: str) -> None:
        if "yaml_implicit_resolvers" not in cls.__dict__:
            cls.yaml_implicit_resolvers = cls.yaml_implicit_resolvers.copy()

        for first_letter, mappings in cls.yaml_implicit_resolvers.items():
            cls.yaml_implicit_resolvers[first_letter] = [
                (tag, regexp) for tag, regexp in mappings if tag != tag_to_remove
            ]


ConfigSafeLoader.remove_implicit_resolver("tag:yaml.org,2002:timestamp")


class DownloadFailurePolicy(str, Enum):
    ABORT = "abort"
    CONTINUE = "continue"


class LocalePolicy(str, Enum):
    WARN = "warn"
    STRICT = "strict"


class FeaturesConfig(BaseModel):
    """Windows optional features WSL2 needs."""

    names: tuple[str, ...] = ("Microsoft-Windows-Subsystem-Linux", "VirtualMachinePlatform")

    model_config = ConfigDict(frozen=True, extra="forbid")


class ArchiveConfig(BaseModel):
    """The Rocky Linux root filesystem archive."""

    url: str = (
        "https://dl.rockylinux.org/pub/rocky/9/images/x86_64/"
        "Rocky-9-Container-Base.latest.x86_64.tar.xz"
    )
    file_name: str = "rocky-9-container-base.tar.xz"

    model_config = ConfigDict(frozen=True, extra="forbid")


class KernelConfig(BaseModel):
    """The WSL2 Linux kernel update package."""

    url: str = "https://wslstorestorage.blob.core.windows.net/wslblob/wsl_update_x64.msi"
    file_name: str = "wsl_update_x64.msi"
    default_version: int = 2

    model_config = ConfigDict(frozen=True, extra="forbid")


class InstanceConfig(BaseModel):
    """The imported WSL distribution and its desktop launcher."""

    name: str = "RockyLinux"
    # Relative paths are resolved against the working directory
    folder: Path = Path("RockyLinux")
    launcher: str = "C:\\Windows\\System32\\wsl.exe"

    model_config = ConfigDict(frozen=True, extra="forbid")


class LocaleConfig(BaseModel):
    commands: tuple[str, ...] = (
        "dnf -y update",
        "dnf -y install glibc-langpack-en glibc-locale-source",
        "localedef -i en_US -f UTF-8 en_US.UTF-8",
        "source /etc/profile",
    )
    policy: LocalePolicy = LocalePolicy.WARN

    model_config = ConfigDict(frozen=True, extra="forbid")


class RestartConfig(BaseModel):
    task_name: str = "RockyLinuxWslSetup"

    model_config = ConfigDict(frozen=True, extra="forbid")


class Config(BaseModel):
    """Top-level provisioning configuration."""

    features: FeaturesConfig = FeaturesConfig()
    archive: ArchiveConfig = ArchiveConfig()
    kernel: KernelConfig = KernelConfig()
    instance: InstanceConfig = InstanceConfig()
    locale: LocaleConfig = LocaleConfig()
    restart: RestartConfig = RestartConfig()
    download_failure: DownloadFailurePolicy = DownloadFailurePolicy.ABORT

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def load(cls, config_path: Path) -> Config:
        """Load configuration from config_path.

        Returns the defaults if the file doesn't exist or is empty.

        Raises:
            ValidationError: If the file contains invalid values or unknown keys
        """
        if not config_path.exists():
            _LOGGER.debug("Config file %s does not exist, using defaults", config_path)
            return cls()

        try:
            with config_path.open(encoding="utf-8") as config_file:
                config_data = yaml.load(config_file, Loader=ConfigSafeLoader)

            if config_data is None:
                _LOGGER.warning("Config file %s is empty, using defaults", config_path)
                return cls()

            return cls.model_validate(config_data)

        except ValidationError as e:
            _LOGGER.error("Invalid config in %s: %s", config_path, e)
            raise
        except Exception as e:
            _LOGGER.error("Failed to load config from %s: %s", config_path, e)
            raise

    def with_cli_overrides(
        self,
        instance_name: str | None = None,
        continue_on_download_failure: bool = False,
        strict_locale: bool = False,
    ) -> Config:
        """Create a new Config with CLI overrides applied."""
        config_dict = self.model_dump()
        if instance_name:
            config_dict["instance"]["name"] = instance_name
            _LOGGER.info("CLI override: instance name = %s", instance_name)

        if continue_on_download_failure:
            config_dict["download_failure"] = DownloadFailurePolicy.CONTINUE
            _LOGGER.info("CLI override: continuing past download failures")

        if strict_locale:
            config_dict["locale"]["policy"] = LocalePolicy.STRICT
            _LOGGER.info("CLI override: locale command failures are fatal")

        return self.__class__.model_validate(config_dict)

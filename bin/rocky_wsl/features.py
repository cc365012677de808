from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from rocky_wsl.context import SystemContext
from rocky_wsl.errors import FeatureEnableError

_LOGGER = logging.getLogger(__name__)

DISM = "dism.exe"
# dism exits with 3010 when the change only takes effect after a reboot
_DISM_OK_CODES = (0, 3010)
_ENABLED_RE = re.compile(r"^\s*State\s*:\s*Enabled\s*$", re.MULTILINE)


@dataclass(frozen=True)
class FeatureStatus:
    name: str
    enabled: bool


@dataclass(frozen=True)
class RestartDecision:
    required: bool
    user_consent: bool | None = None


def check_feature(context: SystemContext, name: str) -> bool:
    """Whether the optional feature is enabled. Any failure to ask counts as not enabled."""
    try:
        result = context.query([DISM, "/online", "/get-featureinfo", f"/featurename:{name}"])
    except OSError as e:
        _LOGGER.warning("Unable to query feature %s: %s", name, e)
        return False
    if not result.ok:
        _LOGGER.warning("Query of feature %s failed with exit code %d", name, result.returncode)
        return False
    enabled = bool(_ENABLED_RE.search(result.stdout))
    _LOGGER.info("Feature %s is %s", name, "enabled" if enabled else "not enabled")
    return enabled


def enable_feature(context: SystemContext, name: str) -> None:
    _LOGGER.info("Enabling feature %s", name)
    result = context.run([DISM, "/online", "/enable-feature", f"/featurename:{name}", "/all", "/norestart"], check=False)
    if result.returncode not in _DISM_OK_CODES:
        raise FeatureEnableError(f"Failed to enable {name}: dism exited with {result.returncode}")


def ensure_features(context: SystemContext, names: Iterable[str]) -> tuple[list[FeatureStatus], RestartDecision]:
    """Enable every feature that isn't already on.

    Returns the status each feature had before this run, along with whether
    a restart is needed for the changes to take effect.
    """
    statuses = []
    for name in names:
        enabled = check_feature(context, name)
        statuses.append(FeatureStatus(name=name, enabled=enabled))
        if not enabled:
            enable_feature(context, name)

    decision = RestartDecision(required=any(not status.enabled for status in statuses))
    if decision.required:
        _LOGGER.info("Features were enabled; a restart is required")
    return statuses, decision

from __future__ import annotations

import dataclasses
import logging
import shlex
import subprocess
from enum import Enum

from rocky_wsl.context import Ask, SystemContext
from rocky_wsl.errors import ResumptionTaskError
from rocky_wsl.features import RestartDecision

_LOGGER = logging.getLogger(__name__)


class RestartState(Enum):
    NO_RESTART = "no_restart"
    RESTART_PENDING = "restart_pending"
    RESTART_CONFIRMED = "restart_confirmed"
    RESTART_DECLINED = "restart_declined"

    @property
    def is_terminal(self) -> bool:
        return self == RestartState.RESTART_CONFIRMED


class RestartCoordinator:
    """Decides what happens once features have been enabled.

    A confirmed restart always schedules the resumption task first; if that
    fails the restart never happens.
    """

    def __init__(self, context: SystemContext, ask: Ask):
        self._context = context
        self._ask = ask
        self.state = RestartState.NO_RESTART

    def coordinate(self, decision: RestartDecision) -> RestartDecision:
        if not decision.required:
            _LOGGER.debug("No restart required")
            return decision

        self.state = RestartState.RESTART_PENDING
        answer = self._ask("A restart is required to finish enabling WSL. Restart now? (Y/N)")
        consent = answer.strip() == "Y"
        decision = dataclasses.replace(decision, user_consent=consent)

        if consent:
            self.state = RestartState.RESTART_CONFIRMED
            self.schedule_resumption()
            self.restart_now()
        else:
            self.state = RestartState.RESTART_DECLINED
            _LOGGER.warning(
                "Restart declined. WSL will not work until Windows is restarted; "
                "re-run this setup after restarting if the import fails."
            )
        return decision

    def _task_exists(self, task_name: str) -> bool:
        try:
            return self._context.query(["schtasks", "/query", "/tn", task_name]).ok
        except OSError as e:
            _LOGGER.debug("Unable to query scheduled task %s: %s", task_name, e)
            return False

    def schedule_resumption(self) -> None:
        task_name = self._context.config.restart.task_name
        if not self._context.entry_point:
            raise ResumptionTaskError("No entry point known to resume after restart")
        if self._task_exists(task_name):
            _LOGGER.info("Resumption task %s already scheduled", task_name)
            return

        command = subprocess.list2cmdline(self._context.entry_point)
        _LOGGER.info("Scheduling %s to run %s at next logon", task_name, command)
        # Triggered at logon rather than immediately: the task must fire after the reboot, in a session
        # where the prompts can be answered
        try:
            self._context.run(
                ["schtasks", "/create", "/tn", task_name, "/tr", command, "/sc", "onlogon", "/rl", "highest", "/f"]
            )
        except (OSError, subprocess.CalledProcessError) as e:
            raise ResumptionTaskError(f"Unable to schedule {task_name}: {e}") from e

    def remove_resumption(self) -> None:
        """Delete the resumption task once a run gets past the feature checks without needing a restart."""
        task_name = self._context.config.restart.task_name
        if not self._task_exists(task_name):
            return
        _LOGGER.info("Removing resumption task %s", task_name)
        result = self._context.run(["schtasks", "/delete", "/tn", task_name, "/f"], check=False)
        if not result.ok:
            _LOGGER.warning("Unable to remove resumption task %s; delete it with Task Scheduler", task_name)

    def restart_now(self) -> None:
        argv = ["shutdown", "/r", "/t", "0", "/f"]
        _LOGGER.warning("Restarting now (%s)", shlex.join(argv))
        self._context.run(argv)

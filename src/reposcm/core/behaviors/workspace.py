"""
Pre-sync workspace hygiene.

Both behaviors run a command across every project with ``repo forall``.
A non-zero exit is only logged; failing to launch the helper at all is a
behavior error.
"""

from __future__ import annotations

import logging
from typing import ClassVar

from reposcm.core.behaviors.base import Behavior, Capability, PhaseContext, register_behavior
from reposcm.core.errors import BehaviorApplicationError

logger = logging.getLogger(__name__)


class _ForallBehavior(Behavior):
    git_command: ClassVar[str] = ""

    def pre_sync(self, context: PhaseContext) -> bool:
        command = [context.executable, "forall", "-c", self.git_command]
        result = context.runner.run(
            command,
            cwd=context.workspace,
            env=context.env,
            cancel=context.cancel,
        )
        if result.exit_code is None:
            raise BehaviorApplicationError(self.name, result.error or "could not start repo")
        if result.exit_code != 0:
            logger.warning(
                "%s: '%s' exited with code %d", self.name, self.git_command, result.exit_code
            )
        return True


@register_behavior(
    "reset_first",
    ordinal=150,
    display_name="Reset first",
    capabilities={Capability.RUNS_PRE_SYNC},
)
class ResetFirst(_ForallBehavior):
    git_command: ClassVar[str] = "git reset --hard"


@register_behavior(
    "clean_first",
    ordinal=160,
    display_name="Clean first",
    capabilities={Capability.RUNS_PRE_SYNC},
)
class CleanFirst(_ForallBehavior):
    git_command: ClassVar[str] = "git clean -fdx"

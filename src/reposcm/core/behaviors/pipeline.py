"""
Ordered execution of behaviors for one lifecycle phase.

Each behavior call yields an explicit StepResult instead of unwinding the
stack:

- CONTINUE: the behavior succeeded
- SUPPRESS: the behavior returned False ("do not continue")
- FATAL:    the behavior raised; the error is wrapped with the behavior's
            display name

Every behavior of a phase runs even after a SUPPRESS, so later behaviors
still log. A FATAL step stops the phase at once, and callers must not run
any later phase of the same checkout. CancellationError is never wrapped
and propagates to the caller unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from reposcm.core.behaviors.base import (
    Behavior,
    Capability,
    CommandLine,
    PhaseContext,
    sort_behaviors,
)
from reposcm.core.errors import BehaviorApplicationError, CancellationError

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    """Lifecycle phases behaviors take part in."""

    DECORATE_INIT = "decorate-init"
    DECORATE_SYNC = "decorate-sync"
    PRE_SYNC = "pre-sync"
    POST_INIT = "post-init"

    @property
    def capability(self) -> Capability:
        return _PHASE_CAPABILITY[self]


_PHASE_CAPABILITY = {
    Phase.DECORATE_INIT: Capability.DECORATES_INIT,
    Phase.DECORATE_SYNC: Capability.DECORATES_SYNC,
    Phase.PRE_SYNC: Capability.RUNS_PRE_SYNC,
    Phase.POST_INIT: Capability.RUNS_POST_INIT,
}


class StepOutcome(str, Enum):
    CONTINUE = "continue"
    SUPPRESS = "suppress"
    FATAL = "fatal"


@dataclass(frozen=True)
class StepResult:
    """Outcome of invoking one behavior for one phase."""

    behavior: str
    outcome: StepOutcome
    error: BehaviorApplicationError | None = None

    @classmethod
    def proceed(cls, behavior: str) -> StepResult:
        return cls(behavior, StepOutcome.CONTINUE)

    @classmethod
    def suppress(cls, behavior: str) -> StepResult:
        return cls(behavior, StepOutcome.SUPPRESS)

    @classmethod
    def fatal(cls, behavior: str, error: BehaviorApplicationError) -> StepResult:
        return cls(behavior, StepOutcome.FATAL, error)


@dataclass
class PhaseResult:
    """Aggregated results of one phase run."""

    phase: Phase
    steps: list[StepResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(step.outcome is StepOutcome.CONTINUE for step in self.steps)

    @property
    def fatal(self) -> StepResult | None:
        for step in self.steps:
            if step.outcome is StepOutcome.FATAL:
                return step
        return None

    @property
    def suppressed_by(self) -> list[str]:
        return [s.behavior for s in self.steps if s.outcome is StepOutcome.SUPPRESS]

    def describe(self) -> str:
        """One-line summary of why the phase failed (empty when ok)."""
        fatal = self.fatal
        if fatal is not None and fatal.error is not None:
            return str(fatal.error)
        if self.suppressed_by:
            return f"{self.phase.value} stopped by: {', '.join(self.suppressed_by)}"
        return ""


class BehaviorPipeline:
    """
    Runs phases against an ordered, immutable list of behaviors.

    Example:
        >>> pipeline = BehaviorPipeline(behaviors)
        >>> command = CommandLine(["repo", "init", "-u", url])
        >>> result = pipeline.decorate(Phase.DECORATE_INIT, command, env)
        >>> result.ok
        True
    """

    def __init__(self, behaviors: Iterable[Behavior] = ()) -> None:
        self._behaviors = tuple(sort_behaviors(behaviors))

    @property
    def behaviors(self) -> tuple[Behavior, ...]:
        return self._behaviors

    def participants(self, phase: Phase) -> list[Behavior]:
        """Behaviors taking part in ``phase``, in execution order."""
        return self.participants_with(phase.capability)

    def find(self, behavior_type: type[Behavior]) -> Behavior | None:
        """First configured behavior of the given type, if any."""
        for behavior in self._behaviors:
            if isinstance(behavior, behavior_type):
                return behavior
        return None

    def decorate(
        self,
        phase: Phase,
        command: CommandLine,
        env: Mapping[str, str],
    ) -> PhaseResult:
        """Run a ``decorate-*`` phase, mutating ``command`` in place."""
        if phase is Phase.DECORATE_INIT:
            return self._run(phase, lambda b: b.decorate_init(command, env))
        if phase is Phase.DECORATE_SYNC:
            return self._run(phase, lambda b: b.decorate_sync(command, env))
        raise ValueError(f"{phase.value} is not a decorate phase")

    def run_side_effects(self, phase: Phase, context: PhaseContext) -> PhaseResult:
        """Run a ``pre-sync`` or ``post-init`` phase."""
        if phase is Phase.PRE_SYNC:
            return self._run(phase, lambda b: b.pre_sync(context))
        if phase is Phase.POST_INIT:
            return self._run(phase, lambda b: b.post_init(context))
        raise ValueError(f"{phase.value} is not a side-effect phase")

    def ignored_projects(self) -> frozenset[str]:
        """Union of server paths ignored by change-filtering behaviors."""
        ignored: set[str] = set()
        for behavior in self.participants_with(Capability.FILTERS_CHANGES):
            ignored |= behavior.ignored_projects()
        return frozenset(ignored)

    def participants_with(self, capability: Capability) -> list[Behavior]:
        return [b for b in self._behaviors if b.has(capability)]

    def _run(self, phase: Phase, call: Callable[[Behavior], bool]) -> PhaseResult:
        result = PhaseResult(phase)
        for behavior in self.participants(phase):
            step = self._invoke(behavior, call)
            result.steps.append(step)

            if step.outcome is StepOutcome.SUPPRESS:
                logger.warning("%s: %s returned do-not-continue", phase.value, behavior.name)
            elif step.outcome is StepOutcome.FATAL:
                logger.error("%s: %s", phase.value, step.error)
                break

        return result

    @staticmethod
    def _invoke(behavior: Behavior, call: Callable[[Behavior], bool]) -> StepResult:
        name = behavior.name
        try:
            proceed = call(behavior)
        except CancellationError:
            raise
        except BehaviorApplicationError as e:
            if e.behavior != name:
                e = BehaviorApplicationError(name, cause=e)
            return StepResult.fatal(name, e)
        except Exception as e:
            return StepResult.fatal(name, BehaviorApplicationError(name, cause=e))

        if proceed:
            return StepResult.proceed(name)
        return StepResult.suppress(name)

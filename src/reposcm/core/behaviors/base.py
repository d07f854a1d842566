"""
Behavior base class and registry.

A behavior is a small, independently configured unit that decorates the
``repo init`` / ``repo sync`` command lines or performs a side effect at a
lifecycle phase. Behaviors never know about each other; the pipeline runs
them in ascending ordinal order (ties keep configuration order).

Behaviors are pydantic models so that they round-trip through the job
configuration as ``{"kind": "...", ...fields}``. New kinds register with
the ``register_behavior`` decorator:

    @register_behavior("quiet", ordinal=170, display_name="Quiet",
                       capabilities={Capability.DECORATES_SYNC})
    class Quiet(Behavior):
        def decorate_sync(self, command, env):
            command.append("-q")
            return True
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict

from reposcm.core.process import CancelToken, CommandRunner


class Capability(str, Enum):
    """What a behavior takes part in."""

    DECORATES_INIT = "decorates-init"
    DECORATES_SYNC = "decorates-sync"
    RUNS_PRE_SYNC = "runs-pre-sync"
    RUNS_POST_INIT = "runs-post-init"
    FILTERS_CHANGES = "filters-changes"


class CommandLine:
    """
    Argument accumulator threaded through the decorate phases.

    The pipeline hands one instance to each behavior in turn; a behavior
    may append or insert arguments but never keeps a reference to it.

    Example:
        >>> cmd = CommandLine(["repo", "sync", "-d"])
        >>> cmd.insert(1, "--trace")
        >>> cmd.append("-q")
        >>> cmd.args
        ('repo', '--trace', 'sync', '-d', '-q')
    """

    def __init__(self, args: Iterable[str] = ()) -> None:
        self._args = [str(a) for a in args]

    @property
    def args(self) -> tuple[str, ...]:
        return tuple(self._args)

    def append(self, *args: str) -> None:
        self._args.extend(str(a) for a in args)

    def insert(self, index: int, arg: str) -> None:
        self._args.insert(index, str(arg))

    def copy(self) -> CommandLine:
        return CommandLine(self._args)

    def __iter__(self) -> Iterator[str]:
        return iter(self._args)

    def __len__(self) -> int:
        return len(self._args)

    def __contains__(self, item: object) -> bool:
        return item in self._args

    def __repr__(self) -> str:
        return f"CommandLine({self._args!r})"


@dataclass(frozen=True)
class PhaseContext:
    """
    What side-effecting phases (pre-sync, post-init) get to work with.

    Attributes:
        executable: Path or name of the repo executable
        workspace: Checkout root (where ``.repo`` lives)
        env: Job environment
        runner: Command runner for helper processes
        cancel: Cancellation token for helper processes
    """

    executable: str
    workspace: Path
    env: Mapping[str, str]
    runner: CommandRunner
    cancel: CancelToken | None = None

    @property
    def dot_repo(self) -> Path:
        """The checkout tool's private metadata directory."""
        return self.workspace / ".repo"

    @property
    def local_manifests(self) -> Path:
        """Overlay directory, cleared and recreated on every init."""
        return self.dot_repo / "local_manifests"


class Behavior(BaseModel):
    """
    Base class for all behaviors.

    Class-level attributes are filled in by ``register_behavior``:

    Attributes:
        kind: Configuration tag
        ordinal: Execution priority, ascending = earlier
        display_name: Name used in logs and error attribution
        capabilities: Phases the behavior takes part in
        default: Whether new jobs get this behavior by default
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ClassVar[str] = ""
    ordinal: ClassVar[int] = 1000
    display_name: ClassVar[str] = ""
    capabilities: ClassVar[frozenset[Capability]] = frozenset()
    default: ClassVar[bool] = False

    def decorate_init(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        """Add arguments to ``repo init``. Return False to fail the phase."""
        return True

    def decorate_sync(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        """Add arguments to ``repo sync``. Return False to fail the phase."""
        return True

    def pre_sync(self, context: PhaseContext) -> bool:
        """Side effect run before every sync."""
        return True

    def post_init(self, context: PhaseContext) -> bool:
        """Side effect run after a successful init."""
        return True

    def ignored_projects(self) -> frozenset[str]:
        """Server paths whose changes this behavior suppresses."""
        return frozenset()

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities

    @property
    def name(self) -> str:
        return self.display_name or type(self).__name__

    def to_config(self) -> dict[str, Any]:
        """Serialize to the stored configuration form."""
        return {"kind": self.kind, **self.model_dump()}

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class BehaviorInfo:
    """Registry entry summary for listings."""

    kind: str
    ordinal: int
    display_name: str
    capabilities: tuple[str, ...]
    default: bool


_behaviors: dict[str, type[Behavior]] = {}


def register_behavior(
    kind: str,
    *,
    ordinal: int,
    display_name: str,
    capabilities: Iterable[Capability] = (),
    default: bool = False,
) -> Callable[[type[Behavior]], type[Behavior]]:
    """
    Class decorator registering a behavior kind.

    Raises:
        ValueError: If ``kind`` is already registered to another class
    """

    def decorator(cls: type[Behavior]) -> type[Behavior]:
        existing = _behaviors.get(kind)
        if existing is not None and existing is not cls:
            raise ValueError(f"Behavior kind '{kind}' already registered by {existing.__name__}")
        cls.kind = kind
        cls.ordinal = ordinal
        cls.display_name = display_name
        cls.capabilities = frozenset(capabilities)
        cls.default = default
        _behaviors[kind] = cls
        return cls

    return decorator


def get_behavior_class(kind: str) -> type[Behavior]:
    """
    Look up a registered behavior class.

    Raises:
        ValueError: If ``kind`` is unknown
    """
    cls = _behaviors.get(kind)
    if cls is None:
        raise ValueError(
            f"Unknown behavior kind '{kind}'. Available: {', '.join(sorted(_behaviors))}"
        )
    return cls


def create_behavior(data: Behavior | Mapping[str, Any]) -> Behavior:
    """
    Build a behavior from its stored form.

    Args:
        data: A Behavior instance (returned as-is) or ``{"kind": ..., **fields}``

    Raises:
        ValueError: If the kind is missing or unknown
        pydantic.ValidationError: If the fields are invalid for the kind
    """
    if isinstance(data, Behavior):
        return data
    fields = dict(data)
    kind = fields.pop("kind", None)
    if not kind:
        raise ValueError(f"Behavior entry has no 'kind': {dict(data)!r}")
    return get_behavior_class(str(kind)).model_validate(fields)


def sort_behaviors(behaviors: Iterable[Behavior]) -> list[Behavior]:
    """Stable sort by ordinal; equal ordinals keep their given order."""
    return sorted(behaviors, key=lambda b: b.ordinal)


def load_behaviors(items: Iterable[Behavior | Mapping[str, Any]]) -> list[Behavior]:
    """
    Create and order behaviors from stored configuration.

    Raises:
        ValueError: If an entry is invalid or a kind is configured twice
    """
    behaviors: list[Behavior] = []
    seen: set[str] = set()
    for item in items:
        behavior = create_behavior(item)
        if behavior.kind in seen:
            raise ValueError(f"Behavior '{behavior.kind}' is configured more than once")
        seen.add(behavior.kind)
        behaviors.append(behavior)
    return sort_behaviors(behaviors)


def default_behaviors() -> list[Behavior]:
    """Behaviors a freshly configured job starts with."""
    return sort_behaviors(cls() for cls in _behaviors.values() if cls.default)


def list_behavior_kinds() -> list[str]:
    return list(_behaviors)


def describe_behaviors() -> list[BehaviorInfo]:
    """Summaries of every registered kind, in execution order."""
    infos = [
        BehaviorInfo(
            kind=cls.kind,
            ordinal=cls.ordinal,
            display_name=cls.display_name,
            capabilities=tuple(sorted(c.value for c in cls.capabilities)),
            default=cls.default,
        )
        for cls in _behaviors.values()
    ]
    return sorted(infos, key=lambda info: info.ordinal)

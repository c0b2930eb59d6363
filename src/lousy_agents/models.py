"""Data types shared by environment detection, candidate building and workflow generation."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

SOURCE_WORKFLOW = "workflow"
SOURCE_VERSION_FILE = "version-file"


@dataclass
class VersionFile:
    """A version-pinning file found at the repository root (e.g. .nvmrc)."""

    type: str  # runtime kind: node, python, java, ruby, go
    filename: str
    version: str | None = None


@dataclass
class PackageManagerDescriptor:
    """A package manager inferred from a manifest and optional lockfile."""

    type: str
    filename: str
    lockfile: str | None = None


@dataclass
class DetectedEnvironment:
    has_mise_config: bool = False
    version_files: list[VersionFile] = field(default_factory=list)
    package_managers: list[PackageManagerDescriptor] = field(default_factory=list)


@dataclass
class SetupStepCandidate:
    """A prospective CI step.

    Either *action* names a setup action (e.g. "actions/setup-node") or
    *action* is empty and *run* holds a shell command.
    """

    action: str
    source: str = SOURCE_VERSION_FILE
    version: str | None = None
    config: dict[str, Any] | None = None
    run: str | None = None
    name: str | None = None

    @property
    def is_run_step(self) -> bool:
        return not self.action and bool(self.run)


@dataclass(frozen=True)
class ResolvedVersion:
    """An action pinned to a commit SHA, with the release tag kept for a comment."""

    action: str
    sha: str
    version_tag: str


@dataclass(frozen=True)
class ActionToResolve:
    action: str
    placeholder: str
    lookup_url: str


class SetupOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class SetupResult:
    """Result of one copilot-setup invocation."""

    outcome: SetupOutcome
    path: str
    content: str
    added: list[SetupStepCandidate] = field(default_factory=list)
    dry_run: bool = False

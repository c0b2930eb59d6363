"""Environment detection: version files, mise, and package managers at a repo root."""

import os

from lousy_agents.config import (
    MISE_CONFIG_FILE,
    NODE_LOCKFILE_PRIORITY,
    NODE_PACKAGE_MANAGERS,
    CopilotSetupConfig,
)
from lousy_agents.models import DetectedEnvironment, PackageManagerDescriptor, VersionFile
from lousy_agents.utils import read_text_if_exists


def _detect_version_files(directory: str, config: CopilotSetupConfig) -> list[VersionFile]:
    """Return a VersionFile for every configured version file present, in table order.

    Unreadable files count as absent. Empty files are kept with version=None.
    """
    found = []
    for entry in config.version_files:
        content = read_text_if_exists(os.path.join(directory, entry["filename"]))
        if content is None:
            continue
        found.append(VersionFile(
            type=entry["type"],
            filename=entry["filename"],
            version=content.strip() or None,
        ))
    return found


def _detect_node_package_manager(directory: str, config: CopilotSetupConfig) -> PackageManagerDescriptor | None:
    """Pick the Node package manager by lockfile (pnpm, yarn, npm), defaulting to npm."""
    if not os.path.isfile(os.path.join(directory, "package.json")):
        return None
    for pm_type in NODE_LOCKFILE_PRIORITY:
        entry = config.package_manager(pm_type)
        if not entry or not entry.get("lockfile"):
            continue
        if os.path.isfile(os.path.join(directory, entry["lockfile"])):
            return PackageManagerDescriptor(
                type=entry["type"], filename=entry["manifest_file"], lockfile=entry["lockfile"],
            )
    npm = config.package_manager("npm")
    if npm is None:
        return None
    return PackageManagerDescriptor(type="npm", filename=npm["manifest_file"])


def _detect_package_managers(directory: str, config: CopilotSetupConfig) -> list[PackageManagerDescriptor]:
    found = []
    node_pm = _detect_node_package_manager(directory, config)
    if node_pm is not None:
        found.append(node_pm)

    for entry in config.package_managers:
        if entry["type"] in NODE_PACKAGE_MANAGERS:
            continue
        if not os.path.isfile(os.path.join(directory, entry["manifest_file"])):
            continue
        lockfile = entry.get("lockfile")
        has_lockfile = bool(lockfile) and os.path.isfile(os.path.join(directory, lockfile))
        found.append(PackageManagerDescriptor(
            type=entry["type"],
            filename=entry["manifest_file"],
            lockfile=lockfile if has_lockfile else None,
        ))
    return found


def detect_environment(directory: str, config: CopilotSetupConfig | None = None) -> DetectedEnvironment:
    """Scan the root of *directory* (non-recursive) for runtime and tooling configuration.

    Best-effort: a missing directory yields an empty environment.
    """
    config = config or CopilotSetupConfig()
    if not os.path.isdir(directory):
        return DetectedEnvironment()
    return DetectedEnvironment(
        has_mise_config=os.path.isfile(os.path.join(directory, MISE_CONFIG_FILE)),
        version_files=_detect_version_files(directory, config),
        package_managers=_detect_package_managers(directory, config),
    )

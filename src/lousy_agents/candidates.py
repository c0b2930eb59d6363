"""Setup step candidates: building them from a detected environment, merging and deduplicating.

Two candidates are the same step when their action identities match (the
`uses` value with any @ref stripped). Run steps have no action, so they
are matched on their command instead. candidate_key() produces the single
key both cases share.
"""

from lousy_agents.action_versions import get_floating_version
from lousy_agents.config import INSTALL_STEP_NAMES, MISE_ACTION, CopilotSetupConfig
from lousy_agents.models import SOURCE_VERSION_FILE, DetectedEnvironment, SetupStepCandidate

_RUN_KEY_PREFIX = "run:"


def action_identity(uses: str) -> str:
    """Strip any @version / @sha suffix from a `uses` value.

    Pure function: 'actions/setup-node@v4' -> 'actions/setup-node'.
    """
    return uses.split("@", 1)[0].strip()


def action_ref(uses: str) -> str | None:
    """Return the ref after '@' in a `uses` value, or None if unpinned."""
    if "@" not in uses:
        return None
    return uses.split("@", 1)[1].strip() or None


def run_key(command: str) -> str:
    return _RUN_KEY_PREFIX + command.strip()


def candidate_key(candidate: SetupStepCandidate) -> str:
    """Dedup / match key: action identity, or run:<command> for shell steps."""
    if candidate.action:
        return action_identity(candidate.action)
    return run_key(candidate.run or "")


def deduplicate_candidates(candidates: list[SetupStepCandidate]) -> list[SetupStepCandidate]:
    """Keep the first candidate for each key, preserving order."""
    seen = set()
    result = []
    for candidate in candidates:
        key = candidate_key(candidate)
        if key in seen:
            continue
        seen.add(key)
        result.append(candidate)
    return result


def merge_candidates(
    primary: list[SetupStepCandidate], secondary: list[SetupStepCandidate],
) -> list[SetupStepCandidate]:
    """Merge two candidate lists; on a shared key the primary candidate wins in full.

    The caller passes workflow-observed candidates as *primary* so what a
    human already wrote overrides inferred defaults.
    """
    return deduplicate_candidates(list(primary) + list(secondary))


def find_missing(
    candidates: list[SetupStepCandidate], existing_keys: set[str],
) -> list[SetupStepCandidate]:
    """Return candidates whose key is not already present in a workflow."""
    return [c for c in candidates if candidate_key(c) not in existing_keys]


# ---------------------------------------------------------------------------
# Candidate building
# ---------------------------------------------------------------------------


def _runtime_candidates(env: DetectedEnvironment, config: CopilotSetupConfig) -> list[SetupStepCandidate]:
    """One setup-action candidate per runtime kind; the first file of a kind wins."""
    candidates = []
    seen_types = set()
    for version_file in env.version_files:
        if version_file.type in seen_types:
            continue
        seen_types.add(version_file.type)

        entry = config.action_for_runtime(version_file.type)
        if entry is None:
            continue
        key = entry.get("version_file_key")
        candidates.append(SetupStepCandidate(
            action=entry["action"],
            version=get_floating_version(entry["action"]),
            config={key: version_file.filename} if key else None,
            source=SOURCE_VERSION_FILE,
        ))
    return candidates


def _install_candidates(env: DetectedEnvironment, config: CopilotSetupConfig) -> list[SetupStepCandidate]:
    """One install (run) step per package manager kind."""
    candidates = []
    seen_types = set()
    for pm in env.package_managers:
        if pm.type in seen_types:
            continue
        seen_types.add(pm.type)

        entry = config.package_manager(pm.type)
        if entry is None:
            continue
        candidates.append(SetupStepCandidate(
            action="",
            run=entry["install_command"],
            name=INSTALL_STEP_NAMES.get(pm.type, "Install dependencies"),
            source=SOURCE_VERSION_FILE,
        ))
    return candidates


def build_candidates(env: DetectedEnvironment, config: CopilotSetupConfig | None = None) -> list[SetupStepCandidate]:
    """Map a detected environment to setup step candidates.

    mise.toml short-circuits everything: mise installs the runtimes itself,
    so only the mise action is returned (no runtime or install steps).
    """
    config = config or CopilotSetupConfig()
    if env.has_mise_config:
        return [SetupStepCandidate(
            action=MISE_ACTION,
            version=get_floating_version(MISE_ACTION),
            source=SOURCE_VERSION_FILE,
        )]
    return _runtime_candidates(env, config) + _install_candidates(env, config)

"""Action version tables and version-resolution helpers.

Three tables drive how `uses:` references are rendered:

- DEFAULT_ACTION_VERSIONS: floating major tags (actions/checkout@v4).
- PINNED_ACTIONS: known commit SHAs with their release tags, used by --pin.
- VERSION_PLACEHOLDER: written instead of a version when pins are resolved
  in a later pass (e.g. by an LLM following RESOLUTION_INSTRUCTIONS).
"""

from lousy_agents.models import ActionToResolve, ResolvedVersion, SetupStepCandidate

CHECKOUT_ACTION = "actions/checkout"

VERSION_PLACEHOLDER = "RESOLVE_VERSION"

DEFAULT_ACTION_VERSIONS = {
    "actions/checkout": "v4",
    "actions/setup-node": "v4",
    "actions/setup-python": "v5",
    "actions/setup-java": "v4",
    "actions/setup-go": "v5",
    "ruby/setup-ruby": "v1",
    "jdx/mise-action": "v2",
}

# To bump a pin: take the latest release tag and the full commit SHA it points to.
PINNED_ACTIONS = {
    "actions/checkout": {"sha": "11bd71901bbe5b1630ceea73d27597364c9af683", "version": "v4.2.2"},
    "actions/setup-node": {"sha": "39370e3970a6d050c480ffad4ff0ed4d3fdee5af", "version": "v4.1.0"},
    "actions/setup-python": {"sha": "0b93645e9fea7318ecaed2b359559ac225c90a2b", "version": "v5.3.0"},
    "actions/setup-java": {"sha": "7a6d8a8234af8eb26422e24e3006232cccaa061b", "version": "v4.6.0"},
    "actions/setup-go": {"sha": "3041bf56c941b39c61721a86cd11f3bb1338122a", "version": "v5.2.0"},
    "ruby/setup-ruby": {"sha": "a4effe49ee8ee5b8224aba0bcf7754adb0aeb1e4", "version": "v1.202.0"},
    "jdx/mise-action": {"sha": "146a28175021df8ca24f8ee1828cc2a60f980bd5", "version": "v3.5.1"},
}

RESOLUTION_INSTRUCTIONS = """To resolve action versions:
1. For each action below, open the lookup URL to find the latest release
2. Note the release tag (e.g. v4.0.0)
3. Get the commit SHA that tag points to
4. Pin the action to the SHA with the tag as a comment: action@SHA  # vX.X.X

Example: actions/setup-node@1a2b3c4d5e6f  # v4.0.0"""


def get_floating_version(action: str) -> str | None:
    """Return the default floating tag for a known action, or None."""
    return DEFAULT_ACTION_VERSIONS.get(action)


def pinned_resolved_versions(actions: list[str] | None = None) -> list[ResolvedVersion]:
    """Return ResolvedVersion entries from the pinned table.

    Limited to *actions* when given; actions without a pin are left out.
    """
    names = actions if actions is not None else list(PINNED_ACTIONS)
    resolved = []
    for name in names:
        pin = PINNED_ACTIONS.get(name)
        if pin:
            resolved.append(ResolvedVersion(action=name, sha=pin["sha"], version_tag=pin["version"]))
    return resolved


def find_resolved_version(action: str, resolved_versions: list[ResolvedVersion] | None) -> ResolvedVersion | None:
    for resolved in resolved_versions or []:
        if resolved.action == action:
            return resolved
    return None


def lookup_url(action: str) -> str:
    """URL of the action's latest release page."""
    return f"https://github.com/{action}/releases/latest"


def action_to_resolve(action: str) -> ActionToResolve:
    return ActionToResolve(action=action, placeholder=VERSION_PLACEHOLDER, lookup_url=lookup_url(action))


def build_actions_to_resolve(
    candidates: list[SetupStepCandidate],
    resolved_versions: list[ResolvedVersion] | None = None,
) -> list[ActionToResolve]:
    """List actions (checkout included) that still need a pinned version.

    Run-step candidates are skipped; the result is deduplicated and keeps
    first-seen order.
    """
    resolved = {r.action for r in resolved_versions or []}
    seen = set()
    result = []
    for action in [CHECKOUT_ACTION] + [c.action for c in candidates if c.action]:
        if action in seen or action in resolved:
            continue
        seen.add(action)
        result.append(action_to_resolve(action))
    return result


def all_actions_resolved(
    candidates: list[SetupStepCandidate], resolved_versions: list[ResolvedVersion] | None,
) -> bool:
    return not build_actions_to_resolve(candidates, resolved_versions)

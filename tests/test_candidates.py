"""Tests for candidate building, merging, deduplication and missing-step detection."""

from lousy_agents.candidates import (
    action_identity,
    action_ref,
    build_candidates,
    candidate_key,
    deduplicate_candidates,
    find_missing,
    merge_candidates,
)
from lousy_agents.config import CopilotSetupConfig
from lousy_agents.models import (
    SOURCE_WORKFLOW,
    DetectedEnvironment,
    PackageManagerDescriptor,
    SetupStepCandidate,
    VersionFile,
)


# --- action identity ---

def test_identity_strips_tag():
    assert action_identity("actions/setup-node@v4") == "actions/setup-node"


def test_identity_strips_sha():
    assert action_identity("actions/checkout@11bd71901bbe5b1630ceea73d27597364c9af683") == "actions/checkout"


def test_identity_without_ref_is_unchanged():
    assert action_identity("actions/setup-node") == "actions/setup-node"


def test_action_ref():
    assert action_ref("actions/setup-node@v4") == "v4"
    assert action_ref("actions/setup-node") is None


def test_run_candidates_are_keyed_by_command():
    candidate = SetupStepCandidate(action="", run="npm ci")
    assert candidate_key(candidate) == "run:npm ci"
    assert candidate.is_run_step is True


# --- build_candidates ---

def test_mise_short_circuits_everything():
    env = DetectedEnvironment(
        has_mise_config=True,
        version_files=[VersionFile(type="node", filename=".nvmrc", version="20")],
        package_managers=[PackageManagerDescriptor(type="npm", filename="package.json")],
    )
    candidates = build_candidates(env)
    assert len(candidates) == 1
    assert candidates[0].action == "jdx/mise-action"
    assert candidates[0].version == "v2"


def test_node_version_file_yields_setup_node_with_version_file_input():
    env = DetectedEnvironment(version_files=[VersionFile(type="node", filename=".nvmrc", version="20")])
    candidates = build_candidates(env)
    assert len(candidates) == 1
    assert candidates[0].action == "actions/setup-node"
    assert candidates[0].version == "v4"
    assert candidates[0].config == {"node-version-file": ".nvmrc"}


def test_first_file_of_a_kind_wins():
    env = DetectedEnvironment(version_files=[
        VersionFile(type="node", filename=".nvmrc"),
        VersionFile(type="node", filename=".node-version"),
    ])
    candidates = build_candidates(env)
    assert len(candidates) == 1
    assert candidates[0].config == {"node-version-file": ".nvmrc"}


def test_ruby_gets_no_with_input():
    env = DetectedEnvironment(version_files=[VersionFile(type="ruby", filename=".ruby-version")])
    candidates = build_candidates(env)
    assert candidates[0].action == "ruby/setup-ruby"
    assert candidates[0].config is None


def test_runtime_without_configured_action_is_skipped():
    env = DetectedEnvironment(version_files=[VersionFile(type="node", filename=".nvmrc")])
    config = CopilotSetupConfig(setup_actions=[])
    assert build_candidates(env, config) == []


def test_package_managers_yield_install_run_steps_after_runtimes():
    env = DetectedEnvironment(
        version_files=[VersionFile(type="python", filename=".python-version")],
        package_managers=[PackageManagerDescriptor(type="pip", filename="requirements.txt")],
    )
    candidates = build_candidates(env)
    assert [c.action for c in candidates] == ["actions/setup-python", ""]
    assert candidates[1].run == "pip install -r requirements.txt"
    assert candidates[1].name == "Install Python dependencies"


# --- merge / dedup ---

def test_merge_primary_wins_on_shared_identity():
    workflow = [SetupStepCandidate(
        action="actions/setup-node", source=SOURCE_WORKFLOW, version="v3", config={"node-version": "18"},
    )]
    env = [SetupStepCandidate(action="actions/setup-node", version="v4", config={"node-version-file": ".nvmrc"})]
    merged = merge_candidates(workflow, env)
    assert len(merged) == 1
    assert merged[0].version == "v3"
    assert merged[0].config == {"node-version": "18"}
    assert merged[0].source == SOURCE_WORKFLOW


def test_merge_keeps_primary_order_then_new_secondary():
    primary = [SetupStepCandidate(action="actions/setup-python")]
    secondary = [
        SetupStepCandidate(action="actions/setup-node"),
        SetupStepCandidate(action="actions/setup-python"),
        SetupStepCandidate(action="", run="npm ci"),
    ]
    merged = merge_candidates(primary, secondary)
    assert [candidate_key(c) for c in merged] == ["actions/setup-python", "actions/setup-node", "run:npm ci"]


def test_dedup_treats_different_refs_as_same_action():
    candidates = [
        SetupStepCandidate(action="actions/setup-node@v3"),
        SetupStepCandidate(action="actions/setup-node@v4"),
    ]
    assert len(deduplicate_candidates(candidates)) == 1


def test_dedup_run_steps_by_command():
    candidates = [
        SetupStepCandidate(action="", run="npm ci"),
        SetupStepCandidate(action="", run="npm ci"),
        SetupStepCandidate(action="", run="pip install -r requirements.txt"),
    ]
    assert [c.run for c in deduplicate_candidates(candidates)] == ["npm ci", "pip install -r requirements.txt"]


def test_find_missing_filters_by_key():
    candidates = [
        SetupStepCandidate(action="actions/setup-node"),
        SetupStepCandidate(action="actions/setup-python"),
        SetupStepCandidate(action="", run="npm ci"),
    ]
    missing = find_missing(candidates, {"actions/setup-node", "run:npm ci"})
    assert [c.action for c in missing] == ["actions/setup-python"]


def test_find_missing_with_nothing_existing_returns_all():
    candidates = [SetupStepCandidate(action="actions/setup-node")]
    assert find_missing(candidates, set()) == candidates

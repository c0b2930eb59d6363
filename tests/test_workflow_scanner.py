"""Tests for scanning existing workflows for setup actions."""

import os

from lousy_agents.config import CopilotSetupConfig
from lousy_agents.models import SOURCE_WORKFLOW
from lousy_agents.workflow_scanner import list_workflow_files, scan_workflows

CI_WORKFLOW = """\
name: CI
on: [push]
jobs:
  test:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      - uses: actions/setup-node@v3
        with:
          node-version: "18"
          cache: npm
      - run: npm ci
  lint:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/setup-python@v5
"""


def _write_workflow(root, name, content):
    workflows = root / ".github" / "workflows"
    workflows.mkdir(parents=True, exist_ok=True)
    (workflows / name).write_text(content)


# --- discovery ---

def test_no_workflows_directory_returns_empty(tmp_path):
    assert scan_workflows(str(tmp_path)) == []


def test_copilot_setup_workflow_is_excluded(tmp_path):
    _write_workflow(tmp_path, "copilot-setup-steps.yml", CI_WORKFLOW)
    _write_workflow(tmp_path, "ci.yaml", "name: x\n")
    _write_workflow(tmp_path, "notes.txt", "not a workflow")
    files = list_workflow_files(str(tmp_path))
    assert [os.path.basename(f) for f in files] == ["ci.yaml"]
    assert scan_workflows(str(tmp_path)) == []


# --- extraction ---

def test_setup_actions_are_extracted_with_version_and_config(tmp_path):
    _write_workflow(tmp_path, "ci.yml", CI_WORKFLOW)
    candidates = scan_workflows(str(tmp_path))
    assert [c.action for c in candidates] == ["actions/setup-node", "actions/setup-python"]
    node = candidates[0]
    assert node.source == SOURCE_WORKFLOW
    assert node.version == "v3"
    assert node.config == {"node-version": "18", "cache": "npm"}
    assert type(node.config) is dict
    assert candidates[1].config is None


def test_checkout_and_run_steps_are_not_setup_actions(tmp_path):
    _write_workflow(tmp_path, "ci.yml", CI_WORKFLOW)
    actions = [c.action for c in scan_workflows(str(tmp_path))]
    assert "actions/checkout" not in actions
    assert "" not in actions


def test_duplicates_across_files_keep_first_in_sorted_order(tmp_path):
    _write_workflow(tmp_path, "b.yml", "jobs:\n  a:\n    steps:\n      - uses: actions/setup-node@v4\n")
    _write_workflow(tmp_path, "a.yml", "jobs:\n  a:\n    steps:\n      - uses: actions/setup-node@v2\n")
    candidates = scan_workflows(str(tmp_path))
    assert len(candidates) == 1
    assert candidates[0].version == "v2"


def test_invalid_yaml_file_is_skipped(tmp_path):
    _write_workflow(tmp_path, "broken.yml", "jobs: [unclosed\n")
    _write_workflow(tmp_path, "ci.yml", CI_WORKFLOW)
    assert len(scan_workflows(str(tmp_path))) == 2


def test_workflow_without_jobs_yields_nothing(tmp_path):
    _write_workflow(tmp_path, "empty.yml", "name: nothing here\n")
    assert scan_workflows(str(tmp_path)) == []


def test_custom_patterns(tmp_path):
    _write_workflow(
        tmp_path, "ci.yml",
        "jobs:\n  a:\n    steps:\n      - uses: pnpm/action-setup@v4\n      - uses: actions/setup-node@v4\n",
    )
    config = CopilotSetupConfig(setup_action_patterns=["pnpm/*"])
    assert [c.action for c in scan_workflows(str(tmp_path), config)] == ["pnpm/action-setup"]

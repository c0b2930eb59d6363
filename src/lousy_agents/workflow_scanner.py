"""Scan existing GitHub Actions workflows for setup actions the repo already uses."""

import fnmatch
import os

from rich.markup import escape
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from lousy_agents.candidates import action_identity, action_ref, deduplicate_candidates
from lousy_agents.config import CopilotSetupConfig
from lousy_agents.models import SOURCE_WORKFLOW, SetupStepCandidate
from lousy_agents.utils import log

WORKFLOWS_DIR = os.path.join(".github", "workflows")
COPILOT_SETUP_FILENAMES = ("copilot-setup-steps.yml", "copilot-setup-steps.yaml")
WORKFLOW_EXTENSIONS = (".yml", ".yaml")


def list_workflow_files(directory: str, include_copilot_setup: bool = False) -> list[str]:
    """Return workflow file paths in sorted order.

    The Copilot setup workflow itself is left out unless *include_copilot_setup* is set.
    """
    workflows_dir = os.path.join(directory, WORKFLOWS_DIR)
    try:
        names = sorted(os.listdir(workflows_dir))
    except OSError:
        return []
    paths = []
    for name in names:
        if not name.endswith(WORKFLOW_EXTENSIONS):
            continue
        if name in COPILOT_SETUP_FILENAMES and not include_copilot_setup:
            continue
        path = os.path.join(workflows_dir, name)
        if os.path.isfile(path):
            paths.append(path)
    return paths


def is_setup_action(identity: str, patterns: list[str]) -> bool:
    return any(fnmatch.fnmatchcase(identity, pattern) for pattern in patterns)


def _plain(value):
    """Copy ruamel containers into plain dicts/lists so candidates carry no YAML state."""
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def extract_setup_steps(data, patterns: list[str]) -> list[SetupStepCandidate]:
    """Pull setup-action candidates out of one parsed workflow, in document order."""
    if not isinstance(data, dict):
        return []
    jobs = data.get("jobs")
    if not isinstance(jobs, dict):
        return []

    candidates = []
    for job in jobs.values():
        if not isinstance(job, dict) or not isinstance(job.get("steps"), list):
            continue
        for step in job["steps"]:
            if not isinstance(step, dict):
                continue
            uses = step.get("uses")
            if not isinstance(uses, str):
                continue
            identity = action_identity(uses)
            if not is_setup_action(identity, patterns):
                continue
            with_block = step.get("with")
            candidates.append(SetupStepCandidate(
                action=identity,
                source=SOURCE_WORKFLOW,
                version=action_ref(uses),
                config=_plain(with_block) if isinstance(with_block, dict) and with_block else None,
            ))
    return candidates


def scan_workflows(directory: str, config: CopilotSetupConfig | None = None) -> list[SetupStepCandidate]:
    """Collect setup-action candidates from every workflow under .github/workflows.

    Files that can't be read or parsed are skipped. The result is
    deduplicated by action identity; the first occurrence wins.
    """
    config = config or CopilotSetupConfig()
    yaml = YAML(typ="rt")
    candidates = []
    for path in list_workflow_files(directory):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.load(f)
        except (OSError, UnicodeDecodeError, YAMLError) as exc:
            log("copilot-setup", f"  Skipping {os.path.basename(path)}: {escape(str(exc))}", style="dim")
            continue
        candidates.extend(extract_setup_steps(data, config.setup_action_patterns))
    return deduplicate_candidates(candidates)

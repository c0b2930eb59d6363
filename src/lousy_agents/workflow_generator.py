"""Copilot Setup Steps workflow generation: render a fresh workflow or splice steps into one.

render_workflow() builds the whole document from candidates. update_workflow()
inserts missing steps into an existing WorkflowDocument just before its
"Verify" step, leaving everything else as the author wrote it. Both share
build_step(), so a step looks the same whichever path produced it.
"""

from dataclasses import dataclass

from ruamel.yaml.comments import CommentedMap, CommentedSeq
from ruamel.yaml.scalarstring import LiteralScalarString

from lousy_agents.action_versions import (
    CHECKOUT_ACTION,
    VERSION_PLACEHOLDER,
    find_resolved_version,
    get_floating_version,
)
from lousy_agents.candidates import action_identity, deduplicate_candidates
from lousy_agents.config import MISE_ACTION
from lousy_agents.models import ResolvedVersion, SetupStepCandidate
from lousy_agents.workflow_document import WorkflowDocument, dump_yaml, make_yaml

WORKFLOW_NAME = "Copilot Setup Steps"
WORKFLOW_FILENAME = "copilot-setup-steps.yml"
JOB_ID = "copilot-setup-steps"
RUNNER = "ubuntu-latest"
TIMEOUT_MINUTES = 30
DEFAULT_BRANCH = "main"
CHECKOUT_STEP_NAME = "Checkout code"
VERIFY_STEP_NAME = "Verify development environment"
VERIFY_MARKER = "Verify"

ACTION_DISPLAY_NAMES = {
    "actions/setup-node": "Setup Node.js",
    "actions/setup-python": "Setup Python",
    "actions/setup-java": "Setup Java",
    "actions/setup-go": "Setup Go",
    "ruby/setup-ruby": "Setup Ruby",
    "jdx/mise-action": "Setup mise",
}

VERIFY_COMMANDS = {
    "actions/setup-node": ["node --version", "npm --version"],
    "actions/setup-python": ["python --version"],
    "actions/setup-java": ["java -version"],
    "actions/setup-go": ["go version"],
    "ruby/setup-ruby": ["ruby --version"],
    "jdx/mise-action": ["mise --version", "mise ls"],
}


@dataclass
class RenderOptions:
    """How `uses:` versions are written.

    resolved_versions pins matching actions to a SHA (tag as a comment).
    Anything unresolved gets RESOLVE_VERSION when use_placeholders is set,
    otherwise its floating tag.
    """

    use_placeholders: bool = False
    resolved_versions: list[ResolvedVersion] | None = None
    workflow_filename: str = WORKFLOW_FILENAME


def action_display_name(action: str) -> str:
    """Human-readable step name: 'actions/setup-node' -> 'Setup Node.js'.

    Unknown actions fall back to their last path segment without the
    'setup-' / '-action' affixes: 'pnpm/action-setup' -> 'Setup action-setup'.
    """
    identity = action_identity(action)
    if identity in ACTION_DISPLAY_NAMES:
        return ACTION_DISPLAY_NAMES[identity]
    short = identity.rsplit("/", 1)[-1]
    return f"Setup {short.replace('setup-', '', 1).removesuffix('-action')}"


def build_uses(action: str, version: str | None, options: RenderOptions) -> tuple[str, str | None]:
    """Return the `uses` value and an optional end-of-line comment (the pinned tag)."""
    resolved = find_resolved_version(action, options.resolved_versions)
    if resolved is not None:
        return f"{action}@{resolved.sha}", resolved.version_tag
    if options.use_placeholders:
        return f"{action}@{VERSION_PLACEHOLDER}", None
    version = version or get_floating_version(action)
    return (f"{action}@{version}" if version else action), None


def build_step(candidate: SetupStepCandidate, options: RenderOptions) -> CommentedMap:
    """Turn one candidate into a workflow step mapping."""
    step = CommentedMap()
    if not candidate.action:
        step["name"] = candidate.name or "Install dependencies"
        step["run"] = candidate.run
        return step

    action = action_identity(candidate.action)
    step["name"] = candidate.name or action_display_name(action)
    uses, comment = build_uses(action, candidate.version, options)
    step["uses"] = uses
    if comment:
        step.yaml_add_eol_comment(comment, "uses")
    if candidate.config:
        with_block = CommentedMap()
        for key, value in candidate.config.items():
            with_block[key] = value
        step["with"] = with_block
    return step


def _checkout_step(options: RenderOptions) -> CommentedMap:
    return build_step(SetupStepCandidate(action=CHECKOUT_ACTION, name=CHECKOUT_STEP_NAME), options)


def _step_group(candidate: SetupStepCandidate) -> int:
    """Sort group: mise first (it may provide the other runtimes), then actions, then run steps."""
    if not candidate.action:
        return 2
    if action_identity(candidate.action) == MISE_ACTION:
        return 0
    return 1


def order_candidates(candidates: list[SetupStepCandidate]) -> list[SetupStepCandidate]:
    """Deduplicate, drop checkout (always emitted first) and apply the stable step ordering."""
    usable = [
        c for c in deduplicate_candidates(candidates)
        if (c.action or c.run) and action_identity(c.action) != CHECKOUT_ACTION
    ]
    return sorted(usable, key=_step_group)


def _verify_step(candidates: list[SetupStepCandidate]) -> CommentedMap:
    lines = ['echo "Verifying development environment..."']
    for candidate in candidates:
        for command in VERIFY_COMMANDS.get(action_identity(candidate.action), []):
            if command not in lines:
                lines.append(command)
    step = CommentedMap()
    step["name"] = VERIFY_STEP_NAME
    step["run"] = LiteralScalarString("\n".join(lines) + "\n")
    return step


def _trigger(workflow_path: str) -> CommentedMap:
    trigger = CommentedMap()
    trigger["branches"] = [DEFAULT_BRANCH]
    trigger["paths"] = [workflow_path]
    return trigger


def render_workflow(candidates: list[SetupStepCandidate], options: RenderOptions | None = None) -> str:
    """Render a complete Copilot Setup Steps workflow for the given candidates."""
    options = options or RenderOptions()
    ordered = order_candidates(candidates)
    workflow_path = f".github/workflows/{options.workflow_filename}"

    steps = CommentedSeq([_checkout_step(options)])
    steps.extend(build_step(candidate, options) for candidate in ordered)
    steps.append(_verify_step(ordered))

    on = CommentedMap()
    on["workflow_dispatch"] = CommentedMap()
    on["push"] = _trigger(workflow_path)
    on["pull_request"] = _trigger(workflow_path)

    permissions = CommentedMap()
    permissions["contents"] = "read"
    permissions["id-token"] = "write"

    job = CommentedMap()
    job["runs-on"] = RUNNER
    job["timeout-minutes"] = TIMEOUT_MINUTES
    job["steps"] = steps

    jobs = CommentedMap()
    jobs[JOB_ID] = job

    workflow = CommentedMap()
    workflow["name"] = WORKFLOW_NAME
    workflow["on"] = on
    workflow["permissions"] = permissions
    workflow["jobs"] = jobs
    return dump_yaml(workflow, make_yaml())


def insertion_index(steps: list) -> int:
    """Index of the first step whose name contains 'Verify', else the end of the list."""
    for index, step in enumerate(steps):
        if isinstance(step, dict) and VERIFY_MARKER in str(step.get("name") or ""):
            return index
    return len(steps)


def update_workflow(
    document: WorkflowDocument | None,
    missing: list[SetupStepCandidate],
    options: RenderOptions | None = None,
) -> str:
    """Insert steps for *missing* candidates into an existing workflow.

    Falls back to rendering a fresh workflow from *missing* when the
    document has no first job with a steps list. With nothing missing the
    original text comes back untouched; otherwise only the new step lines
    are added to it.
    """
    options = options or RenderOptions()
    steps = document.first_job_steps() if document is not None else None
    if steps is None:
        return render_workflow(missing, options)

    to_add = [c for c in deduplicate_candidates(missing) if c.action or c.run]
    if not to_add:
        return document.source or document.dump()

    new_steps = [build_step(candidate, options) for candidate in to_add]
    return document.insert_steps(steps, insertion_index(steps), new_steps)

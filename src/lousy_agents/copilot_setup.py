"""The copilot-setup command: create or update .github/workflows/copilot-setup-steps.yml."""

import dataclasses
import os
from typing import Annotated, Callable

import typer
from rich.markup import escape
from ruamel.yaml.error import YAMLError

from lousy_agents.action_versions import (
    RESOLUTION_INSTRUCTIONS,
    all_actions_resolved,
    build_actions_to_resolve,
    pinned_resolved_versions,
)
from lousy_agents.candidates import build_candidates, find_missing, merge_candidates
from lousy_agents.config import ConfigError, CopilotSetupConfig, load_config
from lousy_agents.environment import detect_environment
from lousy_agents.models import SetupOutcome, SetupResult, SetupStepCandidate
from lousy_agents.rulesets import GhRulesetGateway, check_copilot_review_ruleset
from lousy_agents.utils import console, log, read_text_if_exists
from lousy_agents.workflow_document import WorkflowDocument, existing_step_keys
from lousy_agents.workflow_generator import (
    RenderOptions,
    order_candidates,
    render_workflow,
    update_workflow,
)
from lousy_agents.workflow_scanner import COPILOT_SETUP_FILENAMES, WORKFLOWS_DIR, scan_workflows


def register(app: typer.Typer) -> None:
    """Register the copilot-setup command on the shared app."""
    app.command("copilot-setup")(copilot_setup)


def resolve_workflow_path(directory: str) -> str:
    """Existing copilot-setup-steps.yml, else an existing .yaml, else a new .yml."""
    workflows_dir = os.path.join(directory, WORKFLOWS_DIR)
    for name in COPILOT_SETUP_FILENAMES:
        path = os.path.join(workflows_dir, name)
        if os.path.isfile(path):
            return path
    return os.path.join(workflows_dir, COPILOT_SETUP_FILENAMES[0])


def collect_candidates(directory: str, config: CopilotSetupConfig) -> list[SetupStepCandidate]:
    """Detect the environment, scan existing workflows, and merge (workflow steps win)."""
    env = detect_environment(directory, config)
    for version_file in env.version_files:
        log("copilot-setup", f"  Found {version_file.filename} ({version_file.type})", style="dim")
    for pm in env.package_managers:
        log("copilot-setup", f"  Found {pm.filename} ({pm.type})", style="dim")
    if env.has_mise_config:
        log("copilot-setup", "  Found mise.toml (mise manages runtimes)", style="dim")

    workflow_candidates = scan_workflows(directory, config)
    for candidate in workflow_candidates:
        log("copilot-setup", f"  Existing workflow uses {candidate.action}", style="dim")

    return merge_candidates(workflow_candidates, build_candidates(env, config))


def _parse_existing(path: str, text: str) -> WorkflowDocument | None:
    try:
        return WorkflowDocument.parse(text)
    except YAMLError as exc:
        log("copilot-setup", f"  Could not parse {os.path.basename(path)}, regenerating it: {escape(str(exc))}",
            style="yellow")
        return None


def _write(path: str, content: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def _print_actions_to_resolve(candidates: list[SetupStepCandidate], options: RenderOptions) -> None:
    pending = build_actions_to_resolve(candidates, options.resolved_versions)
    console.print()
    console.print(RESOLUTION_INSTRUCTIONS, style="cyan", markup=False)
    console.print()
    for item in pending:
        console.print(f"  {item.action}@{item.placeholder}  ->  {item.lookup_url}", markup=False)


def run_copilot_setup(
    target_dir: str,
    dry_run: bool = False,
    options: RenderOptions | None = None,
    ruleset_gateway=None,
    confirm: Callable[[str], bool] | None = None,
    check_ruleset: bool = True,
    config: CopilotSetupConfig | None = None,
) -> SetupResult:
    """Create or update the Copilot Setup Steps workflow under *target_dir*.

    Every read and the merge happen before the single write. Write errors
    (OSError) propagate to the caller. A dry run returns and prints the
    content it would have written and skips the ruleset check.
    """
    if config is None:
        config = load_config(target_dir).copilot_setup
    options = options or RenderOptions()
    path = resolve_workflow_path(target_dir)
    options = dataclasses.replace(options, workflow_filename=os.path.basename(path))

    log("copilot-setup", f"Analyzing {os.path.abspath(target_dir)}...", style="cyan")
    candidates = collect_candidates(target_dir, config)

    existing = read_text_if_exists(path)
    if existing is None:
        content = render_workflow(candidates, options)
        result = SetupResult(SetupOutcome.CREATED, path, content, added=order_candidates(candidates))
    else:
        document = _parse_existing(path, existing)
        missing = find_missing(candidates, existing_step_keys(document))
        if not missing:
            result = SetupResult(SetupOutcome.UNCHANGED, path, existing)
        else:
            content = update_workflow(document, missing, options)
            result = SetupResult(SetupOutcome.UPDATED, path, content, added=missing)

    result.dry_run = dry_run
    rel_path = os.path.relpath(path, target_dir)
    if dry_run:
        log("copilot-setup", f"Dry run: {rel_path} would be {result.outcome.value}.", style="yellow")
        if result.outcome != SetupOutcome.UNCHANGED:
            console.print()
            console.print(result.content, markup=False, highlight=False)
    elif result.outcome == SetupOutcome.UNCHANGED:
        log("copilot-setup", f"{rel_path} already has all detected setup steps.", style="green")
    else:
        _write(path, result.content)
        log("copilot-setup", f"{result.outcome.value.capitalize()} {rel_path}", style="green")
        for candidate in result.added:
            label = candidate.action or candidate.run
            log("copilot-setup", f"  + {escape(label)}", style="green")

    if (options.use_placeholders and result.outcome != SetupOutcome.UNCHANGED
            and not all_actions_resolved(result.added, options.resolved_versions)):
        _print_actions_to_resolve(result.added, options)

    if not dry_run and check_ruleset:
        check_copilot_review_ruleset(
            target_dir,
            ruleset_gateway if ruleset_gateway is not None else GhRulesetGateway(),
            confirm if confirm is not None else typer.confirm,
        )
    return result


def copilot_setup(
    directory: Annotated[str, typer.Option(help="Repository root to analyze")] = ".",
    dry_run: Annotated[bool, typer.Option(help="Print the workflow instead of writing it")] = False,
    placeholders: Annotated[bool, typer.Option(help="Write RESOLVE_VERSION instead of version tags")] = False,
    pin: Annotated[bool, typer.Option(help="Pin known actions to commit SHAs")] = False,
    skip_ruleset: Annotated[bool, typer.Option(help="Skip the Copilot PR review ruleset check")] = False,
) -> None:
    """Create or update the Copilot Setup Steps workflow from the repo's detected environment."""
    if not os.path.isdir(directory):
        console.print(f"ERROR: {directory} is not a directory", style="bold red")
        raise typer.Exit(1)

    options = RenderOptions(
        use_placeholders=placeholders,
        resolved_versions=pinned_resolved_versions() if pin else None,
    )
    try:
        run_copilot_setup(directory, dry_run=dry_run, options=options, check_ruleset=not skip_ruleset)
    except ConfigError as exc:
        console.print(f"ERROR: invalid config: {exc}", style="bold red")
        raise typer.Exit(1)
    except OSError as exc:
        console.print(f"ERROR: could not write workflow: {exc}", style="bold red")
        raise typer.Exit(1)

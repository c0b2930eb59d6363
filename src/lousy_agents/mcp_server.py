"""lousy-agents MCP server.

Exposes environment discovery, workflow scanning and Copilot Setup Steps
creation as MCP tools so an AI assistant can drive the same pipeline the
copilot-setup command runs. Every tool answers with one JSON text block
carrying "success" plus tool-specific fields.
"""

import json
import os
import sys

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from lousy_agents.action_versions import (
    RESOLUTION_INSTRUCTIONS,
    action_to_resolve,
    all_actions_resolved,
    build_actions_to_resolve,
)
from lousy_agents.candidates import action_identity, action_ref
from lousy_agents.config import ConfigError, load_config
from lousy_agents.copilot_setup import resolve_workflow_path, run_copilot_setup
from lousy_agents.environment import detect_environment
from lousy_agents.models import ResolvedVersion, SetupOutcome, SetupStepCandidate
from lousy_agents.utils import console
from lousy_agents.workflow_generator import RenderOptions
from lousy_agents.workflow_scanner import WORKFLOWS_DIR, list_workflow_files, scan_workflows

SERVER_NAME = "lousy-agents"

app = Server(SERVER_NAME)

_TARGET_DIR = {
    "type": "string",
    "description": "Target directory to operate on. Defaults to the current working directory.",
}

_RESOLVED_VERSIONS = {
    "type": "array",
    "description": "Actions already pinned to a commit SHA.",
    "items": {
        "type": "object",
        "properties": {
            "action": {"type": "string", "description": "Action name, e.g. 'actions/setup-node'"},
            "sha": {"type": "string", "description": "Commit SHA for the action version"},
            "version_tag": {"type": "string", "description": "Release tag, e.g. 'v4.0.0'"},
        },
        "required": ["action", "sha", "version_tag"],
    },
}

_TARGET_DIR_SCHEMA = {"type": "object", "properties": {"target_dir": _TARGET_DIR}, "required": []}

TOOLS: list[Tool] = [
    Tool(
        name="discover_environment",
        description="Discover environment configuration files (mise.toml, version files like .nvmrc, "
                    ".python-version, package manager manifests) in a target directory.",
        inputSchema=_TARGET_DIR_SCHEMA,
    ),
    Tool(
        name="discover_workflow_setup_actions",
        description="Discover setup actions used in existing GitHub Actions workflows in a target directory.",
        inputSchema=_TARGET_DIR_SCHEMA,
    ),
    Tool(
        name="read_copilot_setup_workflow",
        description="Read the existing Copilot Setup Steps workflow (copilot-setup-steps.yml or .yaml).",
        inputSchema=_TARGET_DIR_SCHEMA,
    ),
    Tool(
        name="create_copilot_setup_workflow",
        description="Create or update the Copilot Setup Steps workflow from the detected environment. "
                    "Returns the actions that still need a SHA-pinned version and instructions for pinning them.",
        inputSchema={
            "type": "object",
            "properties": {
                "target_dir": _TARGET_DIR,
                "resolved_versions": _RESOLVED_VERSIONS,
                "use_placeholders": {
                    "type": "boolean",
                    "description": "Write RESOLVE_VERSION for actions without a resolved version.",
                },
                "dry_run": {"type": "boolean", "description": "Return the workflow without writing it."},
            },
            "required": [],
        },
    ),
    Tool(
        name="analyze_action_versions",
        description="List every action reference and its versions across all workflow files in a target directory.",
        inputSchema=_TARGET_DIR_SCHEMA,
    ),
    Tool(
        name="resolve_action_versions",
        description="Get lookup URLs and instructions for SHA-pinning GitHub Actions. Without an action list, "
                    "covers every configured setup action plus checkout.",
        inputSchema={
            "type": "object",
            "properties": {
                "target_dir": _TARGET_DIR,
                "actions": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Action names to resolve, e.g. ['actions/setup-node'].",
                },
                "resolved_versions": _RESOLVED_VERSIONS,
            },
            "required": [],
        },
    ),
]


class ToolError(Exception):
    """A tool call that can't be served; reported as {"success": false, "error": ...}."""


def _target_dir(arguments: dict) -> str:
    directory = arguments.get("target_dir") or os.getcwd()
    if not os.path.isdir(directory):
        raise ToolError(f"Target directory does not exist: {directory}")
    return directory


def _setup_config(directory: str):
    try:
        return load_config(directory).copilot_setup
    except ConfigError as exc:
        raise ToolError(f"Invalid config: {exc}") from exc


def _resolved_versions(arguments: dict) -> list[ResolvedVersion]:
    resolved = []
    for entry in arguments.get("resolved_versions") or []:
        try:
            resolved.append(ResolvedVersion(action=entry["action"], sha=entry["sha"],
                                            version_tag=entry["version_tag"]))
        except (KeyError, TypeError) as exc:
            raise ToolError(f"Invalid resolved_versions entry: {entry!r}") from exc
    return resolved


def _resolution_fields(pending: list) -> dict:
    return {
        "actions_to_resolve": [
            {"action": a.action, "placeholder": a.placeholder, "lookup_url": a.lookup_url} for a in pending
        ],
        "instructions": RESOLUTION_INSTRUCTIONS if pending else None,
    }


def _iter_steps(data):
    """Yield every step mapping of every job in a plain (safe-loaded) workflow."""
    jobs = data.get("jobs") if isinstance(data, dict) else None
    if not isinstance(jobs, dict):
        return
    for job in jobs.values():
        if not isinstance(job, dict) or not isinstance(job.get("steps"), list):
            continue
        for step in job["steps"]:
            if isinstance(step, dict):
                yield step


# --- tools ---

def discover_environment(arguments: dict) -> dict:
    directory = _target_dir(arguments)
    env = detect_environment(directory, _setup_config(directory))
    if env.has_mise_config:
        message = "Found mise.toml - mise will manage all tool versions"
    elif env.version_files:
        message = f"Found {len(env.version_files)} version file(s)"
    else:
        message = "No environment configuration files found"
    return {
        "has_mise": env.has_mise_config,
        "version_files": [
            {"type": vf.type, "filename": vf.filename, "version": vf.version} for vf in env.version_files
        ],
        "package_managers": [
            {"type": pm.type, "filename": pm.filename, "lockfile": pm.lockfile} for pm in env.package_managers
        ],
        "message": message,
    }


def discover_workflow_setup_actions(arguments: dict) -> dict:
    directory = _target_dir(arguments)
    if not os.path.isdir(os.path.join(directory, WORKFLOWS_DIR)):
        return {"actions": [], "message": "No .github/workflows directory found - no workflows to analyze"}
    candidates = scan_workflows(directory, _setup_config(directory))
    return {
        "actions": [
            {"action": c.action, "version": c.version, "config": c.config, "source": c.source}
            for c in candidates
        ],
        "message": (f"Found {len(candidates)} setup action(s) in workflows" if candidates
                    else "No setup actions found in existing workflows"),
    }


def read_copilot_setup_workflow(arguments: dict) -> dict:
    directory = _target_dir(arguments)
    path = resolve_workflow_path(directory)
    if not os.path.isfile(path):
        return {
            "exists": False,
            "workflow_path": path,
            "message": "Copilot Setup Steps workflow does not exist. "
                       "Use create_copilot_setup_workflow to create it.",
        }
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = YAML(typ="safe").load(f)
    except (OSError, UnicodeDecodeError, YAMLError) as exc:
        raise ToolError(f"Could not read {path}: {exc}") from exc

    data = data if isinstance(data, dict) else {}
    steps = [
        {key: step[key] for key in ("name", "uses", "with", "run") if key in step}
        for step in _iter_steps(data)
    ]
    return {
        "exists": True,
        "workflow_path": path,
        "workflow": {"name": data.get("name") or "Copilot Setup Steps", "steps": steps},
        "message": f"Found Copilot Setup Steps workflow with {len(steps)} step(s)",
    }


def create_copilot_setup_workflow(arguments: dict) -> dict:
    directory = _target_dir(arguments)
    config = _setup_config(directory)
    resolved = _resolved_versions(arguments)
    options = RenderOptions(
        use_placeholders=bool(arguments.get("use_placeholders")),
        resolved_versions=resolved or None,
    )
    dry_run = bool(arguments.get("dry_run"))
    try:
        result = run_copilot_setup(directory, dry_run=dry_run, options=options,
                                   check_ruleset=False, config=config)
    except OSError as exc:
        raise ToolError(f"Could not write workflow: {exc}") from exc

    if result.outcome == SetupOutcome.UNCHANGED:
        message = "Copilot Setup Steps workflow already contains all detected setup steps. No changes needed."
    else:
        message = f"{result.outcome.value.capitalize()} workflow with {len(result.added)} new step(s)"
    response = {
        "action": result.outcome.value,
        "dry_run": dry_run,
        "workflow_path": result.path,
        "steps_added": [c.action or c.run for c in result.added],
        "workflow_content": result.content,
        "message": message,
    }
    pending = []
    if result.outcome != SetupOutcome.UNCHANGED and not all_actions_resolved(result.added, resolved):
        pending = build_actions_to_resolve(result.added, resolved)
    response.update(_resolution_fields(pending))
    return response


def analyze_action_versions(arguments: dict) -> dict:
    directory = _target_dir(arguments)
    yaml = YAML(typ="safe")
    workflows = []
    versions: dict[str, list[str]] = {}
    for path in list_workflow_files(directory, include_copilot_setup=True):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.load(f)
        except (OSError, UnicodeDecodeError, YAMLError):
            continue
        references = []
        for step in _iter_steps(data):
            uses = step.get("uses")
            if not isinstance(uses, str) or action_ref(uses) is None:
                continue
            name, ref = action_identity(uses), action_ref(uses)
            references.append({"name": name, "version": ref})
            if ref not in versions.setdefault(name, []):
                versions[name].append(ref)
        if references:
            workflows.append({"file": os.path.basename(path), "actions": references})

    total = sum(len(w["actions"]) for w in workflows)
    return {
        "workflows": workflows,
        "unique_actions": [{"name": name, "versions": refs} for name, refs in versions.items()],
        "message": (f"Found {total} action reference(s) across {len(workflows)} workflow(s), "
                    f"{len(versions)} unique action(s)" if workflows
                    else "No action references found in workflows"),
    }


def resolve_action_versions(arguments: dict) -> dict:
    resolved = _resolved_versions(arguments)
    done = {r.action for r in resolved}
    actions = arguments.get("actions") or []
    if actions:
        pending = [action_to_resolve(a) for a in dict.fromkeys(actions) if a not in done]
    else:
        directory = _target_dir(arguments)
        config = _setup_config(directory)
        names = [entry["action"] for entry in config.setup_actions]
        # Concrete patterns (no wildcard) name actions too, e.g. jdx/mise-action.
        names += [p for p in config.setup_action_patterns if "*" not in p and p not in names]
        pending = build_actions_to_resolve([SetupStepCandidate(action=name) for name in names], resolved)
    response = _resolution_fields(pending)
    response["message"] = (f"Found {len(pending)} action(s) needing version resolution" if pending
                           else "All actions have been resolved")
    return response


_HANDLERS = {
    "discover_environment": discover_environment,
    "discover_workflow_setup_actions": discover_workflow_setup_actions,
    "read_copilot_setup_workflow": read_copilot_setup_workflow,
    "create_copilot_setup_workflow": create_copilot_setup_workflow,
    "analyze_action_versions": analyze_action_versions,
    "resolve_action_versions": resolve_action_versions,
}


def handle_tool(name: str, arguments: dict | None) -> dict:
    """Run one tool and wrap its answer in the success/error envelope."""
    handler = _HANDLERS.get(name)
    if handler is None:
        return {"success": False, "error": f"Unknown tool: {name}"}
    try:
        return {"success": True, **handler(arguments or {})}
    except ToolError as exc:
        return {"success": False, "error": str(exc)}


@app.list_tools()  # type: ignore[misc]
async def list_tools() -> list[Tool]:
    """Return all available tools."""
    return TOOLS


@app.call_tool()  # type: ignore[misc]
async def call_tool(name: str, arguments: dict[str, object]) -> list[TextContent]:
    """Dispatch a tool call and answer with its JSON result."""
    return [TextContent(type="text", text=json.dumps(handle_tool(name, arguments), indent=2))]


def main() -> None:
    """Entry point: run the MCP server over stdio."""
    import asyncio

    # stdout carries the protocol; progress logging goes to stderr.
    console.file = sys.stderr

    async def _run() -> None:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(read_stream, write_stream, app.create_initialization_options())

    asyncio.run(_run())


if __name__ == "__main__":
    main()

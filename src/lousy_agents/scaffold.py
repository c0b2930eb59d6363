"""The `new` commands: scaffold Copilot custom agents and Agent Skills."""

import os
import re
from typing import Annotated

import typer

from lousy_agents.lint import AGENTS_DIR, SKILL_FILENAME, SKILLS_DIR
from lousy_agents.utils import console

AGENT_TEMPLATE = """---
name: {name}
description: Brief description of what this agent does
---

<!--
This is a custom GitHub Copilot agent for repository-level use.
Learn more: https://docs.github.com/en/copilot/how-tos/use-copilot-agents/coding-agent/create-custom-agents
-->

# {name} Agent

You are a {name} agent specialized in {{domain/responsibility}}.

## Your Role

{{Brief description of the agent's expertise and focus area}}

## Responsibilities

- {{Primary responsibility}}
- {{Secondary responsibility}}

## Guidelines

- {{Guideline or best practice}}

## Example Interactions

{{Example of how the agent should respond to typical requests}}
"""

SKILL_TEMPLATE = """---
name: {name}
description: Brief description of what this skill does and when Copilot should use it
allowed-tools: ""
---

<!--
This is a GitHub Copilot Agent Skill for repository-level use.
Learn more: https://docs.github.com/en/copilot/concepts/agents/about-agent-skills
-->

# {name}

{{Brief description of what this skill teaches Copilot to do}}

## When to Use This Skill

Copilot should use this skill when:

- {{Trigger condition}}

## Instructions

1. {{Step 1}}
2. {{Step 2}}

## Examples

### Example 1: {{Title}}

{{Description of the example scenario and expected behavior}}
"""


class ScaffoldError(Exception):
    """Raised when a scaffold target can't be created."""


def normalize_name(name: str) -> str:
    """'  My Agent ' -> 'my-agent'."""
    return re.sub(r"\s+", "-", name.strip().lower())


def agent_path(directory: str, name: str) -> str:
    return os.path.join(directory, AGENTS_DIR, f"{name}.md")


def skill_path(directory: str, name: str) -> str:
    return os.path.join(directory, SKILLS_DIR, name, SKILL_FILENAME)


def _create(path: str, content: str) -> str:
    if os.path.exists(path):
        raise ScaffoldError(f"{path} already exists")
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    return path


def create_agent(directory: str, name: str) -> str:
    """Write .github/agents/<name>.md. Returns the path; raises ScaffoldError if it exists."""
    normalized = normalize_name(name)
    if not normalized:
        raise ScaffoldError("agent name is empty")
    return _create(agent_path(directory, normalized), AGENT_TEMPLATE.format(name=normalized))


def create_skill(directory: str, name: str) -> str:
    """Write .github/skills/<name>/SKILL.md. Returns the path; raises ScaffoldError if it exists."""
    normalized = normalize_name(name)
    if not normalized:
        raise ScaffoldError("skill name is empty")
    return _create(skill_path(directory, normalized), SKILL_TEMPLATE.format(name=normalized))


new_app = typer.Typer(help="Scaffold new Copilot agents and skills.", no_args_is_help=True)


def register(app: typer.Typer) -> None:
    """Register the `new` command group on the shared app."""
    app.add_typer(new_app, name="new")


def _run(create, kind: str, name: str, directory: str) -> None:
    try:
        path = create(directory, name)
    except ScaffoldError as exc:
        console.print(f"ERROR: {exc}", style="bold red")
        raise typer.Exit(1)
    console.print(f"Created {kind}: {os.path.relpath(path, directory)}", style="green")


@new_app.command()
def agent(
    name: Annotated[str, typer.Argument(help="Agent name, e.g. 'security reviewer'")],
    directory: Annotated[str, typer.Option(help="Repository root")] = ".",
) -> None:
    """Create .github/agents/<name>.md."""
    _run(create_agent, "agent", name, directory)


@new_app.command()
def skill(
    name: Annotated[str, typer.Argument(help="Skill name, e.g. 'github actions debug'")],
    directory: Annotated[str, typer.Option(help="Repository root")] = ".",
) -> None:
    """Create .github/skills/<name>/SKILL.md."""
    _run(create_skill, "skill", name, directory)

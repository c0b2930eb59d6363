"""Frontmatter lint for Copilot custom agents and Agent Skills.

Agents live in .github/agents/<name>.md and skills in
.github/skills/<name>/SKILL.md. Each file must open with `---` delimited
YAML carrying a `name` that matches its filename (or skill directory) and
a `description`. Rule severities come from the project config so a repo
can downgrade or silence individual rules.
"""

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated

import typer

from lousy_agents.config import DEFAULT_LINT_RULES, ConfigError, load_config
from lousy_agents.formatters import OutputFormat, format_output, human_lines
from lousy_agents.frontmatter import FrontmatterError, parse_frontmatter
from lousy_agents.utils import console, read_text_if_exists

AGENTS_DIR = os.path.join(".github", "agents")
SKILLS_DIR = os.path.join(".github", "skills")
SKILL_FILENAME = "SKILL.md"

NAME_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
NAME_MAX = 64
DESCRIPTION_MAX = 1024
COMPATIBILITY_MAX = 500

_SEVERITY_NAMES = {"error": "error", "warn": "warning"}


class LintTarget(str, Enum):
    agents = "agents"
    skills = "skills"
    all = "all"


@dataclass
class LintDiagnostic:
    file_path: str
    line: int
    severity: str  # "error" or "warning"
    message: str
    rule_id: str
    target: str  # "agent" or "skill"
    field: str | None = None


@dataclass
class LintOutput:
    target: str
    diagnostics: list[LintDiagnostic] = field(default_factory=list)
    files_analyzed: list[str] = field(default_factory=list)

    @property
    def total_errors(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity == "error")

    @property
    def total_warnings(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity == "warning")


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_agents(directory: str) -> list[tuple[str, str]]:
    """Return (path, expected name) for every .md file directly in .github/agents."""
    agents_dir = os.path.join(directory, AGENTS_DIR)
    try:
        names = sorted(os.listdir(agents_dir))
    except OSError:
        return []
    found = []
    for name in names:
        path = os.path.join(agents_dir, name)
        if name.endswith(".md") and os.path.isfile(path):
            found.append((path, name[:-3]))
    return found


def discover_skills(directory: str) -> list[tuple[str, str]]:
    """Return (path, expected name) for every .github/skills/<dir>/SKILL.md."""
    skills_dir = os.path.join(directory, SKILLS_DIR)
    try:
        names = sorted(os.listdir(skills_dir))
    except OSError:
        return []
    found = []
    for name in names:
        path = os.path.join(skills_dir, name, SKILL_FILENAME)
        if os.path.isfile(path):
            found.append((path, name))
    return found


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def _check_name(data: dict, expected: str, prefix: str, noun: str) -> list[tuple[str, str, str]]:
    name = data.get("name")
    if not isinstance(name, str) or not name:
        return [(f"{prefix}/missing-name", "Name is required", "name")]
    if len(name) > NAME_MAX:
        return [(f"{prefix}/invalid-name-format", f"Name must be {NAME_MAX} characters or fewer", "name")]
    if not NAME_RE.match(name):
        return [(
            f"{prefix}/invalid-name-format",
            "Name must contain only lowercase letters, numbers, and hyphens. "
            "It cannot start or end with a hyphen or contain consecutive hyphens.",
            "name",
        )]
    if name != expected:
        return [(f"{prefix}/name-mismatch", f"Frontmatter name '{name}' must match {noun} '{expected}'", "name")]
    return []


def _check_description(data: dict, prefix: str) -> list[tuple[str, str, str]]:
    description = data.get("description")
    if not isinstance(description, str) or not description:
        return [(f"{prefix}/missing-description", "Description is required", "description")]
    if len(description) > DESCRIPTION_MAX:
        return [(
            f"{prefix}/invalid-description",
            f"Description must be {DESCRIPTION_MAX} characters or fewer",
            "description",
        )]
    if not description.strip():
        return [(f"{prefix}/invalid-description", "Description cannot be empty or whitespace-only", "description")]
    return []


def _check_agent_fields(data: dict) -> list[tuple[str, str, str]]:
    issues = []
    tools = data.get("tools")
    if tools is not None and not (isinstance(tools, list) and all(isinstance(t, str) for t in tools)):
        issues.append(("agent/invalid-field", "tools must be a list of tool names", "tools"))
    model = data.get("model")
    if model is not None and not isinstance(model, str):
        issues.append(("agent/invalid-field", "model must be a string", "model"))
    return issues


def _check_skill_fields(data: dict) -> list[tuple[str, str, str]]:
    issues = []
    compatibility = data.get("compatibility")
    if compatibility is not None:
        if not isinstance(compatibility, str):
            issues.append(("skill/invalid-field", "compatibility must be a string", "compatibility"))
        elif len(compatibility) > COMPATIBILITY_MAX:
            issues.append((
                "skill/invalid-field",
                f"Compatibility must be {COMPATIBILITY_MAX} characters or fewer",
                "compatibility",
            ))
    license_ = data.get("license")
    if license_ is not None and not isinstance(license_, str):
        issues.append(("skill/invalid-field", "license must be a string", "license"))
    metadata = data.get("metadata")
    if metadata is not None and not (
        isinstance(metadata, dict) and all(isinstance(v, str) for v in metadata.values())
    ):
        issues.append(("skill/invalid-field", "metadata must map keys to string values", "metadata"))
    if "allowed-tools" not in data:
        issues.append(("skill/missing-allowed-tools", "Recommended field 'allowed-tools' is missing", "allowed-tools"))
    elif not isinstance(data["allowed-tools"], str):
        issues.append(("skill/invalid-field", "allowed-tools must be a string", "allowed-tools"))
    return issues


def lint_content(content: str, expected_name: str, target: str) -> list[tuple[str, str, str | None, int]]:
    """Run every check for one file. Returns (rule_id, message, field, line) tuples, unfiltered."""
    prefix = "agent" if target == "agent" else "skill"
    try:
        parsed = parse_frontmatter(content)
    except FrontmatterError as exc:
        return [(f"{prefix}/invalid-frontmatter", f"Invalid YAML frontmatter: {exc}", None, 1)]
    if parsed is None:
        noun = "Agent" if target == "agent" else "Skill"
        return [(
            f"{prefix}/missing-frontmatter",
            f"Missing YAML frontmatter. {noun} files must begin with --- delimited YAML frontmatter.",
            None,
            1,
        )]

    noun = "filename" if target == "agent" else "parent directory name"
    issues = _check_name(parsed.data, expected_name, prefix, noun)
    issues += _check_description(parsed.data, prefix)
    issues += _check_agent_fields(parsed.data) if target == "agent" else _check_skill_fields(parsed.data)
    return [
        (rule_id, message, field_name, parsed.field_lines.get(field_name, parsed.start_line))
        for rule_id, message, field_name in issues
    ]


def _lint_files(
    directory: str, files: list[tuple[str, str]], target: str, rules: dict[str, str],
) -> LintOutput:
    output = LintOutput(target=target)
    for path, expected in files:
        rel_path = os.path.relpath(path, directory)
        output.files_analyzed.append(rel_path)
        content = read_text_if_exists(path)
        if content is None:
            issues = [(f"{target}/invalid-frontmatter", "File could not be read as UTF-8 text", None, 1)]
        else:
            issues = lint_content(content, expected, target)
        for rule_id, message, field_name, line in issues:
            severity = _SEVERITY_NAMES.get(rules.get(rule_id, DEFAULT_LINT_RULES.get(rule_id, "error")))
            if severity is None:
                continue  # rule is off
            output.diagnostics.append(LintDiagnostic(
                file_path=rel_path, line=line, severity=severity, message=message,
                rule_id=rule_id, target=target, field=field_name,
            ))
    return output


def run_lint(directory: str, target: str = "all", rules: dict[str, str] | None = None) -> list[LintOutput]:
    """Lint agents, skills, or both under *directory*."""
    rules = rules if rules is not None else dict(DEFAULT_LINT_RULES)
    outputs = []
    if target in ("agents", "all"):
        outputs.append(_lint_files(directory, discover_agents(directory), "agent", rules))
    if target in ("skills", "all"):
        outputs.append(_lint_files(directory, discover_skills(directory), "skill", rules))
    return outputs


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def register(app: typer.Typer) -> None:
    """Register the lint command on the shared app."""
    app.command()(lint)


def lint(
    directory: Annotated[str, typer.Option(help="Repository root to lint")] = ".",
    target: Annotated[LintTarget, typer.Option(help="What to lint")] = LintTarget.all,
    output_format: Annotated[OutputFormat, typer.Option("--format", help="Output format")] = OutputFormat.human,
) -> None:
    """Lint the YAML frontmatter of Copilot agents and skills."""
    try:
        rules = load_config(directory).lint_rules
    except ConfigError as exc:
        console.print(f"ERROR: invalid config: {exc}", style="bold red")
        raise typer.Exit(1)

    outputs = run_lint(directory, target.value, rules)

    if output_format == OutputFormat.human:
        if not any(o.files_analyzed for o in outputs):
            console.print("No agent or skill files found.", style="dim")
        for text, style in human_lines(outputs):
            console.print(text, style=style, markup=False, highlight=False)
    else:
        console.print(format_output(outputs, output_format), markup=False, highlight=False, soft_wrap=True)

    if any(o.total_errors for o in outputs):
        raise typer.Exit(1)

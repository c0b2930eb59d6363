"""Configuration tables and the optional project config file.

The default tables describe which version files and package manifests are
detected, which setup action handles each runtime, and which actions count
as "setup actions" when scanning existing workflows. A repository can
override any of them in ``lousy-agents.yaml`` at its root:

    copilot_setup:
      setup_action_patterns: ["actions/setup-*", "jdx/mise-action"]
    lint:
      rules:
        skill/missing-allowed-tools: "off"
"""

import copy
import os
from dataclasses import dataclass, field

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

CONFIG_FILENAMES = ("lousy-agents.yaml", ".lousy-agents.yaml")


class ConfigError(Exception):
    """Raised when the project config file cannot be used."""


# ---------------------------------------------------------------------------
# Copilot setup defaults
# ---------------------------------------------------------------------------

# Order matters: the first file of a runtime kind wins when building candidates.
DEFAULT_VERSION_FILES = [
    {"filename": ".nvmrc", "type": "node"},
    {"filename": ".node-version", "type": "node"},
    {"filename": ".python-version", "type": "python"},
    {"filename": ".java-version", "type": "java"},
    {"filename": ".ruby-version", "type": "ruby"},
    {"filename": ".go-version", "type": "go"},
]

# version_file_key is the `with:` input that points the action at the file.
# ruby/setup-ruby reads .ruby-version on its own, so it takes no input.
DEFAULT_SETUP_ACTIONS = [
    {"action": "actions/setup-node", "type": "node", "version_file_key": "node-version-file"},
    {"action": "actions/setup-python", "type": "python", "version_file_key": "python-version-file"},
    {"action": "actions/setup-java", "type": "java", "version_file_key": "java-version-file"},
    {"action": "ruby/setup-ruby", "type": "ruby", "version_file_key": None},
    {"action": "actions/setup-go", "type": "go", "version_file_key": "go-version-file"},
]

# fnmatch-style patterns matched against action identities in existing workflows.
DEFAULT_SETUP_ACTION_PATTERNS = [
    "actions/setup-*",
    "ruby/setup-ruby",
    "jdx/mise-action",
]

MISE_ACTION = "jdx/mise-action"
MISE_CONFIG_FILE = "mise.toml"

NODE_PACKAGE_MANAGERS = ("npm", "yarn", "pnpm")

# Lockfile preference when package.json is present.
NODE_LOCKFILE_PRIORITY = ("pnpm", "yarn", "npm")

DEFAULT_PACKAGE_MANAGERS = [
    {"type": "npm", "manifest_file": "package.json", "lockfile": "package-lock.json", "install_command": "npm ci"},
    {"type": "yarn", "manifest_file": "package.json", "lockfile": "yarn.lock", "install_command": "yarn install --frozen-lockfile"},
    {"type": "pnpm", "manifest_file": "package.json", "lockfile": "pnpm-lock.yaml", "install_command": "pnpm install --frozen-lockfile"},
    {"type": "pip", "manifest_file": "requirements.txt", "lockfile": None, "install_command": "pip install -r requirements.txt"},
    {"type": "pipenv", "manifest_file": "Pipfile", "lockfile": "Pipfile.lock", "install_command": "pipenv install --deploy"},
    {"type": "poetry", "manifest_file": "poetry.lock", "lockfile": "poetry.lock", "install_command": "poetry install --no-root"},
    {"type": "bundler", "manifest_file": "Gemfile", "lockfile": "Gemfile.lock", "install_command": "bundle install"},
    {"type": "cargo", "manifest_file": "Cargo.toml", "lockfile": "Cargo.lock", "install_command": "cargo build"},
    {"type": "composer", "manifest_file": "composer.json", "lockfile": "composer.lock", "install_command": "composer install"},
    {"type": "maven", "manifest_file": "pom.xml", "lockfile": None, "install_command": "mvn install -DskipTests"},
    {"type": "gradle", "manifest_file": "build.gradle", "lockfile": None, "install_command": "gradle build -x test"},
    {"type": "gomod", "manifest_file": "go.mod", "lockfile": "go.sum", "install_command": "go mod download"},
    {"type": "pub", "manifest_file": "pubspec.yaml", "lockfile": "pubspec.lock", "install_command": "dart pub get"},
]

INSTALL_STEP_NAMES = {
    "npm": "Install Node.js dependencies",
    "yarn": "Install Node.js dependencies",
    "pnpm": "Install Node.js dependencies",
    "pip": "Install Python dependencies",
    "pipenv": "Install Python dependencies",
    "poetry": "Install Python dependencies",
    "bundler": "Install Ruby dependencies",
    "cargo": "Build Rust project",
    "composer": "Install PHP dependencies",
    "maven": "Install Java dependencies",
    "gradle": "Build Gradle project",
    "gomod": "Download Go dependencies",
    "pub": "Install Dart dependencies",
}


# ---------------------------------------------------------------------------
# Lint rule defaults ("error", "warn" or "off")
# ---------------------------------------------------------------------------

DEFAULT_LINT_RULES = {
    "agent/missing-frontmatter": "error",
    "agent/invalid-frontmatter": "error",
    "agent/missing-name": "error",
    "agent/invalid-name-format": "error",
    "agent/name-mismatch": "error",
    "agent/missing-description": "error",
    "agent/invalid-description": "error",
    "agent/invalid-field": "warn",
    "skill/missing-frontmatter": "error",
    "skill/invalid-frontmatter": "error",
    "skill/missing-name": "error",
    "skill/invalid-name-format": "error",
    "skill/name-mismatch": "error",
    "skill/missing-description": "error",
    "skill/invalid-description": "error",
    "skill/invalid-field": "warn",
    "skill/missing-allowed-tools": "warn",
}

_RULE_SEVERITIES = {"error", "warn", "off"}


# ---------------------------------------------------------------------------
# Loaded configuration
# ---------------------------------------------------------------------------


@dataclass
class CopilotSetupConfig:
    version_files: list[dict] = field(default_factory=lambda: copy.deepcopy(DEFAULT_VERSION_FILES))
    setup_actions: list[dict] = field(default_factory=lambda: copy.deepcopy(DEFAULT_SETUP_ACTIONS))
    setup_action_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_SETUP_ACTION_PATTERNS))
    package_managers: list[dict] = field(default_factory=lambda: copy.deepcopy(DEFAULT_PACKAGE_MANAGERS))

    def action_for_runtime(self, runtime: str) -> dict | None:
        for entry in self.setup_actions:
            if entry.get("type") == runtime:
                return entry
        return None

    def package_manager(self, pm_type: str) -> dict | None:
        for entry in self.package_managers:
            if entry.get("type") == pm_type:
                return entry
        return None


@dataclass
class ProjectConfig:
    copilot_setup: CopilotSetupConfig = field(default_factory=CopilotSetupConfig)
    lint_rules: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_LINT_RULES))


_REQUIRED_KEYS = {
    "version_files": ("filename", "type"),
    "setup_actions": ("action", "type"),
    "package_managers": ("type", "manifest_file", "install_command"),
}


def _validate_entries(section: str, value) -> list:
    if not isinstance(value, list):
        raise ConfigError(f"copilot_setup.{section} must be a list")
    required = _REQUIRED_KEYS.get(section, ())
    entries = []
    for item in value:
        if required:
            if not isinstance(item, dict) or any(not isinstance(item.get(k), str) for k in required):
                raise ConfigError(
                    f"copilot_setup.{section} entries need string keys: {', '.join(required)}"
                )
            entries.append(dict(item))
        else:
            if not isinstance(item, str):
                raise ConfigError(f"copilot_setup.{section} must be a list of strings")
            entries.append(item)
    return entries


def find_config_file(directory: str) -> str | None:
    """Return the path of the first config file present in *directory*, or None."""
    for name in CONFIG_FILENAMES:
        path = os.path.join(directory, name)
        if os.path.isfile(path):
            return path
    return None


def parse_config(text: str) -> ProjectConfig:
    """Build a ProjectConfig from config file text, layering it over the defaults.

    Raises ConfigError on malformed YAML or invalid values.
    """
    config = ProjectConfig()
    try:
        data = YAML(typ="safe").load(text)
    except YAMLError as exc:
        raise ConfigError(f"invalid YAML: {exc}") from exc
    if data is None:
        return config
    if not isinstance(data, dict):
        raise ConfigError("config file must contain a mapping")

    setup = data.get("copilot_setup") or {}
    if not isinstance(setup, dict):
        raise ConfigError("copilot_setup must be a mapping")
    for section in ("version_files", "setup_actions", "setup_action_patterns", "package_managers"):
        if section in setup:
            setattr(config.copilot_setup, section, _validate_entries(section, setup[section]))

    lint = data.get("lint") or {}
    if not isinstance(lint, dict):
        raise ConfigError("lint must be a mapping")
    rules = lint.get("rules") or {}
    if not isinstance(rules, dict):
        raise ConfigError("lint.rules must be a mapping")
    for rule_id, severity in rules.items():
        if rule_id not in DEFAULT_LINT_RULES:
            raise ConfigError(f"unknown lint rule '{rule_id}'")
        if severity not in _RULE_SEVERITIES:
            raise ConfigError(
                f"lint rule '{rule_id}' severity must be one of: error, warn, off"
            )
        config.lint_rules[rule_id] = severity
    return config


def load_config(directory: str) -> ProjectConfig:
    """Load the project config for *directory*, or the defaults if no file exists."""
    path = find_config_file(directory)
    if path is None:
        return ProjectConfig()
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    try:
        return parse_config(text)
    except ConfigError as exc:
        raise ConfigError(f"{os.path.basename(path)}: {exc}") from exc

"""Copilot code review ruleset: detection, payload building, and the gh-backed gateway.

All GitHub access goes through the `gh` CLI (`gh api ...`), so whatever
account `gh auth login` set up is the one used. Failures surface as
RulesetError; check_copilot_review_ruleset() turns them into warnings so a
ruleset problem never fails the command that triggered the check.
"""

import json
import re
from typing import Callable

from rich.markup import escape

from lousy_agents.utils import check_command, log, run_cmd

RULESET_NAME = "Copilot Code Review"
CONFIRM_PROMPT = "No Copilot PR review ruleset found. Would you like to create one?"

_REMOTE_PATTERNS = (
    re.compile(r"github\.com/([\w-]+)/([\w.-]+?)(?:\.git)?/?$"),  # https://github.com/owner/repo.git
    re.compile(r"github\.com:([\w-]+)/([\w.-]+?)(?:\.git)?$"),  # git@github.com:owner/repo.git
)


class RulesetError(Exception):
    """Raised when a GitHub ruleset API call fails."""


def parse_repo_from_remote_url(remote_url: str) -> tuple[str, str] | None:
    """Extract (owner, repo) from an HTTPS or SSH GitHub remote URL."""
    url = remote_url.strip()
    for pattern in _REMOTE_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1), match.group(2)
    return None


def _is_copilot_rule(rule: dict) -> bool:
    if rule.get("type") == "copilot_code_review":
        return True
    if rule.get("type") != "code_scanning":
        return False
    tools = (rule.get("parameters") or {}).get("code_scanning_tools")
    if not isinstance(tools, list):
        return False
    return any(
        isinstance(tool, dict) and "copilot" in str(tool.get("tool", "")).lower()
        for tool in tools
    )


def find_copilot_ruleset(rulesets: list[dict]) -> dict | None:
    """Return the first active ruleset carrying a Copilot review rule, or None."""
    for ruleset in rulesets:
        if ruleset.get("enforcement") != "active":
            continue
        if any(isinstance(rule, dict) and _is_copilot_rule(rule) for rule in ruleset.get("rules") or []):
            return ruleset
    return None


def has_copilot_review_rule(rulesets: list[dict]) -> bool:
    return find_copilot_ruleset(rulesets) is not None


def build_copilot_review_ruleset_payload(advanced_security: bool = False) -> dict:
    """Build the POST body for a default-branch ruleset that turns on Copilot review.

    Code scanning rules need GitHub Advanced Security, so the CodeQL rule
    is only included when the repository has it.
    """
    rules = [
        {
            "type": "copilot_code_review",
            "parameters": {
                "review_on_push": True,
                "review_draft_pull_requests": True,
            },
        },
    ]
    if advanced_security:
        rules.append({
            "type": "code_scanning",
            "parameters": {
                "code_scanning_tools": [
                    {
                        "tool": "CodeQL",
                        "security_alerts_threshold": "high_or_higher",
                        "alerts_threshold": "errors",
                    },
                ],
            },
        })
    return {
        "name": RULESET_NAME,
        "enforcement": "active",
        "target": "branch",
        "bypass_actors": [],
        "conditions": {
            "ref_name": {"include": ["~DEFAULT_BRANCH"], "exclude": []},
        },
        "rules": rules,
    }


class GhRulesetGateway:
    """Ruleset gateway backed by the GitHub CLI."""

    @staticmethod
    def _check(result, path: str) -> None:
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise RulesetError(f"gh api {path} failed: {detail or f'exit code {result.returncode}'}")

    def _api(self, path: str, method: str = "GET", payload: dict | None = None):
        args = ["gh", "api", path]
        if method != "GET":
            args[2:2] = ["-X", method]
        input_text = None
        if payload is not None:
            args += ["--input", "-"]
            input_text = json.dumps(payload)
        result = run_cmd(args, capture=True, input_text=input_text)
        self._check(result, path)
        try:
            return json.loads(result.stdout) if (result.stdout or "").strip() else None
        except json.JSONDecodeError as exc:
            raise RulesetError(f"gh api {path} returned invalid JSON: {exc}") from exc

    def _api_list(self, path: str) -> list:
        """GET every page of a list endpoint. --jq emits one element per line across pages."""
        result = run_cmd(["gh", "api", "--paginate", "--jq", ".[]", path], capture=True)
        self._check(result, path)
        items = []
        for line in (result.stdout or "").splitlines():
            if not line.strip():
                continue
            try:
                items.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise RulesetError(f"gh api {path} returned invalid JSON: {exc}") from exc
        return items

    def is_authenticated(self) -> bool:
        if not check_command("gh"):
            return False
        result = run_cmd(["gh", "auth", "token"], capture=True)
        return result.returncode == 0 and bool((result.stdout or "").strip())

    def get_repo_info(self, directory: str) -> tuple[str, str] | None:
        result = run_cmd(["git", "remote", "get-url", "origin"], capture=True, cwd=directory)
        if result.returncode != 0:
            return None
        return parse_repo_from_remote_url(result.stdout or "")

    def has_advanced_security(self, owner: str, repo: str) -> bool:
        """Public repos get code scanning for free; private ones need GHAS enabled."""
        data = self._api(f"repos/{owner}/{repo}") or {}
        if data.get("visibility") == "public":
            return True
        security = data.get("security_and_analysis") or {}
        return (security.get("advanced_security") or {}).get("status") == "enabled"

    def list_rulesets(self, owner: str, repo: str) -> list[dict]:
        """List rulesets with their rules (the list endpoint omits rules, so each is fetched)."""
        summaries = self._api_list(f"repos/{owner}/{repo}/rulesets")
        rulesets = []
        for summary in summaries:
            if not isinstance(summary, dict) or "id" not in summary:
                continue
            detail = self._api(f"repos/{owner}/{repo}/rulesets/{summary['id']}")
            rulesets.append(detail if isinstance(detail, dict) else summary)
        return rulesets

    def create_ruleset(self, owner: str, repo: str, payload: dict) -> None:
        self._api(f"repos/{owner}/{repo}/rulesets", method="POST", payload=payload)


def check_copilot_review_ruleset(
    directory: str, gateway, confirm: Callable[[str], bool],
) -> bool:
    """Make sure the repo has a Copilot review ruleset, offering to create one.

    Returns True when a ruleset exists (or was created). Never raises on
    gateway errors; they're logged as warnings.
    """
    log("copilot-setup", "")
    log("copilot-setup", "Checking Copilot PR review ruleset...", style="cyan")
    try:
        if not gateway.is_authenticated():
            log("copilot-setup", "  GitHub CLI is not authenticated, skipping ruleset check. Run 'gh auth login'.",
                style="yellow")
            return False
        repo_info = gateway.get_repo_info(directory)
        if repo_info is None:
            log("copilot-setup", "  No GitHub remote found, skipping ruleset check.", style="yellow")
            return False
        owner, repo = repo_info

        existing = find_copilot_ruleset(gateway.list_rulesets(owner, repo))
        if existing is not None:
            log("copilot-setup", f"  Copilot PR review ruleset found: {existing.get('name', '(unnamed)')}",
                style="green")
            return True

        if not confirm(CONFIRM_PROMPT):
            log("copilot-setup", "  Skipped ruleset creation.", style="dim")
            return False

        payload = build_copilot_review_ruleset_payload(gateway.has_advanced_security(owner, repo))
        gateway.create_ruleset(owner, repo, payload)
        log("copilot-setup", f"  Created ruleset '{RULESET_NAME}' on {owner}/{repo}", style="green")
        return True
    except RulesetError as exc:
        log("copilot-setup", f"  WARNING: ruleset check failed: {escape(str(exc))}", style="yellow")
        return False

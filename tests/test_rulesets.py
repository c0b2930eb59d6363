"""Tests for Copilot review ruleset detection, payloads, the gh gateway and the check flow."""

import json
import subprocess

import pytest

from lousy_agents.rulesets import (
    CONFIRM_PROMPT,
    GhRulesetGateway,
    RulesetError,
    build_copilot_review_ruleset_payload,
    check_copilot_review_ruleset,
    has_copilot_review_rule,
    parse_repo_from_remote_url,
)


class FakeGateway:
    def __init__(self, authenticated=True, repo=("octo", "app"), rulesets=None,
                 advanced_security=False, fail_on=None):
        self.authenticated = authenticated
        self.repo = repo
        self.rulesets = rulesets or []
        self.advanced_security = advanced_security
        self.fail_on = fail_on
        self.created = []

    def _maybe_fail(self, name):
        if self.fail_on == name:
            raise RulesetError(f"{name} failed")

    def is_authenticated(self):
        return self.authenticated

    def get_repo_info(self, directory):
        return self.repo

    def has_advanced_security(self, owner, repo):
        self._maybe_fail("has_advanced_security")
        return self.advanced_security

    def list_rulesets(self, owner, repo):
        self._maybe_fail("list_rulesets")
        return self.rulesets

    def create_ruleset(self, owner, repo, payload):
        self._maybe_fail("create_ruleset")
        self.created.append((owner, repo, payload))


# --- remote parsing ---

@pytest.mark.parametrize("url", [
    "https://github.com/octo/app.git",
    "https://github.com/octo/app",
    "git@github.com:octo/app.git",
    "ssh://git@github.com/octo/app.git",
])
def test_parse_github_remotes(url):
    assert parse_repo_from_remote_url(url + "\n") == ("octo", "app")


def test_non_github_remote_is_none():
    assert parse_repo_from_remote_url("https://gitlab.com/octo/app.git") is None


# --- rule detection ---

def test_active_copilot_code_review_rule_is_found():
    rulesets = [{"name": "r", "enforcement": "active", "rules": [{"type": "copilot_code_review"}]}]
    assert has_copilot_review_rule(rulesets) is True


def test_disabled_ruleset_is_ignored():
    rulesets = [{"name": "r", "enforcement": "disabled", "rules": [{"type": "copilot_code_review"}]}]
    assert has_copilot_review_rule(rulesets) is False


def test_code_scanning_rule_with_copilot_tool_counts():
    rule = {"type": "code_scanning", "parameters": {"code_scanning_tools": [{"tool": "Copilot Autofix"}]}}
    assert has_copilot_review_rule([{"enforcement": "active", "rules": [rule]}]) is True


def test_code_scanning_rule_with_other_tool_does_not_count():
    rule = {"type": "code_scanning", "parameters": {"code_scanning_tools": [{"tool": "CodeQL"}]}}
    assert has_copilot_review_rule([{"enforcement": "active", "rules": [rule]}]) is False


# --- payload ---

def test_payload_without_advanced_security():
    payload = build_copilot_review_ruleset_payload(False)
    assert payload["name"] == "Copilot Code Review"
    assert payload["enforcement"] == "active"
    assert payload["target"] == "branch"
    assert payload["conditions"]["ref_name"]["include"] == ["~DEFAULT_BRANCH"]
    assert [r["type"] for r in payload["rules"]] == ["copilot_code_review"]


def test_payload_with_advanced_security_adds_codeql():
    payload = build_copilot_review_ruleset_payload(True)
    assert [r["type"] for r in payload["rules"]] == ["copilot_code_review", "code_scanning"]
    assert payload["rules"][1]["parameters"]["code_scanning_tools"][0]["tool"] == "CodeQL"


# --- check flow ---

def test_existing_ruleset_skips_prompt():
    gateway = FakeGateway(rulesets=[{"name": "r", "enforcement": "active", "rules": [{"type": "copilot_code_review"}]}])
    prompts = []
    assert check_copilot_review_ruleset(".", gateway, prompts.append) is True
    assert prompts == []
    assert gateway.created == []


def test_missing_ruleset_prompts_and_creates():
    gateway = FakeGateway(advanced_security=True)
    prompts = []

    def confirm(message):
        prompts.append(message)
        return True

    assert check_copilot_review_ruleset(".", gateway, confirm) is True
    assert prompts == [CONFIRM_PROMPT]
    owner, repo, payload = gateway.created[0]
    assert (owner, repo) == ("octo", "app")
    assert len(payload["rules"]) == 2


def test_declined_prompt_creates_nothing():
    gateway = FakeGateway()
    assert check_copilot_review_ruleset(".", gateway, lambda message: False) is False
    assert gateway.created == []


def test_unauthenticated_skips():
    gateway = FakeGateway(authenticated=False)
    assert check_copilot_review_ruleset(".", gateway, lambda message: True) is False
    assert gateway.created == []


def test_no_remote_skips():
    gateway = FakeGateway(repo=None)
    assert check_copilot_review_ruleset(".", gateway, lambda message: True) is False


@pytest.mark.parametrize("fail_on", ["list_rulesets", "has_advanced_security", "create_ruleset"])
def test_gateway_errors_become_warnings(fail_on):
    gateway = FakeGateway(fail_on=fail_on)
    assert check_copilot_review_ruleset(".", gateway, lambda message: True) is False


# --- gh gateway ---

def _completed(args, returncode=0, stdout=""):
    return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr="boom" if returncode else "")


def test_gh_gateway_lists_ruleset_details(monkeypatch):
    calls = []

    def fake_run_cmd(args, **kwargs):
        calls.append(args)
        if "--paginate" in args:
            return _completed(args, stdout=json.dumps({"id": 7, "name": "r"}) + "\n")
        return _completed(args, stdout=json.dumps(
            {"id": 7, "name": "r", "enforcement": "active", "rules": [{"type": "copilot_code_review"}]}
        ))

    monkeypatch.setattr("lousy_agents.rulesets.run_cmd", fake_run_cmd)
    rulesets = GhRulesetGateway().list_rulesets("octo", "app")
    assert rulesets[0]["rules"] == [{"type": "copilot_code_review"}]
    assert calls[0] == ["gh", "api", "--paginate", "--jq", ".[]", "repos/octo/app/rulesets"]
    assert calls[1] == ["gh", "api", "repos/octo/app/rulesets/7"]


def test_gh_gateway_reads_rulesets_from_every_page(monkeypatch):
    fetched = []

    def fake_run_cmd(args, **kwargs):
        if "--paginate" in args:
            # one element per line, regardless of which page it came from
            lines = [json.dumps({"id": n, "name": f"r{n}"}) for n in range(1, 36)]
            return _completed(args, stdout="\n".join(lines) + "\n")
        ruleset_id = int(args[-1].rsplit("/", 1)[-1])
        fetched.append(ruleset_id)
        rules = [{"type": "copilot_code_review"}] if ruleset_id == 35 else []
        return _completed(args, stdout=json.dumps({"id": ruleset_id, "enforcement": "active", "rules": rules}))

    monkeypatch.setattr("lousy_agents.rulesets.run_cmd", fake_run_cmd)
    rulesets = GhRulesetGateway().list_rulesets("octo", "app")
    assert fetched == list(range(1, 36))
    assert has_copilot_review_rule(rulesets) is True


def test_gh_gateway_create_posts_payload_on_stdin(monkeypatch):
    seen = {}

    def fake_run_cmd(args, **kwargs):
        seen["args"] = args
        seen["input"] = kwargs.get("input_text")
        return _completed(args, stdout="{}")

    monkeypatch.setattr("lousy_agents.rulesets.run_cmd", fake_run_cmd)
    GhRulesetGateway().create_ruleset("octo", "app", {"name": "x"})
    assert seen["args"] == ["gh", "api", "-X", "POST", "repos/octo/app/rulesets", "--input", "-"]
    assert json.loads(seen["input"]) == {"name": "x"}


def test_gh_gateway_failure_raises_ruleset_error(monkeypatch):
    monkeypatch.setattr("lousy_agents.rulesets.run_cmd", lambda args, **kwargs: _completed(args, returncode=1))
    with pytest.raises(RulesetError, match="boom"):
        GhRulesetGateway().list_rulesets("octo", "app")


def test_gh_gateway_advanced_security(monkeypatch):
    body = {"visibility": "private", "security_and_analysis": {"advanced_security": {"status": "enabled"}}}
    monkeypatch.setattr(
        "lousy_agents.rulesets.run_cmd", lambda args, **kwargs: _completed(args, stdout=json.dumps(body)),
    )
    assert GhRulesetGateway().has_advanced_security("octo", "app") is True


def test_gh_gateway_is_authenticated(monkeypatch):
    monkeypatch.setattr("lousy_agents.rulesets.check_command", lambda name: True)
    monkeypatch.setattr(
        "lousy_agents.rulesets.run_cmd", lambda args, **kwargs: _completed(args, stdout="gho_token\n"),
    )
    assert GhRulesetGateway().is_authenticated() is True


def test_gh_gateway_without_gh_is_not_authenticated(monkeypatch):
    monkeypatch.setattr("lousy_agents.rulesets.check_command", lambda name: False)
    assert GhRulesetGateway().is_authenticated() is False

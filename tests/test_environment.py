"""Tests for environment detection: version files, mise, package managers."""

from lousy_agents.config import CopilotSetupConfig
from lousy_agents.environment import detect_environment


# --- version files ---

def test_empty_directory_detects_nothing(tmp_path):
    env = detect_environment(str(tmp_path))
    assert env.has_mise_config is False
    assert env.version_files == []
    assert env.package_managers == []


def test_missing_directory_returns_empty_environment(tmp_path):
    env = detect_environment(str(tmp_path / "does-not-exist"))
    assert env.version_files == []
    assert env.package_managers == []


def test_nvmrc_version_is_trimmed(tmp_path):
    (tmp_path / ".nvmrc").write_text("20.11.0\n")
    env = detect_environment(str(tmp_path))
    assert len(env.version_files) == 1
    assert env.version_files[0].type == "node"
    assert env.version_files[0].filename == ".nvmrc"
    assert env.version_files[0].version == "20.11.0"


def test_empty_version_file_has_no_version(tmp_path):
    (tmp_path / ".python-version").write_text("   \n")
    env = detect_environment(str(tmp_path))
    assert env.version_files[0].type == "python"
    assert env.version_files[0].version is None


def test_multiple_files_of_same_kind_are_all_returned_in_table_order(tmp_path):
    (tmp_path / ".node-version").write_text("18\n")
    (tmp_path / ".nvmrc").write_text("20\n")
    env = detect_environment(str(tmp_path))
    assert [v.filename for v in env.version_files] == [".nvmrc", ".node-version"]


def test_only_root_is_scanned(tmp_path):
    nested = tmp_path / "sub"
    nested.mkdir()
    (nested / ".nvmrc").write_text("20\n")
    env = detect_environment(str(tmp_path))
    assert env.version_files == []


def test_mise_toml_sets_flag(tmp_path):
    (tmp_path / "mise.toml").write_text('[tools]\nnode = "20"\n')
    assert detect_environment(str(tmp_path)).has_mise_config is True


def test_custom_version_file_table(tmp_path):
    (tmp_path / ".tool-versions-node").write_text("22\n")
    config = CopilotSetupConfig(version_files=[{"filename": ".tool-versions-node", "type": "node"}])
    env = detect_environment(str(tmp_path), config)
    assert [v.filename for v in env.version_files] == [".tool-versions-node"]


# --- package managers ---

def test_package_json_without_lockfile_defaults_to_npm(tmp_path):
    (tmp_path / "package.json").write_text("{}")
    env = detect_environment(str(tmp_path))
    assert [pm.type for pm in env.package_managers] == ["npm"]
    assert env.package_managers[0].lockfile is None


def test_pnpm_lockfile_wins_over_yarn_and_npm(tmp_path):
    (tmp_path / "package.json").write_text("{}")
    (tmp_path / "package-lock.json").write_text("{}")
    (tmp_path / "yarn.lock").write_text("")
    (tmp_path / "pnpm-lock.yaml").write_text("")
    env = detect_environment(str(tmp_path))
    assert [pm.type for pm in env.package_managers] == ["pnpm"]
    assert env.package_managers[0].lockfile == "pnpm-lock.yaml"


def test_yarn_lockfile_wins_over_npm(tmp_path):
    (tmp_path / "package.json").write_text("{}")
    (tmp_path / "package-lock.json").write_text("{}")
    (tmp_path / "yarn.lock").write_text("")
    env = detect_environment(str(tmp_path))
    assert [pm.type for pm in env.package_managers] == ["yarn"]


def test_lockfile_without_package_json_is_ignored(tmp_path):
    (tmp_path / "yarn.lock").write_text("")
    assert detect_environment(str(tmp_path)).package_managers == []


def test_non_node_managers_report_lockfile_only_when_present(tmp_path):
    (tmp_path / "requirements.txt").write_text("requests\n")
    (tmp_path / "Gemfile").write_text("source 'https://rubygems.org'\n")
    (tmp_path / "Gemfile.lock").write_text("")
    (tmp_path / "go.mod").write_text("module example.com/x\n")
    env = detect_environment(str(tmp_path))
    by_type = {pm.type: pm for pm in env.package_managers}
    assert set(by_type) == {"pip", "bundler", "gomod"}
    assert by_type["pip"].lockfile is None
    assert by_type["bundler"].lockfile == "Gemfile.lock"
    assert by_type["gomod"].lockfile is None

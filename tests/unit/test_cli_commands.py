"""Tests for the switchyard CLI."""

import pytest

from conftest import make_bundle, read_json, write_json
from switchyard.cli import main


@pytest.fixture(autouse=True)
def cli_env(home, monkeypatch):
    """Point the CLI at the fake home and its config directory."""
    monkeypatch.setenv("SWITCHYARD_HOME", str(home))
    monkeypatch.setenv("SWITCHYARD_CONFIG_DIR", str(home / ".switchyard"))
    monkeypatch.delenv("SWITCHYARD_PORT", raising=False)


@pytest.fixture
def claude_json_with_servers(claude_json):
    write_json(claude_json, {
        "theme": "dark",
        "mcpServers": {"fs": {"command": "npx", "args": ["-y", "@modelcontextprotocol/server-filesystem"]}},
    })
    return claude_json


class TestMcp:
    def test_list(self, claude_json_with_servers, capsys):
        main(["mcp", "list"])
        out = capsys.readouterr().out
        assert "fs" in out
        assert "claude_json" in out

    def test_list_empty(self, capsys):
        main(["mcp", "list"])
        assert "No MCP servers" in capsys.readouterr().out

    def test_add_command(self, claude_json, capsys):
        main(["mcp", "add", "-e", "TOKEN=abc", "local", "--", "npx", "-y", "some-server"])
        data = read_json(claude_json)
        assert data["mcpServers"]["local"] == {
            "command": "npx",
            "args": ["-y", "some-server"],
            "env": {"TOKEN": "abc"},
        }

    def test_add_url(self, claude_json):
        main(["mcp", "add", "web", "--url", "https://web.example/mcp"])
        assert read_json(claude_json)["mcpServers"]["web"] == {
            "type": "http", "url": "https://web.example/mcp",
        }

    def test_add_duplicate_exits(self, claude_json_with_servers, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["mcp", "add", "fs", "--", "other"])
        assert exc.value.code == 1
        assert "Already Exists" in capsys.readouterr().out

    def test_toggle_and_remove(self, claude_json_with_servers):
        main(["mcp", "toggle", "fs"])
        assert read_json(claude_json_with_servers)["disabledMcpjsonServers"] == ["fs"]
        main(["mcp", "remove", "fs"])
        data = read_json(claude_json_with_servers)
        assert "fs" not in data["mcpServers"]
        assert data["theme"] == "dark"

    def test_templates(self, capsys):
        main(["mcp", "templates"])
        out = capsys.readouterr().out
        assert "github" in out
        assert "GITHUB_TOKEN" in out

    def test_install_template(self, claude_json):
        main(["mcp", "install", "github", "-e", "GITHUB_TOKEN=ghp"])
        blob = read_json(claude_json)["mcpServers"]["github"]
        assert blob["env"] == {"GITHUB_TOKEN": "ghp"}

    def test_install_unknown_template(self, capsys):
        with pytest.raises(SystemExit):
            main(["mcp", "install", "nope"])


class TestSkills:
    def test_install_list_sync(self, tmp_path, home, capsys, sample_skill_md):
        source = make_bundle(tmp_path / "incoming", "pdf", sample_skill_md)

        main(["skills", "install", str(source)])
        main(["skills", "sync", "pdf", "cursor"])
        capsys.readouterr()

        main(["skills", "list"])
        out = capsys.readouterr().out
        assert "PDF Tools (pdf)" in out
        assert "cursor" in out
        assert (home / ".cursor" / "skills" / "pdf").is_symlink()

        main(["skills", "status", "pdf"])
        assert "cursor: synced" in capsys.readouterr().out

    def test_status_unknown(self):
        with pytest.raises(SystemExit):
            main(["skills", "status", "nope"])


class TestModel:
    def test_switch_and_current(self, home, capsys):
        main(["model", "switch", "glm-4.7", "--platform", "zai", "--api-key", "k"])
        env = read_json(home / ".claude" / "settings.json")["env"]
        assert env["ANTHROPIC_MODEL"] == "glm-4.7"
        capsys.readouterr()

        main(["model", "current"])
        out = capsys.readouterr().out
        assert "GLM-4.7" in out
        assert "Z.ai" in out

    def test_switch_without_key_fails(self, capsys):
        with pytest.raises(SystemExit):
            main(["model", "switch", "openai/gpt-4o", "--platform", "openrouter"])
        assert "API Key Missing" in capsys.readouterr().out

    def test_list(self, capsys):
        main(["model", "list", "--platform", "zhipu"])
        out = capsys.readouterr().out
        assert "glm-5" in out
        assert "claude" not in out


class TestConfig:
    def test_set_and_get(self, home, capsys):
        main(["config", "set", "port", "4444"])
        assert "Set port = 4444" in capsys.readouterr().out
        main(["config", "get", "port"])
        assert capsys.readouterr().out.strip() == "4444"

    def test_set_unknown_key(self):
        with pytest.raises(SystemExit):
            main(["config", "set", "nope", "1"])

    def test_set_bad_port(self):
        with pytest.raises(SystemExit):
            main(["config", "set", "port", "abc"])

    def test_show(self, capsys):
        main(["config", "show"])
        out = capsys.readouterr().out
        assert "primary_source: claude_json" in out
        assert "* claude_json" in out


def test_no_command_prints_help(capsys):
    main([])
    assert "usage: switchyard" in capsys.readouterr().out

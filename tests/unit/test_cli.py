"""Tests for the Typer command-line interface."""

import json
from pathlib import Path
from typing import Any, Dict, List, Tuple

import httpx
import pytest
from typer.testing import CliRunner

import pam_cli.cli.app as cli_app
from pam_cli import VERSION
from pam_cli.cli import render
from pam_cli.cli.app import app
from pam_cli.core.client.api_client import PamApiClient

SERVICE = "/api/chief-of-staff"

runner = CliRunner()

Routes = Dict[Tuple[str, str], Tuple[int, Any]]


def flat(output: str) -> str:
    """Undo Rich line folding so long paths can be matched."""
    return output.replace("\n", "")


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep Rich from wrapping messages in captured output."""
    monkeypatch.setattr(render.console, "width", 200)


@pytest.fixture
def serve(monkeypatch: pytest.MonkeyPatch):
    """Answer API requests from a route table and record them."""
    seen: List[httpx.Request] = []

    def _serve(routes: Routes) -> List[httpx.Request]:
        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            status, payload = routes.get((request.method, request.url.path), (404, "not found"))
            if isinstance(payload, str):
                return httpx.Response(status, text=payload)
            return httpx.Response(status, json=payload)

        def create_api_client(config):
            http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
            return PamApiClient(config.api_url, http_client=http_client, cli_api_key=config.cli_api_key)

        monkeypatch.setattr(cli_app, "create_api_client", create_api_client)
        return seen

    return _serve


class TestGlobalOptions:
    """Test cases for global options."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert VERSION in result.output

    def test_malformed_config_aborts(self, tmp_path: Path, serve) -> None:
        """A broken config file stops the command before any request."""
        seen = serve({})
        path = tmp_path / "config.json"
        path.write_text("{ broken", encoding="utf-8")

        result = runner.invoke(app, ["--config", str(path), "health", "--deep"])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
        assert seen == []

    def test_api_url_flag_overrides(self, serve) -> None:
        seen = serve({("GET", f"{SERVICE}/memory/search"): (200, [])})

        result = runner.invoke(app, ["--api-url", "https://flag.test", "memory", "search", "roadmap"])

        assert result.exit_code == 0
        assert seen[0].url.host == "flag.test"


class TestConfigCommands:
    """Test cases for `pam config`."""

    def test_path_default_location(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["config", "path"])

        assert result.exit_code == 0
        assert flat(result.output).strip().endswith(str(Path("pam") / "config.json"))

    def test_init_then_set(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"

        result = runner.invoke(app, ["--config", str(path), "config", "init"])
        assert result.exit_code == 0
        assert path.exists()

        result = runner.invoke(app, ["--config", str(path), "config", "set", "user_email", "pm@example.com"])
        assert result.exit_code == 0
        assert "Configuration updated" in result.output
        assert json.loads(path.read_text(encoding="utf-8"))["user_email"] == "pm@example.com"

    def test_init_refuses_existing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{}", encoding="utf-8")

        result = runner.invoke(app, ["--config", str(path), "config", "init"])

        assert result.exit_code == 1
        assert "already exists" in flat(result.output)

    def test_set_unknown_key(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--config", str(tmp_path / "config.json"), "config", "set", "theme", "dark"])

        assert result.exit_code == 1
        assert "Unknown config key" in flat(result.output)

    def test_show(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--config", str(tmp_path / "config.json"), "config", "show"])

        assert result.exit_code == 0
        assert "PAM Configuration" in result.output


class TestMemoryCommands:
    """Test cases for `pam memory`."""

    def test_search_no_results(self, serve) -> None:
        seen = serve({("GET", f"{SERVICE}/memory/search"): (200, [])})

        result = runner.invoke(app, ["memory", "search", "roadmap"])

        assert result.exit_code == 0
        assert "No memories found" in result.output
        assert dict(seen[0].url.params) == {"query": "roadmap", "limit": "10"}

    def test_search_remote_failure_exits_nonzero(self, serve) -> None:
        serve({("GET", f"{SERVICE}/memory/search"): (500, "index offline")})

        result = runner.invoke(app, ["memory", "search", "roadmap"])

        assert result.exit_code == 1
        assert "Search failed" in result.output

    def test_index_with_tags(self, serve) -> None:
        seen = serve({("POST", f"{SERVICE}/memory/index"): (200, {"id": "mem-7"})})

        result = runner.invoke(app, ["memory", "index", "Ship the beta", "--tag", "release", "-t", "beta"])

        assert result.exit_code == 0
        assert "mem-7" in result.output
        assert json.loads(seen[0].content)["tags"] == ["release", "beta"]

    def test_index_from_stdin(self, serve) -> None:
        seen = serve({("POST", f"{SERVICE}/memory/index"): (200, {})})

        result = runner.invoke(app, ["memory", "index", "-"], input="notes from stdin\n")

        assert result.exit_code == 0
        assert "unknown" in result.output
        assert json.loads(seen[0].content)["content"] == "notes from stdin\n"

    def test_clear_cancelled(self, serve) -> None:
        seen = serve({})

        result = runner.invoke(app, ["memory", "clear", "--user", "pm@example.com"], input="n\n")

        assert result.exit_code == 0
        assert "Cancelled." in result.output
        assert seen == []

    def test_clear_forced(self, serve) -> None:
        serve({("POST", f"{SERVICE}/memory/clear"): (200, {"deleted_count": 3})})

        result = runner.invoke(app, ["memory", "clear", "--user", "pm@example.com", "--force"])

        assert result.exit_code == 0
        assert "Cleared 3 memories" in result.output


class TestSkillCommands:
    """Test cases for `pam skills`."""

    def test_invoke_invalid_params_sends_nothing(self, serve) -> None:
        seen = serve({})

        result = runner.invoke(app, ["skills", "invoke", "jira-query", "--params", "not json"])

        assert result.exit_code == 1
        assert "Invalid JSON params" in flat(result.output)
        assert seen == []

    def test_invoke_prints_content(self, serve) -> None:
        serve({("POST", f"{SERVICE}/skill"): (200, {"content": "AIGAR has 12 open issues"})})

        result = runner.invoke(
            app,
            ["skills", "invoke", "jira-query", "--params", '{"query": "open issues"}', "--user", "pm@example.com"],
        )

        assert result.exit_code == 0
        assert "AIGAR has 12 open issues" in result.output


class TestChatAndReflect:
    """Test cases for `pam chat` and `pam reflect`."""

    def test_single_message(self, serve) -> None:
        seen = serve({("POST", f"{SERVICE}/chat"): (200, {"response": "Hello from PAM", "session_id": "s1"})})

        result = runner.invoke(app, ["chat", "hello", "--user", "pm@example.com"])

        assert result.exit_code == 0
        assert "Hello from PAM" in result.output
        assert seen[0].headers["X-User-Email"] == "pm@example.com"

    def test_anonymous_user_warned(self, serve) -> None:
        seen = serve({("POST", f"{SERVICE}/chat"): (200, {"response": "Hi", "session_id": "s1"})})

        result = runner.invoke(app, ["chat", "hello"])

        assert result.exit_code == 0
        assert "No user email specified" in flat(result.output)
        assert seen[0].headers["X-User-Email"] == "unknown@mergeworld.com"

    def test_continue_without_previous_session_says_so(self, serve) -> None:
        seen = serve({("POST", f"{SERVICE}/chat"): (200, {"response": "Fresh start", "session_id": "s1"})})

        result = runner.invoke(app, ["chat", "hello", "--user", "pm@example.com", "--continue"])

        assert result.exit_code == 0
        assert "No previous session found, starting new one" in flat(result.output)
        assert "Fresh start" in result.output
        assert [r.url.path for r in seen] == [f"{SERVICE}/sessions/latest", f"{SERVICE}/chat"]

    def test_continue_resumes_latest_session(self, serve) -> None:
        serve({
            ("GET", f"{SERVICE}/sessions/latest"): (200, {"session_id": "cli_20260129_080000_0badf00d"}),
            ("POST", f"{SERVICE}/chat"): (200, {"response": "Welcome back", "session_id": "s1"}),
        })

        result = runner.invoke(app, ["chat", "hello", "--user", "pm@example.com", "--continue"])

        assert result.exit_code == 0
        assert "Continuing session: cli_20260129_080000_0badf00d" in flat(result.output)
        assert "No previous session found" not in flat(result.output)

    def test_non_ascii_user_fails_cleanly(self, serve) -> None:
        seen = serve({})

        result = runner.invoke(app, ["chat", "hello", "--user", "josé@example.com"])

        assert result.exit_code == 1
        assert "Chat failed" in flat(result.output)
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert seen == []

    def test_interactive_quit(self, serve) -> None:
        seen = serve({})

        result = runner.invoke(app, ["chat", "--user", "pm@example.com"], input="quit\n")

        assert result.exit_code == 0
        assert "Goodbye" in result.output
        assert seen == []

    def test_reflect_without_sessions(self, serve) -> None:
        serve({("GET", f"{SERVICE}/sessions/today"): (200, {"sessions": []})})

        result = runner.invoke(app, ["reflect", "--user", "pm@example.com"])

        assert result.exit_code == 0
        assert "No sessions found" in result.output

    def test_reflect_save_failure_still_shows_reflection(self, serve) -> None:
        serve({
            ("GET", f"{SERVICE}/sessions/today"): (200, {"sessions": ["s1", "s2"]}),
            ("POST", f"{SERVICE}/reflect"): (200, {
                "what_worked": ["Clear agenda"],
                "what_failed": [],
                "learnings": ["Timebox demos"],
                "action_items": [],
            }),
            ("POST", f"{SERVICE}/reflection/save"): (503, "database unavailable"),
        })

        result = runner.invoke(app, ["reflect", "--user", "pm@example.com"])

        assert result.exit_code == 0
        assert "Timebox demos" in result.output
        assert "Failed to save reflection" in flat(result.output)

    def test_reflect_generation_failure_exits_nonzero(self, serve) -> None:
        serve({
            ("GET", f"{SERVICE}/sessions/today"): (200, {"sessions": ["s1"]}),
            ("POST", f"{SERVICE}/reflect"): (500, "model overloaded"),
        })

        result = runner.invoke(app, ["reflect", "--user", "pm@example.com"])

        assert result.exit_code == 1
        assert "Reflection generation failed" in flat(result.output)


class TestHealthCommand:
    """Test cases for `pam health`."""

    def test_deep_health(self, serve) -> None:
        serve({
            ("GET", "/api/health"): (200, "ok"),
            ("GET", "/api/health/detailed"): (200, {"database": "ok"}),
            ("GET", f"{SERVICE}/context-debug"): (200, {
                "file_count": 2, "total_size_kb": 3.5, "estimated_tokens": 900, "files": [],
            }),
        })

        result = runner.invoke(app, ["health", "--deep"])

        assert result.exit_code == 0
        assert "Connected" in result.output
        assert "2 files available" in result.output

"""Tests for CLI commands."""

import logging
import re

import pytest

from hmytodo.cli.app import app
from hmytodo.cli.console import console


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep table rows on one line regardless of terminal size."""
    monkeypatch.setattr(console, "_width", 200)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """The app callback reconfigures logging on every invocation."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def invoke(cli_runner, hmytodo_home):
    def _invoke(*args: str):
        return cli_runner.invoke(app, list(args))

    return _invoke


@pytest.fixture
def registered(invoke):
    result = invoke(
        "register", "alice@gmail.com", "-p", "secret-pass", "--name", "Alice"
    )
    assert result.exit_code == 0, result.output
    return result


def added_id(result) -> str:
    match = re.search(r"id: (\S+)", result.output)
    assert match, result.output
    return match.group(1)


class TestAuthCommands:
    """Tests for register, signin, signout and whoami."""

    def test_first_registration_is_admin(self, registered, invoke):
        assert "Registered as Alice" in registered.output
        assert "administrator" in registered.output

        result = invoke("whoami")
        assert result.exit_code == 0
        assert "Alice <alice@gmail.com> (admin)" in result.output

    def test_second_registration_is_user(self, registered, invoke):
        result = invoke("register", "bob@gmail.com", "-p", "secret-pass")
        assert result.exit_code == 0
        assert "administrator" not in result.output
        assert "(user)" in invoke("whoami").output

    def test_rejects_non_gmail(self, invoke):
        result = invoke("register", "carol@example.com", "-p", "secret-pass")
        assert result.exit_code == 1
        assert "Gmail" in result.output

    def test_signout_then_signin(self, registered, invoke):
        result = invoke("signout")
        assert result.exit_code == 0
        assert "Signed out" in result.output

        result = invoke("whoami")
        assert result.exit_code == 1
        assert "Not signed in" in result.output

        result = invoke("signin", "alice@gmail.com", "-p", "secret-pass")
        assert result.exit_code == 0
        assert "Signed in as Alice" in result.output

    def test_signin_wrong_password(self, registered, invoke):
        invoke("signout")
        result = invoke("signin", "alice@gmail.com", "-p", "wrong-pass")
        assert result.exit_code == 1

    def test_signout_when_signed_out(self, invoke):
        result = invoke("signout")
        assert result.exit_code == 0
        assert "Not signed in" in result.output


class TestTodoCommands:
    """Tests for the todo subcommands."""

    def test_requires_session(self, invoke):
        result = invoke("todo", "list")
        assert result.exit_code == 1
        assert "Not signed in" in result.output

    def test_add_and_list(self, registered, invoke):
        result = invoke("todo", "add", "Buy milk")
        assert result.exit_code == 0
        assert "Todo added successfully" in result.output

        result = invoke("todo", "list")
        assert result.exit_code == 0
        assert "Buy milk" in result.output
        assert "active" in result.output
        assert "remaining" in result.output

    def test_empty_list(self, registered, invoke):
        result = invoke("todo")
        assert result.exit_code == 0
        assert "No todos found" in result.output

    def test_empty_title_rejected(self, registered, invoke):
        result = invoke("todo", "add", "   ")
        assert result.exit_code == 1
        assert "Please enter a todo title" in result.output

    def test_done_then_filter(self, registered, invoke):
        todo_id = added_id(invoke("todo", "add", "Buy milk"))
        invoke("todo", "add", "Walk dog")

        result = invoke("todo", "done", "--id", todo_id)
        assert result.exit_code == 0
        assert "Todo completed" in result.output

        result = invoke("todo", "list", "--filter", "completed")
        assert "Buy milk" in result.output
        assert "Walk dog" not in result.output

        result = invoke("todo", "done", "--id", todo_id)
        assert result.exit_code == 1
        assert "already completed" in result.output

    def test_delete(self, registered, invoke):
        todo_id = added_id(invoke("todo", "add", "Buy milk"))

        result = invoke("todo", "delete", "--id", todo_id)
        assert result.exit_code == 0
        assert "Todo deleted" in result.output

        result = invoke("todo", "delete", "--id", todo_id)
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_sweep_nothing_overdue(self, registered, invoke):
        invoke("todo", "add", "Buy milk")
        result = invoke("todo", "sweep")
        assert result.exit_code == 0
        assert "0 todo(s) marked as missed" in result.output

    def test_users_see_only_their_own(self, registered, invoke):
        invoke("todo", "add", "alice todo")
        invoke("register", "bob@gmail.com", "-p", "secret-pass", "--name", "Bob")
        invoke("todo", "add", "bob todo")

        result = invoke("todo", "list")
        assert "bob todo" in result.output
        assert "alice todo" not in result.output

        invoke("signin", "alice@gmail.com", "-p", "secret-pass")
        result = invoke("todo", "list")
        assert "alice todo" in result.output
        assert "bob todo" in result.output
        assert "Owner" in result.output


class TestConfigCommand:
    """Tests for 'hmytodo config' command."""

    @pytest.fixture
    def config_file(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[store]\nbackend = "memory"\n\n[todos]\nsweep_mode = "poll"\n'
        )
        return path

    def test_show_displays_content(self, cli_runner, config_file):
        result = cli_runner.invoke(app, ["config", "show", "--path", str(config_file)])
        assert result.exit_code == 0
        assert "[store]" in result.output

    def test_show_missing_file(self, cli_runner, tmp_path):
        result = cli_runner.invoke(
            app, ["config", "show", "--path", str(tmp_path / "missing.toml")]
        )
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_validate_success(self, cli_runner, config_file):
        result = cli_runner.invoke(
            app, ["config", "validate", "--path", str(config_file)]
        )
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "poll every" in result.output

    def test_validate_invalid_toml(self, cli_runner, tmp_path):
        invalid_file = tmp_path / "invalid.toml"
        invalid_file.write_text("not valid toml [[[")
        result = cli_runner.invoke(
            app, ["config", "validate", "--path", str(invalid_file)]
        )
        assert result.exit_code == 1
        assert "Invalid TOML" in result.output

    def test_validate_invalid_config(self, cli_runner, tmp_path):
        invalid_config = tmp_path / "bad_config.toml"
        invalid_config.write_text('[todos]\nsweep_mode = "sometimes"\n')
        result = cli_runner.invoke(
            app, ["config", "validate", "--path", str(invalid_config)]
        )
        assert result.exit_code == 1
        assert "validation failed" in result.output.lower()

    def test_unknown_action(self, cli_runner):
        result = cli_runner.invoke(app, ["config", "unknown"])
        assert result.exit_code == 1
        assert "Unknown action" in result.output

    def test_bad_config_reported_by_commands(self, cli_runner, hmytodo_home, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text('[store]\nbackend = "firestore"\n')
        result = cli_runner.invoke(app, ["--config", str(bad), "whoami"])
        assert result.exit_code == 1

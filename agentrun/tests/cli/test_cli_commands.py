# agentrun/tests/cli/test_cli_commands.py
"""
Smoke tests for the Typer CLI entry points.
"""
from typer.testing import CliRunner

from agentrun.cli import app

runner = CliRunner()


def test_list_tools():
    result = runner.invoke(app, ["list-tools"])
    assert result.exit_code == 0
    for name in ("bash_executor", "file_reader", "file_writer"):
        assert name in result.stdout


def test_show_config():
    result = runner.invoke(app, ["show-config"])
    assert result.exit_code == 0
    assert '"max_steps"' in result.stdout


def test_run_turn_from_script(tmp_path):
    script = tmp_path / "script.yaml"
    script.write_text(
        "steps:\n"
        "  - tool_calls:\n"
        "      - name: file_writer\n"
        "        arguments: {path: hello.txt, content: hi}\n"
        "  - content: Wrote the file.\n"
    )
    workspace = tmp_path / "ws"

    result = runner.invoke(
        app, ["run-turn", str(script), "--message", "write hello", "--workspace", str(workspace)]
    )

    assert result.exit_code == 0, result.stdout
    assert "file.created" in result.stdout
    assert "Finish reason: stop" in result.stdout
    assert (workspace / "hello.txt").read_text() == "hi"


def test_run_turn_denies_confirmation_by_default(tmp_path):
    script = tmp_path / "script.yaml"
    script.write_text(
        "steps:\n"
        "  - tool_calls:\n"
        "      - name: bash_executor\n"
        "        arguments: {command: touch marker}\n"
        "  - content: Could not run it.\n"
    )
    workspace = tmp_path / "ws"

    result = runner.invoke(app, ["run-turn", str(script), "--workspace", str(workspace)])

    assert result.exit_code == 0, result.stdout
    assert "APPROVAL_DENIED" in result.stdout
    assert not (workspace / "marker").exists()


def test_missing_script_fails():
    result = runner.invoke(app, ["run-turn", "/nonexistent/script.yaml"])
    assert result.exit_code != 0

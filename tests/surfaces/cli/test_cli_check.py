from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from blockcord import __version__
from blockcord.surfaces.cli.cli import app

runner = CliRunner()

_DEFINITIONS = """
"guild-1":
  - name: ping
    description: Replies with pong
    cooldownSeconds: 5
    blocks:
      - type: message
        config:
          content: pong
          components:
            - {type: button, label: "Yes", customId: vote_yes}
            - {type: button, label: "No", customId: vote_no}
  - name: Bad Name
    blocks: []
"""


def _write_repo(root: Path) -> None:
    (root / "blockcord.yml").write_text(
        "scope_id: guild-1\n"
        "definitions:\n"
        "  source: yaml\n"
        "  yaml_path: definitions.yml\n",
        encoding="utf-8",
    )
    (root / "definitions.yml").write_text(_DEFINITIONS, encoding="utf-8")


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_check_lists_commands_and_skips(tmp_path: Path) -> None:
    _write_repo(tmp_path)

    result = runner.invoke(app, ["check", "--path", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "/reload (built-in)" in result.output
    assert "/ping: 0 condition(s), 1 action(s), cooldown 5s" in result.output
    assert "block 0: component rows [2]" in result.output
    assert "skipped Bad Name:" in result.output


def test_check_strict_fails_on_skipped_definitions(tmp_path: Path) -> None:
    _write_repo(tmp_path)

    result = runner.invoke(app, ["check", "--path", str(tmp_path), "--strict"])

    assert result.exit_code == 1


def test_check_reports_missing_config(tmp_path: Path) -> None:
    result = runner.invoke(app, ["check", "--path", str(tmp_path)])

    assert result.exit_code == 1
    assert "scope_id" in result.output

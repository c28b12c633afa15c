"""Tests for the glassc command line"""

import json

import pytest
from typer.testing import CliRunner

from glassc import __version__
from glassc.cli import app

runner = CliRunner()


@pytest.fixture
def prompts(tmp_path):
    folder = tmp_path / "prompts"
    folder.mkdir()
    (folder / "greeting.glass").write_text("Hello {name}", encoding="utf-8")
    (folder / "chat.glass").write_text(
        '<For each={xs} as="x">\n<User>\n{x}\n</User>\n</For>', encoding="utf-8"
    )
    return folder


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_transpile_stdout(prompts):
    result = runner.invoke(app, ["transpile", str(prompts / "greeting.glass"), "--stdout"])
    assert result.exit_code == 0
    assert "// THIS FILE WAS GENERATED BY GLASS -- DO NOT EDIT!" in result.output
    assert "export function getGreetingPrompt(args: { name: string }) {" in result.output


def test_transpile_directory_writes_file(prompts, tmp_path):
    out = tmp_path / "out"
    result = runner.invoke(
        app, ["transpile", str(prompts), "-o", str(out), "--language", "javascript"]
    )
    assert result.exit_code == 0
    content = (out / "glass.js").read_text(encoding="utf-8")
    assert "getChat: getChatPrompt," in content
    assert "getGreeting: getGreetingPrompt," in content


def test_transpile_default_output_in_working_directory(prompts, tmp_path, monkeypatch):
    monkeypatch.delenv("GLASS_OUTPUT_DIR", raising=False)
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["transpile", str(prompts), "--language", "typescript"])
    assert result.exit_code == 0
    assert (tmp_path / "src" / "glass.ts").exists()


def test_transpile_deduplicate(tmp_path):
    path = tmp_path / "twice.glass"
    path.write_text("{a} {b} {a}", encoding="utf-8")
    result = runner.invoke(app, ["transpile", str(path), "--stdout", "--deduplicate"])
    assert result.exit_code == 0
    assert "const TEMPLATE = '{0} {1} {0}'" in result.output


def test_transpile_bad_language(prompts):
    result = runner.invoke(app, ["transpile", str(prompts), "--language", "python"])
    assert result.exit_code == 1


def test_transpile_missing_file(tmp_path):
    result = runner.invoke(app, ["transpile", str(tmp_path / "nope.glass")])
    assert result.exit_code == 1


def test_transpile_bad_frontmatter(tmp_path):
    path = tmp_path / "bad.glass"
    path.write_text("---\nfoo: banana\n---\n", encoding="utf-8")
    result = runner.invoke(app, ["transpile", str(path), "--stdout"])
    assert result.exit_code == 1


def test_check_clean(prompts):
    result = runner.invoke(app, ["check", str(prompts)])
    assert result.exit_code == 0


def test_check_reports_errors(tmp_path):
    path = tmp_path / "broken.glass"
    path.write_text("<System>\nhello\n<System>", encoding="utf-8")
    result = runner.invoke(app, ["check", str(path)])
    assert result.exit_code == 1


def test_fold(prompts):
    result = runner.invoke(app, ["fold", str(prompts / "chat.glass")])
    assert result.exit_code == 0
    assert json.loads(result.output) == [
        {"start_line": 0, "end_line": 4},
        {"start_line": 1, "end_line": 3},
    ]

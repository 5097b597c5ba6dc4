import io
import json
import sys

import pytest

from eventscript import cli

def test_flat_script(tmp_path, capsys):
    path = tmp_path / "intro.txt"
    path.write_text("s;Hello\nkill;Bob\n# a comment\nnot_a_command;x\n")
    assert cli.main([str(path)]) == 0
    assert capsys.readouterr().out == "speak;Hello\nkill_unit;Bob\n"

def test_indented_script_with_vars(tmp_path, capsys):
    path = tmp_path / "shop.txt"
    path.write_text("#pyev1\nif gold > 10 and name == 'Seth':\n    $s;rich\nelse:\n    $s;poor\n")
    assert cli.main([str(path), "--var", "gold=20", "--var", "name=Seth"]) == 0
    assert capsys.readouterr().out == "speak;rich\n"

    assert cli.main([str(path), "--var", "gold=5", "--var", "name=Seth"]) == 0
    assert capsys.readouterr().out == "speak;poor\n"

def test_json_output_file(tmp_path):
    path = tmp_path / "intro.txt"
    path.write_text("move;Seth;3,4\n")
    out = tmp_path / "out.jsonl"
    assert cli.main([str(path), "--json", "-o", str(out)]) == 0
    assert [json.loads(line) for line in out.read_text().splitlines()] == [
        {"kind": "move_unit", "args": ["Seth", "3,4"]},
    ]

def test_stdin(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO("#pyev1\nfor i in range(2):\n    $s;again\n"))
    assert cli.main(["-"]) == 0
    assert capsys.readouterr().out == "speak;again\nspeak;again\n"

def test_config_file(tmp_path, capsys):
    settings = tmp_path / "settings.toml"
    settings.write_text('[scripting]\nCOMMAND_PREFIX = "@"\n')
    path = tmp_path / "intro.txt"
    path.write_text("#pyev1\n@s;custom prefix\n")
    assert cli.main([str(path), "--config", str(settings)]) == 0
    assert capsys.readouterr().out == "speak;custom prefix\n"

def test_parse_var():
    assert cli.parse_var("gold=20") == ("gold", 20)
    assert cli.parse_var("flag=true") == ("flag", True)
    assert cli.parse_var("name='Seth'") == ("name", "Seth")
    assert cli.parse_var("name=Seth") == ("name", "Seth")
    assert cli.parse_var("empty=") == ("empty", "")

def test_bad_var(tmp_path):
    path = tmp_path / "intro.txt"
    path.write_text("s;Hello\n")
    with pytest.raises(SystemExit):
        cli.main([str(path), "--var", "no_equals_sign"])

# tests/test_cli.py
import json
from pathlib import Path

from stepscope import cli
from stepscope.cli import load_schema, main as stepscope_main


def _script(tmp_path: Path, text: str, name: str = "prog.js") -> Path:
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def _read_json(p: Path):
    return json.loads(p.read_text(encoding="utf-8"))


def test_plain_run_prints_output_and_globals(tmp_path: Path, capsys):
    prog = _script(tmp_path, 'let x = 2 * 21;\nconsole.log("answer", x);\n')
    rc = stepscope_main([str(prog)])
    assert rc == 0
    out = capsys.readouterr().out
    assert "answer 42" in out
    assert "x = 42" in out


def test_runtime_error_exits_one(tmp_path: Path, capsys):
    prog = _script(tmp_path, "let a = 1;\nmissing();\n")
    rc = stepscope_main([str(prog)])
    assert rc == 1
    err = capsys.readouterr().err
    assert "line 2" in err
    assert "missing is not defined" in err


def test_syntax_error_exits_two(tmp_path: Path, capsys):
    prog = _script(tmp_path, "let = ;\n")
    rc = stepscope_main([str(prog)])
    assert rc == 2
    assert "SyntaxError" in capsys.readouterr().err


def test_missing_file_exits_two(tmp_path: Path):
    assert stepscope_main([str(tmp_path / "nope.js")]) == 2


def test_json_document_written_and_validated(tmp_path: Path):
    prog = _script(tmp_path, "function f(n) { return n + 1; }\nlet y = f(1);\nif (y > 1) {\n  y = 0;\n}\n")
    out = tmp_path / "out.json"
    rc = stepscope_main([str(prog), "--snapshots", "--cfg", "--ast", "--call-tree", "--validate",
                         "--out", str(out)])
    assert rc == 0
    doc = _read_json(out)
    assert set(doc) == {"snapshots", "cfg", "ast", "callTree"}
    assert doc["snapshots"][-1]["globalVariables"]["y"]["value"] == 0
    assert doc["cfg"]["nodes"][0]["type"] == "start"
    assert doc["ast"]["type"] == "Program"
    assert doc["callTree"]["children"][0]["functionName"] == "f"


def test_json_document_on_stdout(tmp_path: Path, capsys):
    prog = _script(tmp_path, "let a = 1;\n")
    rc = stepscope_main([str(prog), "--snapshots"])
    assert rc == 0
    doc = json.loads(capsys.readouterr().out)
    assert [s["step"] for s in doc["snapshots"]] == [0, 1]


def test_cfg_dot_file(tmp_path: Path):
    prog = _script(tmp_path, "let i = 0;\nwhile (i < 2) {\n  i++;\n}\n")
    dot = tmp_path / "cfg.dot"
    rc = stepscope_main([str(prog), "--cfg-dot", str(dot)])
    assert rc == 0
    text = dot.read_text(encoding="utf-8")
    assert text.startswith("digraph cfg {")
    assert "style=dashed" in text


def test_max_steps_flag(tmp_path: Path, capsys):
    prog = _script(tmp_path, "while (true) {}\n")
    rc = stepscope_main([str(prog), "--max-steps", "20"])
    assert rc == 1
    assert "Maximum execution steps exceeded" in capsys.readouterr().err


def test_schemas_ship_inside_the_package():
    schema = load_schema("snapshots")
    assert schema["type"] == "object"
    assert "callStack" in schema["required"]


def test_missing_schema_exits_one(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setitem(cli.SCHEMAS, "snapshots", "absent.schema.json")
    prog = _script(tmp_path, "let a = 1;\n")
    rc = stepscope_main([str(prog), "--snapshots", "--validate"])
    assert rc == 1
    assert "cannot load schema" in capsys.readouterr().err

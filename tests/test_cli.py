"""Tests for the CLI: help text quality, schema subcommand, and commands."""

from __future__ import annotations

import io
import json

import pytest

from json_query_tools.cli import _build_parser, _cli_schema, _read_script, main
from json_query_tools.config import ENV_LANGUAGE, ENV_LOG_DIR, ENV_STATE
from json_query_tools.history import HISTORY_KEY


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in (ENV_STATE, ENV_LOG_DIR, ENV_LANGUAGE):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


@pytest.fixture
def state_file(tmp_path):
    return tmp_path / "state.json"


@pytest.fixture
def document(tmp_path):
    path = tmp_path / "users.json"
    path.write_text(json.dumps([
        {"name": "ann", "active": True},
        {"name": "bob", "active": False},
    ]))
    return path


def run_cli(*argv: str) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(list(argv))
    return exc_info.value.code


def stored(state_file) -> list[dict]:
    return json.loads(state_file.read_text())[HISTORY_KEY]


# ── _read_script ──────────────────────────────────────────────────

class TestReadScript:
    def test_literal(self):
        assert _read_script("return 1") == "return 1"

    def test_dash_reads_stdin(self):
        assert _read_script("-", io.StringIO("return 2\n")) == "return 2\n"


# ── _cli_schema ───────────────────────────────────────────────────

class TestCliSchema:
    def setup_method(self):
        self.schema = _cli_schema()

    def test_top_level_keys_present(self):
        for key in ("tool", "description", "when_to_use", "not_for", "commands"):
            assert key in self.schema, f"Missing key: {key}"

    def test_tool_name(self):
        assert self.schema["tool"] == "json-query-tools"

    def test_commands_list(self):
        names = [c["name"] for c in self.schema["commands"]]
        assert names == ["run", "history", "serve", "schema"]

    def test_run_arguments_have_descriptions(self):
        run = next(c for c in self.schema["commands"] if c["name"] == "run")
        for arg_name, arg_spec in run["arguments"].items():
            assert "description" in arg_spec, f"Missing description on argument {arg_name}"

    def test_schema_is_json_serializable(self):
        json.dumps(self.schema)


# ── _build_parser ─────────────────────────────────────────────────

class TestParser:
    def test_run_args(self):
        args = _build_parser().parse_args(["run", "doc.json", "return 1", "--no-save"])
        assert args.command == "run"
        assert args.script == "return 1"
        assert args.no_save is True
        assert args.language is None

    def test_global_state_file(self):
        args = _build_parser().parse_args(["--state-file", "s.json", "history", "list"])
        assert str(args.state_file) == "s.json"
        assert args.history_command == "list"

    def test_language_choices(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["run", "doc.json", "x", "--language", "ruby"])

    def test_no_command_prints_help(self, capsys):
        assert run_cli() == 0
        assert "json-query-tools" in capsys.readouterr().out


# ── run ───────────────────────────────────────────────────────────

class TestRun:
    def test_prints_result_and_saves(self, capsys, state_file, document):
        code = run_cli("--state-file", str(state_file), "run", str(document), "return len(data)")
        assert code == 0
        assert capsys.readouterr().out == "2\n"
        assert stored(state_file) == [{"expression": "return len(data)", "isFavorite": False}]

    def test_function_style(self, capsys, state_file, document):
        script = "return lambda d: [u['name'] for u in d if u['active']]"
        run_cli("--state-file", str(state_file), "run", str(document), script)
        assert json.loads(capsys.readouterr().out) == ["ann"]

    def test_no_save(self, state_file, document):
        run_cli("--state-file", str(state_file), "run", str(document), "return 1", "--no-save")
        assert not state_file.exists()

    def test_empty_result_warns(self, capsys, state_file, document):
        code = run_cli("--state-file", str(state_file), "run", str(document), "1+1;")
        captured = capsys.readouterr()
        assert code == 0
        assert captured.out == "null\n"
        assert "Warning" in captured.err

    def test_script_error_exits_1(self, capsys, state_file, document):
        code = run_cli("--state-file", str(state_file), "run", str(document), "}{")
        assert code == 1
        assert "SyntaxError" in capsys.readouterr().err
        assert not state_file.exists()

    def test_missing_document_exits_1(self, capsys, state_file, tmp_path):
        code = run_cli("--state-file", str(state_file), "run", str(tmp_path / "nope.json"), "return 1")
        assert code == 1
        assert "not found" in capsys.readouterr().err

    def test_corrupt_state_exits_2(self, capsys, state_file, document):
        state_file.write_text("garbage")
        code = run_cli("--state-file", str(state_file), "run", str(document), "return 1")
        assert code == 2
        assert "not valid JSON" in capsys.readouterr().err

    def test_output_file(self, capsys, state_file, document, tmp_path):
        out = tmp_path / "out.json"
        run_cli("--state-file", str(state_file), "run", str(document), "return data[0]", "-o", str(out))
        assert json.loads(out.read_text()) == {"name": "ann", "active": True}
        assert "Output written" in capsys.readouterr().err

    def test_script_from_stdin(self, capsys, monkeypatch, state_file, document):
        monkeypatch.setattr("sys.stdin", io.StringIO("rows = data\nreturn len(rows)\n"))
        run_cli("--state-file", str(state_file), "run", str(document), "-")
        assert capsys.readouterr().out == "2\n"

    def test_jsonata_language(self, capsys, state_file, document):
        run_cli("--state-file", str(state_file), "run", str(document), "$[0].name", "--language", "jsonata")
        assert json.loads(capsys.readouterr().out) == "ann"

    def test_state_from_environment(self, monkeypatch, tmp_path, document):
        env_state = tmp_path / "env-state.json"
        monkeypatch.setenv(ENV_STATE, str(env_state))
        run_cli("run", str(document), "return 1")
        assert stored(env_state) == [{"expression": "return 1", "isFavorite": False}]

    def test_log_dir(self, tmp_path, state_file, document):
        logs = tmp_path / "logs"
        run_cli("--state-file", str(state_file), "--log-dir", str(logs), "run", str(document), "return 1")
        assert (logs / "query.log").exists()

    def test_bad_config_exits_2(self, capsys, tmp_path, document):
        cfg = tmp_path / "cfg.yaml"
        cfg.write_text("history_limit: -1\n")
        code = run_cli("--config", str(cfg), "run", str(document), "return 1")
        assert code == 2
        assert "Invalid configuration" in capsys.readouterr().err


# ── history ───────────────────────────────────────────────────────

class TestHistory:
    def _hist(self, state_file, *argv: str) -> int:
        return run_cli("--state-file", str(state_file), "history", *argv)

    def test_save_and_list(self, capsys, state_file):
        self._hist(state_file, "save", "return 1")
        self._hist(state_file, "save", "return 2")
        capsys.readouterr()
        assert self._hist(state_file, "list") == 0
        assert capsys.readouterr().out == "  return 2\n  return 1\n"

    def test_list_json_and_filter(self, capsys, state_file):
        self._hist(state_file, "save", "return data['users']")
        self._hist(state_file, "save", "return 2")
        capsys.readouterr()
        self._hist(state_file, "list", "--json", "--filter", "USERS")
        assert json.loads(capsys.readouterr().out) == [
            {"expression": "return data['users']", "isFavorite": False}
        ]

    def test_list_empty(self, capsys, state_file):
        self._hist(state_file, "list")
        assert "No history yet" in capsys.readouterr().out

    def test_favorite_toggle(self, capsys, state_file):
        self._hist(state_file, "save", "x")
        assert self._hist(state_file, "favorite", "x") == 0
        assert "Favorited" in capsys.readouterr().out
        self._hist(state_file, "favorite", "x")
        assert "Unfavorited" in capsys.readouterr().out

    def test_rename(self, state_file):
        self._hist(state_file, "save", "x")
        assert self._hist(state_file, "rename", "x", "My Query") == 0
        assert stored(state_file) == [
            {"expression": "x", "isFavorite": True, "displayName": "My Query"}
        ]

    def test_delete(self, state_file):
        self._hist(state_file, "save", "x")
        self._hist(state_file, "rename", "x", "Fav")
        assert self._hist(state_file, "delete", "x") == 0
        assert stored(state_file) == []

    @pytest.mark.parametrize("argv", [("favorite", "x"), ("rename", "x", "n"), ("delete", "x")])
    def test_missing_entry_exits_1(self, capsys, state_file, argv):
        assert self._hist(state_file, *argv) == 1
        assert "No history entry" in capsys.readouterr().err


# ── serve ─────────────────────────────────────────────────────────

class TestServe:
    def test_session_over_json_lines(self, capsys, monkeypatch, state_file, document):
        lines = [
            {"type": "ready"},
            {"type": "run", "expr": "return len(data)", "save": True},
            {"type": "toggleFavorite", "expr": "return len(data)"},
        ]
        stdin = "\n".join(json.dumps(m) for m in lines) + "\nnot json\n\n[1]\n"
        monkeypatch.setattr("sys.stdin", io.StringIO(stdin))
        code = run_cli("--state-file", str(state_file), "serve", str(document))
        assert code == 0
        replies = [json.loads(l) for l in capsys.readouterr().out.splitlines()]
        assert [r["type"] for r in replies] == [
            "hydrate", "hydrate", "result", "hydrate", "result", "result",
        ]
        assert replies[0]["history"] == []
        assert replies[2]["data"] == 2
        assert replies[3]["history"] == [
            {"expression": "return len(data)", "isFavorite": True}
        ]
        assert "Invalid message JSON" in replies[4]["error"]
        assert replies[5]["error"] == "Message must be a JSON object"

    def test_script_exit_does_not_end_session(self, capsys, monkeypatch, state_file, document):
        lines = [
            {"type": "run", "expr": "exit()", "save": True},
            {"type": "ready"},
        ]
        stdin = "\n".join(json.dumps(m) for m in lines) + "\n"
        monkeypatch.setattr("sys.stdin", io.StringIO(stdin))
        code = run_cli("--state-file", str(state_file), "serve", str(document))
        assert code == 0
        replies = [json.loads(l) for l in capsys.readouterr().out.splitlines()]
        assert [r["type"] for r in replies] == ["result", "hydrate"]
        assert "SystemExit" in replies[0]["error"]
        assert replies[1]["history"] == []


# ── schema ────────────────────────────────────────────────────────

def test_schema_command(capsys):
    assert run_cli("schema") == 0
    assert json.loads(capsys.readouterr().out)["tool"] == "json-query-tools"

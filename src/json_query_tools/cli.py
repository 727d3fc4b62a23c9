"""Command-line interface for json-query-tools.

Enables execution via ``python -m json_query_tools`` or a plain
``json-query-tools`` command after install.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

if TYPE_CHECKING:
    from json_query_tools.config import Settings
    from json_query_tools.history import HistoryStore

# ── Human-readable help strings ──────────────────────────────────────────────
# Written to teach both humans and LLM agents how and when to use this tool.

_TOP_DESCRIPTION = """\
Run scripts against JSON documents and keep a history of past queries.

A script is the body of a Python function that receives the parsed document
as `data` (and a `require` helper for loading modules next to the document).
It may also return a function, which is then called with `data`. Every run is
recorded in a bounded history (200 entries) where queries can be favorited,
named, searched and deleted.

Use this tool when you need to QUERY or RESHAPE a JSON file with a short
script, or to manage previously used queries.
Do NOT use it to: edit JSON files in place, validate JSON Schema, or run
untrusted code (scripts run with full interpreter privileges).
"""

_TOP_EPILOG = """\
For a machine-readable JSON description of this CLI (commands, argument
schemas, output shapes, examples):

  json-query-tools schema

Quick examples:
  json-query-tools run data.json 'return len(data)'
  json-query-tools run data.json 'return lambda d: [x["id"] for x in d]'
  json-query-tools history list --filter active
  json-query-tools history rename 'return len(data)' 'Row count'
"""

_RUN_DESCRIPTION = """\
Evaluate a script against a JSON document and print the result as JSON.

The script is compiled as a function body with parameters (data, require).
If the script returns a callable, it is invoked with the same arguments and
its return value becomes the result. The script is saved to history unless
--no-save is given.
"""

_RUN_EPILOG = """\
Output:
  The result rendered as indented JSON on stdout (or to --output FILE).
  Values that are not JSON-serializable are printed with str().

Empty results:
  A script without a `return` produces no value. This is reported as a
  warning on stderr and `null` is printed; the exit code is still 0.

Languages:
  --language python   (default) script is a Python function body
  --language jsonata  script is a JSONata expression over the document

Examples:
  # Count the rows
  json-query-tools run users.json 'return len(data)'

  # Function style
  json-query-tools run users.json 'return lambda d: [u for u in d if u["active"]]'

  # Script from stdin, result to a file, history untouched
  cat query.py | json-query-tools run users.json - --no-save -o out.json

  # JSONata
  json-query-tools run users.json '$count($[active])' --language jsonata

Exit codes:
  0 -- result printed
  1 -- script failed or the document could not be loaded
  2 -- history state could not be read or written, or config is invalid
"""

_HISTORY_DESCRIPTION = """\
Inspect and edit the query history.

Entries are keyed by their exact expression text. Favorites survive
eviction until every non-favorite is gone; naming an entry favorites it.
"""

_HISTORY_EPILOG = """\
Examples:
  json-query-tools history list
  json-query-tools history list --filter users --json
  json-query-tools history save 'return data["items"]'
  json-query-tools history favorite 'return data["items"]'
  json-query-tools history rename 'return data["items"]' 'All items'
  json-query-tools history rename 'return data["items"]' ''   # clear name
  json-query-tools history delete 'return data["items"]'

Exit codes:
  0 -- success
  1 -- no history entry has that expression
  2 -- history state could not be read or written
"""

_SERVE_DESCRIPTION = """\
Run a query editor session over JSON lines on stdin/stdout.

Each input line is one message object with a "type" field: ready, rebind,
use, run, save, toggleFavorite, renameHistoryItem, confirmDelete. Each
reply is one JSON object per line: hydrate, result, insert or aiError.
renameHistoryItem takes the new name from "newName" (absent = cancelled);
confirmDelete only deletes when "confirm" is true.
"""

_SCHEMA_DESCRIPTION = """\
Print a machine-readable JSON description of this CLI to stdout.

Designed for LLM agents and tooling that need to understand what commands
are available, what arguments they accept, and what output they produce.
"""


# ── Structured JSON schema (for `json-query-tools schema`) ───────────────────

def _cli_schema() -> dict[str, Any]:
    """Return a structured JSON description of the entire CLI."""
    return {
        "tool": "json-query-tools",
        "description": (
            "Evaluates scripts against JSON documents and keeps a bounded, "
            "searchable history of past queries with favorites and names."
        ),
        "when_to_use": (
            "Use this CLI to query or reshape a JSON file with a short "
            "Python or JSONata script, or to manage saved queries."
        ),
        "not_for": [
            "Editing JSON files in place",
            "Running untrusted code (there is no sandbox)",
            "Generating queries with an AI model",
        ],
        "global_arguments": {
            "--config": {
                "type": "string",
                "format": "file path",
                "required": False,
                "description": "YAML file with state_path, history_limit, language, log_dir.",
            },
            "--state-file": {
                "type": "string",
                "format": "file path",
                "required": False,
                "description": "JSON file holding the history. Overrides config and environment.",
            },
            "--log-dir": {
                "type": "string",
                "format": "directory path",
                "required": False,
                "description": "Write JSONL event logs to DIR/query.log.",
            },
        },
        "commands": [
            {
                "name": "run",
                "description": (
                    "Evaluate a script against a JSON document and print the "
                    "result as JSON. Saves the script to history."
                ),
                "arguments": {
                    "document": {
                        "type": "string",
                        "format": "file path",
                        "required": True,
                        "description": "JSON document bound to `data`.",
                    },
                    "script": {
                        "type": "string",
                        "required": True,
                        "description": "Script text, or '-' to read it from stdin.",
                    },
                    "--language": {
                        "type": "string",
                        "enum": ["python", "jsonata"],
                        "required": False,
                        "description": "Script language (default python).",
                    },
                    "--no-save": {
                        "type": "boolean",
                        "required": False,
                        "description": "Do not record the script in history.",
                    },
                    "--output": {
                        "short": "-o",
                        "type": "string",
                        "format": "file path",
                        "required": False,
                        "description": "Write the JSON result to this file instead of stdout.",
                    },
                },
                "output": {
                    "channel": "stdout (or the file given by --output)",
                    "format": "indented JSON of the script result",
                },
                "exit_codes": {
                    "0": "success (including empty results, which warn on stderr)",
                    "1": "script error or unreadable document",
                    "2": "history state or configuration error",
                },
                "examples": [
                    {
                        "description": "Count rows in a JSON array",
                        "command": "json-query-tools run users.json 'return len(data)'",
                    },
                    {
                        "description": "Return a function that receives the data",
                        "command": "json-query-tools run users.json 'return lambda d: d[0]'",
                    },
                    {
                        "description": "Evaluate a JSONata expression",
                        "command": "json-query-tools run users.json '$count($)' --language jsonata",
                    },
                ],
            },
            {
                "name": "history",
                "description": "List, save, favorite, rename or delete history entries.",
                "subcommands": {
                    "list": "history list [--filter TEXT] [--json]",
                    "save": "history save EXPRESSION",
                    "favorite": "history favorite EXPRESSION",
                    "rename": "history rename EXPRESSION NAME",
                    "delete": "history delete EXPRESSION",
                },
                "exit_codes": {
                    "0": "success",
                    "1": "no entry with that expression",
                    "2": "history state error",
                },
            },
            {
                "name": "serve",
                "description": (
                    "Message-driven session over JSON lines on stdin/stdout, "
                    "for editor front-ends."
                ),
                "arguments": {
                    "document": {
                        "type": "string",
                        "format": "file path",
                        "required": False,
                        "description": "Initial target document for run messages.",
                    },
                },
                "inbound_types": [
                    "ready", "rebind", "use", "run", "save",
                    "toggleFavorite", "renameHistoryItem", "confirmDelete",
                ],
                "outbound_types": ["hydrate", "result", "insert", "aiError"],
                "exit_codes": {"0": "stdin closed"},
            },
            {
                "name": "schema",
                "description": "Print this machine-readable JSON schema to stdout.",
                "arguments": {},
                "exit_codes": {"0": "always succeeds"},
            },
        ],
    }


# ── Argument parser ───────────────────────────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="json-query-tools",
        description=_TOP_DESCRIPTION,
        epilog=_TOP_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=Path,
        metavar="FILE",
        help="YAML config file (state_path, history_limit, language, log_dir).",
    )
    parser.add_argument(
        "--state-file",
        type=Path,
        metavar="FILE",
        help="JSON file holding the query history.",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        metavar="DIR",
        help="Write JSONL event logs to DIR/query.log.",
    )
    sub = parser.add_subparsers(dest="command")

    # ── run ──────────────────────────────────────────────────────────────────
    run_p = sub.add_parser(
        "run",
        help="Evaluate a script against a JSON document",
        description=_RUN_DESCRIPTION,
        epilog=_RUN_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_p.add_argument("document", type=Path, help="Path to the JSON document")
    run_p.add_argument("script", help="Script text, or '-' to read from stdin")
    run_p.add_argument(
        "--language",
        choices=["python", "jsonata"],
        default=None,
        help="Script language (default: python, or the configured language).",
    )
    run_p.add_argument(
        "--no-save",
        action="store_true",
        help="Do not record the script in history.",
    )
    run_p.add_argument(
        "--output", "-o",
        type=Path,
        metavar="FILE",
        help="Write JSON output to FILE instead of stdout.",
    )

    # ── history ──────────────────────────────────────────────────────────────
    hist_p = sub.add_parser(
        "history",
        help="Inspect and edit the query history",
        description=_HISTORY_DESCRIPTION,
        epilog=_HISTORY_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    hist_sub = hist_p.add_subparsers(dest="history_command", required=True)

    list_p = hist_sub.add_parser("list", help="List entries, favorites first")
    list_p.add_argument(
        "--filter", "-f",
        default="",
        metavar="TEXT",
        help="Case-insensitive substring of the expression or name.",
    )
    list_p.add_argument(
        "--json",
        action="store_true",
        help="Print the entries as a JSON array.",
    )

    save_p = hist_sub.add_parser("save", help="Save an expression without running it")
    save_p.add_argument("expression")

    fav_p = hist_sub.add_parser("favorite", help="Toggle the favorite flag")
    fav_p.add_argument("expression")

    ren_p = hist_sub.add_parser("rename", help="Name an entry (empty name clears it)")
    ren_p.add_argument("expression")
    ren_p.add_argument("name")

    del_p = hist_sub.add_parser("delete", help="Delete an entry, even a favorite")
    del_p.add_argument("expression")

    # ── serve ────────────────────────────────────────────────────────────────
    serve_p = sub.add_parser(
        "serve",
        help="Run a JSON-lines query editor session on stdin/stdout",
        description=_SERVE_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    serve_p.add_argument(
        "document",
        type=Path,
        nargs="?",
        help="Initial target JSON document",
    )
    serve_p.add_argument(
        "--language",
        choices=["python", "jsonata"],
        default=None,
        help="Script language for run messages.",
    )

    # ── schema ───────────────────────────────────────────────────────────────
    sub.add_parser(
        "schema",
        help="Print a machine-readable JSON schema of this CLI to stdout",
        description=_SCHEMA_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    return parser


# ── Command handlers ──────────────────────────────────────────────────────────

def _read_script(raw: str, stdin: TextIO | None = None) -> str:
    if raw == "-":
        return (stdin or sys.stdin).read()
    return raw


def _open_store(settings: Settings) -> HistoryStore:
    from json_query_tools import HistoryStore, JsonFileStateStore

    return HistoryStore(
        JsonFileStateStore(settings.state_path),
        capacity=settings.history_limit,
    )


def _cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    from json_query_tools import evaluate, get_runner, make_require, stringify
    from json_query_tools.documents import read_json_document
    from json_query_tools.engine import EMPTY_RESULT_WARNING

    data = read_json_document(args.document)
    script = _read_script(args.script)
    result = evaluate(
        data,
        script,
        {"require": make_require(args.document)},
        runner=get_runner(settings.language),
    )

    if not args.no_save and script.strip():
        _open_store(settings).upsert(script)

    if result.empty_result:
        print(f"Warning: {EMPTY_RESULT_WARNING}", file=sys.stderr)

    text = stringify(result.value)
    if args.output:
        args.output.write_text(text + "\n", encoding="utf-8")
        print(f"Output written to {args.output}", file=sys.stderr)
    else:
        print(text)
    return 0


def _cmd_history(args: argparse.Namespace, settings: Settings) -> int:
    from json_query_tools.templates import history_listing

    store = _open_store(settings)

    if args.history_command == "list":
        entries = store.list(args.filter)
        if args.json:
            print(json.dumps([e.to_wire() for e in entries], indent=2, ensure_ascii=False))
        else:
            print(history_listing(entries, filtered=bool(args.filter.strip())), end="")
        return 0

    if args.history_command == "save":
        store.upsert(args.expression)
        print(f"Saved ({len(store)} entries)")
        return 0

    if args.history_command == "favorite":
        found = store.toggle_favorite(args.expression)
    elif args.history_command == "rename":
        found = store.rename(args.expression, args.name)
    else:
        found = store.delete(args.expression)

    if not found:
        print(f"No history entry for expression: {args.expression!r}", file=sys.stderr)
        return 1
    if args.history_command == "favorite":
        entry = store.get(args.expression)
        print("Favorited" if entry is not None and entry.is_favorite else "Unfavorited")
    elif args.history_command == "rename":
        print("Renamed" if args.name.strip() else "Name cleared")
    else:
        print("Deleted")
    return 0


def _cmd_serve(
    args: argparse.Namespace,
    settings: Settings,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> int:
    from json_query_tools import get_runner
    from json_query_tools.models import OutboundMessage, ResultMessage
    from json_query_tools.session import QueryEditorSession

    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    def post(message: OutboundMessage) -> None:
        stdout.write(json.dumps(message.model_dump(exclude_none=True), default=str) + "\n")
        stdout.flush()

    session = QueryEditorSession(
        _open_store(settings),
        post,
        target=args.document,
        runner=get_runner(settings.language),
    )

    for line in stdin:
        line = line.strip()
        if not line:
            continue
        try:
            raw = json.loads(line)
        except json.JSONDecodeError as e:
            post(ResultMessage(error=f"Invalid message JSON: {e}"))
            continue
        if not isinstance(raw, dict):
            post(ResultMessage(error="Message must be a JSON object"))
            continue
        session.handle(raw)
    return 0


def _cmd_schema() -> int:
    print(json.dumps(_cli_schema(), indent=2))
    return 0


# ── Entry point ───────────────────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> None:
    from json_query_tools import configure_logging
    from json_query_tools.config import load_settings
    from json_query_tools.errors import (
        ConfigError,
        DocumentError,
        EvaluationError,
        PersistenceError,
    )

    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "schema":
        sys.exit(_cmd_schema())

    try:
        settings = load_settings(
            args.config,
            state_path=args.state_file,
            log_dir=args.log_dir,
            language=getattr(args, "language", None),
        )
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    if settings.log_dir:
        configure_logging(settings.log_dir)

    try:
        if args.command == "run":
            code = _cmd_run(args, settings)
        elif args.command == "history":
            code = _cmd_history(args, settings)
        else:
            code = _cmd_serve(args, settings)
    except (EvaluationError, DocumentError) as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    except PersistenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()

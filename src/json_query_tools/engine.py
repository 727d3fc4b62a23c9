"""Expression evaluation engine.

Runs a user script against a JSON value. Scripts are compiled as the body
of a function taking ``data`` plus any helper bindings, so both styles
work::

    return [row for row in data if row["active"]]
    return lambda d: len(d)

When the script's result is itself callable it is invoked once more with
the same arguments. A script that produces no value (``None``) is not an
error; the result is flagged ``empty_result`` instead.
"""

from __future__ import annotations

import ast
import importlib
import importlib.util
import inspect
import json
import logging
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Protocol

import jsonata

from json_query_tools import query_logger
from json_query_tools.errors import EvaluationError
from json_query_tools.models import EvaluationResult

_log = logging.getLogger("json_query_tools")

SCRIPT_FILENAME = "<query>"
EMPTY_RESULT_WARNING = (
    "Expression returned no value (None). "
    "Include a `return` statement to provide a result."
)


# ── Script runners ───────────────────────────────────────────────


class ScriptRunner(Protocol):
    """Compiles and runs script text with named bindings."""

    language: str

    def run(self, script: str, bindings: Mapping[str, Any]) -> Any: ...


def _exit(code: Any = None) -> None:
    raise SystemExit(code)


class PythonScriptRunner:
    """Runs the script as a Python function body.

    The parameters of the generated function are the binding names, in
    order. ``ast.parse`` accepts a top-level ``return``, so the user's
    statements are spliced into the function unchanged and keep their
    line numbers.
    """

    language = "python"

    def compile(self, script: str, params: list[str]) -> Callable[..., Any]:
        for name in params:
            if not name.isidentifier():
                raise ValueError(f"Invalid binding name: {name!r}")
        body = ast.parse(script, filename=SCRIPT_FILENAME, mode="exec").body
        module = ast.parse(f"def __query__({', '.join(params)}):\n    pass\n")
        func = module.body[0]
        assert isinstance(func, ast.FunctionDef)
        if body:
            func.body = body
        ast.fix_missing_locations(module)
        code = compile(module, SCRIPT_FILENAME, "exec")
        # The site builtins exit()/quit() close sys.stdin, which serve reads.
        namespace: dict[str, Any] = {"__name__": "__query__", "exit": _exit, "quit": _exit}
        exec(code, namespace)  # noqa: S102
        return namespace["__query__"]

    def run(self, script: str, bindings: Mapping[str, Any]) -> Any:
        fn = self.compile(script, list(bindings))
        return fn(*bindings.values())


class JsonataScriptRunner:
    """Evaluates the script as a JSONata expression against ``data``."""

    language = "jsonata"

    def run(self, script: str, bindings: Mapping[str, Any]) -> Any:
        expr = jsonata.Jsonata(script)
        return expr.evaluate(bindings.get("data"))


_RUNNERS: dict[str, type[PythonScriptRunner] | type[JsonataScriptRunner]] = {
    "python": PythonScriptRunner,
    "jsonata": JsonataScriptRunner,
}

LANGUAGES: tuple[str, ...] = tuple(_RUNNERS)


def get_runner(language: str = "python") -> ScriptRunner:
    try:
        return _RUNNERS[language]()
    except KeyError:
        raise ValueError(
            f"Unknown script language '{language}' (expected one of: {', '.join(LANGUAGES)})"
        ) from None


# ── Helpers ──────────────────────────────────────────────────────


def make_require(document_path: str | Path | None = None) -> Callable[[str], Any]:
    """Build a ``require`` helper bound to the document's directory.

    ``require("lib.py")`` or ``require("./lib.py")`` loads a Python file
    next to the document. Anything else is imported as a module name.
    """
    base = Path(document_path).resolve().parent if document_path else Path.cwd()

    def require(name: str) -> Any:
        if name.endswith(".py") or name.startswith((".", "/")):
            path = (base / name).resolve()
            spec = importlib.util.spec_from_file_location(path.stem, path)
            if spec is None or spec.loader is None:
                raise ImportError(f"Cannot load module from {path}")
            module = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(module)
            return module
        return importlib.import_module(name)

    return require


def _call_with_accepted_args(fn: Callable[..., Any], args: list[Any]) -> Any:
    """Call *fn* with as many leading *args* as it accepts positionally."""
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return fn(*args[:1])

    positional = 0
    for param in sig.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return fn(*args)
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            positional += 1
    return fn(*args[:positional])


def stringify(value: Any) -> str:
    """Render a result for display: indented JSON, else ``str()``."""
    try:
        return json.dumps(value, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


# ── Evaluate ─────────────────────────────────────────────────────


def evaluate(
    data: Any,
    script: str,
    helpers: Mapping[str, Any] | None = None,
    runner: ScriptRunner | None = None,
) -> EvaluationResult:
    """Run *script* against *data* and normalize the result.

    Args:
        data: The JSON value bound as ``data``.
        script: Script text (a function body for the Python runner).
        helpers: Extra bindings passed after ``data``, e.g. ``require``.
            Defaults to a ``require`` bound to the working directory.
        runner: Script runner; defaults to :class:`PythonScriptRunner`.

    Returns:
        EvaluationResult whose ``empty_result`` is set when the script
        produced no value.

    Raises:
        EvaluationError: If compiling or running the script (or the
            callable it returned) raised.
    """
    runner = runner or PythonScriptRunner()
    if helpers is None:
        helpers = {"require": make_require()}
    bindings = {"data": data, **helpers}

    query_logger.log_evaluation_start(script, runner.language)
    start = time.monotonic()
    try:
        result = runner.run(script, bindings)
        if callable(result):
            result = _call_with_accepted_args(result, list(bindings.values()))
    except (Exception, SystemExit) as e:
        # exit() in a script must not end the host process.
        message = f"{type(e).__name__}: {e}"
        query_logger.log_evaluation_error(message)
        raise EvaluationError(message, cause=e) from e

    duration_ms = (time.monotonic() - start) * 1000
    empty = result is None
    if empty:
        _log.warning(EMPTY_RESULT_WARNING)
    query_logger.log_evaluation_complete(duration_ms, empty)
    return EvaluationResult(value=result, empty_result=empty, duration_ms=duration_ms)

"""Loading the target JSON document that scripts run against."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from json_query_tools.errors import DocumentError


def read_json_document(path: str | Path) -> Any:
    """Parse the JSON document at *path*.

    Raises:
        DocumentError: If the file is missing, unreadable, or not JSON.
    """
    path = Path(path)
    if not path.is_file():
        raise DocumentError(f"Target document not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DocumentError(f"Cannot read target document {path}: {e}") from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DocumentError(f"Target document is not valid JSON: {path}") from e

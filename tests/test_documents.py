"""Tests for target document loading."""

from __future__ import annotations

import pytest

from json_query_tools.documents import read_json_document
from json_query_tools.errors import DocumentError


def test_reads_json(tmp_path):
    path = tmp_path / "doc.json"
    path.write_text('{"a": [1, 2]}')
    assert read_json_document(path) == {"a": [1, 2]}


def test_missing_file(tmp_path):
    with pytest.raises(DocumentError, match="not found"):
        read_json_document(tmp_path / "nope.json")


def test_invalid_json(tmp_path):
    path = tmp_path / "doc.json"
    path.write_text("{oops")
    with pytest.raises(DocumentError, match="not valid JSON"):
        read_json_document(path)

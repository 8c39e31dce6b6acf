"""Tests for the JSON document store."""

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from repair_tracker.core.errors import InvalidDocumentName, StorageError, ValidationError
from repair_tracker.storage.documents import EMPTY_DOCUMENT, DocumentStore


@pytest.fixture()
def store(tmp_path):
    document_store = DocumentStore(tmp_path / "data")
    document_store.ensure_root()
    return document_store


def test_ensure_root_creates_missing_directory(tmp_path):
    root = tmp_path / "nested" / "data"
    DocumentStore(root).ensure_root()

    assert root.is_dir()


def test_read_missing_document_returns_empty_array(store):
    assert store.read("repairs.json") == EMPTY_DOCUMENT
    assert store.read_json("repairs.json") == []
    assert not store.exists("repairs.json")


def test_write_then_read_returns_exact_bytes(store):
    body = b'[\n  {"id": "abc", "brand": "Lenovo", "notes": "caf\xc3\xa9"}\n]'

    parsed = store.write("repairs.json", body)

    assert parsed == [{"id": "abc", "brand": "Lenovo", "notes": "café"}]
    assert store.read("repairs.json") == body


def test_write_accepts_text_content(store):
    store.write("repairs.json", '{"a": 1}')

    assert store.read("repairs.json") == b'{"a": 1}'


def test_invalid_json_is_rejected_and_previous_document_kept(store):
    store.write("repairs.json", b'[{"id": "keep"}]')

    with pytest.raises(ValidationError) as excinfo:
        store.write("repairs.json", b"not-json")

    assert excinfo.value.message == "Invalid JSON data"
    assert store.read("repairs.json") == b'[{"id": "keep"}]'


def test_invalid_json_never_creates_a_document(store):
    with pytest.raises(ValidationError):
        store.write("x.json", b"{broken")

    assert not store.exists("x.json")
    assert store.read("x.json") == EMPTY_DOCUMENT


def test_invalid_utf8_is_a_validation_error(store):
    with pytest.raises(ValidationError):
        store.write("repairs.json", b"\xff\xfe[]")


@pytest.mark.parametrize(
    "name",
    ["../repairs.json", "sub/repairs.json", ".hidden.json", "repairs.txt", "", "a..json"],
)
def test_document_names_cannot_escape_the_data_directory(store, name):
    with pytest.raises(InvalidDocumentName):
        store.read(name)
    with pytest.raises(InvalidDocumentName):
        store.write(name, b"[]")


def test_write_leaves_no_temporary_files(store):
    store.write("repairs.json", b"[]")
    store.write("repairs.json", b"[1]")

    assert sorted(path.name for path in store.root.iterdir()) == ["repairs.json"]
    assert store.list_documents() == ["repairs.json"]


def test_corrupt_stored_document_is_a_storage_error(store):
    (store.root / "repairs.json").write_text("{oops", encoding="utf-8")

    assert store.read("repairs.json") == b"{oops"
    with pytest.raises(StorageError):
        store.read_json("repairs.json")


def test_unwritable_root_surfaces_storage_error(tmp_path):
    blocker = tmp_path / "data"
    blocker.write_text("not a directory", encoding="utf-8")
    store = DocumentStore(blocker)

    with pytest.raises(StorageError):
        store.ensure_root()
    with pytest.raises(StorageError):
        store.write("repairs.json", b"[]")
    with pytest.raises(StorageError):
        store.read("repairs.json")

"""Durable storage for named JSON documents.

A document is a whole JSON value stored under a plain file name inside the
data directory. Reads always go to disk and writes always replace the whole
file, so readers observe either the previous document or the new one, never a
mix of both.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any

from ..core.errors import InvalidDocumentName, StorageError, ValidationError

logger = logging.getLogger(__name__)

EMPTY_DOCUMENT = b"[]"
DOCUMENT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*\.json$")


def validate_document_name(name: str) -> str:
    if not isinstance(name, str) or not DOCUMENT_NAME_PATTERN.match(name) or ".." in name:
        raise InvalidDocumentName(str(name))
    return name


def parse_document(content: bytes | str) -> Any:
    """Decode and parse ``content`` or raise ``ValidationError``."""

    if isinstance(content, (bytes, bytearray)):
        try:
            text = bytes(content).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValidationError() from exc
    else:
        text = content
    try:
        return json.loads(text)
    except ValueError as exc:
        raise ValidationError() from exc


class DocumentStore:
    """Reads and atomically rewrites JSON documents under ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def ensure_root(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"cannot create data directory {self.root}: {exc}") from exc

    def path_for(self, name: str) -> Path:
        return self.root / validate_document_name(name)

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def list_documents(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            path.name
            for path in self.root.iterdir()
            if path.is_file() and DOCUMENT_NAME_PATTERN.match(path.name)
        )

    def read(self, name: str) -> bytes:
        path = self.path_for(name)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return EMPTY_DOCUMENT
        except OSError as exc:
            raise StorageError(f"cannot read {name}: {exc}") from exc

    def read_json(self, name: str) -> Any:
        raw = self.read(name)
        try:
            return json.loads(raw.decode("utf-8"))
        except ValueError as exc:
            raise StorageError(f"stored document {name} is not valid JSON") from exc

    def write(self, name: str, content: bytes | str) -> Any:
        """Validate ``content`` and replace the stored document with it.

        Returns the parsed document. The bytes on disk are exactly the bytes
        given, so a later ``read`` returns them unchanged.
        """

        path = self.path_for(name)
        parsed = parse_document(content)
        payload = content.encode("utf-8") if isinstance(content, str) else bytes(content)

        tmp_name: str | None = None
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "wb", dir=self.root, prefix=f".{name}.", suffix=".tmp", delete=False
            ) as handle:
                tmp_name = handle.name
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            raise StorageError(f"cannot write {name}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("Could not remove temporary file %s", tmp_name)

        logger.info(
            "document.written",
            extra={"extra_data": {"document": name, "bytes": len(payload)}},
        )
        return parsed


__all__ = [
    "DOCUMENT_NAME_PATTERN",
    "DocumentStore",
    "EMPTY_DOCUMENT",
    "parse_document",
    "validate_document_name",
]

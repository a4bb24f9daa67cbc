"""
Object storage for uploaded invoice files.

WHY: Invoices and payment slips are uploaded as files and linked from
their documents. A bucket is a flat directory: one path segment per
object, no nesting.

The upload timestamp of an object is its modification time, which the
retention job compares against its cutoff.
"""

from __future__ import annotations

import mimetypes
import os
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO

from flask import current_app
from werkzeug.utils import secure_filename

from ..time_utils import to_utc_z


class StorageError(Exception):
    """Raised when the bucket cannot be read or written."""
    pass


class StoredFileNotFoundError(StorageError):
    """Raised when the named object does not exist."""


@dataclass(frozen=True)
class StoredFile:
    name: str
    created_at: datetime
    size: int
    mimetype: str | None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
            "size": self.size,
            "mimetype": self.mimetype,
        }


def generate_object_name(filename: str | None) -> str:
    """<epoch-ms>-<random>.<ext>; the client's file name is not kept."""
    ext = ""
    if filename and "." in filename:
        ext = secure_filename(filename.rsplit(".", 1)[-1]).lower()
    stem = f"{int(time.time() * 1000)}-{random.randrange(36 ** 8):08x}"
    return f"{stem}.{ext}" if ext else stem


class LocalBucket:
    """A bucket backed by <root>/<name>/ on the local filesystem."""

    def __init__(self, root: str, name: str):
        self.root = root
        self.name = name
        self.path = os.path.join(root, name)

    def _object_path(self, name: str) -> str:
        clean = secure_filename(name or "")
        if not clean or clean != name:
            raise StorageError(f"Invalid object name: {name!r}")
        return os.path.join(self.path, clean)

    def ensure(self) -> None:
        try:
            os.makedirs(self.path, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create bucket {self.name}: {exc}") from exc

    def list_files(self) -> list[StoredFile]:
        """Every object in the bucket, oldest first."""
        if not os.path.isdir(self.path):
            raise StorageError(f"Bucket {self.name} does not exist")
        try:
            entries = list(os.scandir(self.path))
        except OSError as exc:
            raise StorageError(f"Cannot list bucket {self.name}: {exc}") from exc

        files = []
        for entry in entries:
            if not entry.is_file():
                continue
            stat = entry.stat()
            files.append(
                StoredFile(
                    name=entry.name,
                    created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).replace(tzinfo=None),
                    size=stat.st_size,
                    mimetype=mimetypes.guess_type(entry.name)[0],
                )
            )
        files.sort(key=lambda f: (f.created_at, f.name))
        return files

    def upload(self, name: str, stream: BinaryIO) -> StoredFile:
        self.ensure()
        path = self._object_path(name)
        if os.path.exists(path):
            raise StorageError(f"Object {name} already exists")
        try:
            with open(path, "wb") as fh:
                while True:
                    chunk = stream.read(64 * 1024)
                    if not chunk:
                        break
                    fh.write(chunk)
        except OSError as exc:
            raise StorageError(f"Cannot write {name}: {exc}") from exc

        stat = os.stat(path)
        return StoredFile(
            name=name,
            created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).replace(tzinfo=None),
            size=stat.st_size,
            mimetype=mimetypes.guess_type(name)[0],
        )

    def remove(self, name: str) -> None:
        path = self._object_path(name)
        if not os.path.isfile(path):
            raise StoredFileNotFoundError(f"Object {name} not found")
        try:
            os.remove(path)
        except OSError as exc:
            raise StorageError(f"Cannot delete {name}: {exc}") from exc

    def open(self, name: str) -> str:
        """Filesystem path of an existing object, for send_file."""
        path = self._object_path(name)
        if not os.path.isfile(path):
            raise StoredFileNotFoundError(f"Object {name} not found")
        return path

    def public_url(self, name: str) -> str:
        return f"/api/files/{name}"


def get_bucket() -> LocalBucket:
    config = current_app.config
    root = config.get("STORAGE_ROOT") or os.path.join(current_app.instance_path, "storage")
    bucket = LocalBucket(root, config["STORAGE_BUCKET"])
    bucket.ensure()
    return bucket

"""Local file store for documents shared inside a hire."""
from __future__ import annotations

import time
import uuid
from pathlib import Path

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename


class LocalFileStore:
    """Stores uploads under ``<root>/<hire_id>/<millis>-<token>-<name>``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def save(self, hire_id: int, upload: FileStorage, original_name: str) -> str:
        name = secure_filename(original_name) or "upload"
        key = f"{hire_id}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}-{name}"
        target = self.path(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        upload.save(str(target))
        return key

    def path(self, key: str) -> Path:
        target = (self.root / key).resolve()
        if self.root.resolve() not in target.parents:
            raise ValueError(f"storage key escapes the upload folder: {key}")
        return target

    def delete(self, key: str) -> None:
        self.path(key).unlink(missing_ok=True)


def get_file_store() -> LocalFileStore:
    return LocalFileStore(current_app.config["UPLOAD_FOLDER"])

"""Local filesystem storage for listing images."""

from __future__ import annotations

import os
from pathlib import Path
from typing import IO, BinaryIO

from werkzeug.utils import secure_filename

from config import Config

from .abstract_storage import AbstractStorage


class LocalStorage(AbstractStorage):
    """Keep images on the local filesystem under the configured upload directory."""

    def __init__(self, upload_dir: str | None = None):
        self.base_directory = Path(upload_dir or Config.UPLOAD_DIR)
        os.makedirs(self.base_directory, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        candidate = (self.base_directory / path).resolve()
        if not candidate.is_relative_to(self.base_directory.resolve()):
            raise ValueError("Path escapes the upload directory.")
        return candidate

    def save(self, file_obj: IO[bytes], filename: str) -> str:
        """Save an image and return the relative path within the upload directory."""

        safe_name = secure_filename(filename)
        if not safe_name:
            raise ValueError("Filename must contain at least one valid character.")

        destination = self.base_directory / safe_name
        if hasattr(file_obj, "save"):
            file_obj.save(destination)  # type: ignore[arg-type]
        else:
            with open(destination, "wb") as output:
                output.write(file_obj.read())

        return str(destination.relative_to(self.base_directory))

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def open(self, path: str, mode: str = "rb") -> BinaryIO:
        return open(self._resolve(path), mode)

    def delete(self, path: str) -> None:
        self._resolve(path).unlink(missing_ok=True)

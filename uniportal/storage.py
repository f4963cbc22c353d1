from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from uniportal.errors import ValidationError

logger = logging.getLogger(__name__)

SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]")
CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class StoredFile:
    name: str
    url: str


def safe_filename(filename: str | None, default: str = "upload") -> str:
    name = (filename or "").replace("\\", "/").split("/")[-1]
    name = SAFE_NAME.sub("_", name).lstrip(".")
    return name or default


class LocalFileStore:
    """Document bytes on local disk, addressed by ``<public_url>/<application_id>/<key>``."""

    def __init__(self, root: str | Path, public_url: str = "/files", max_bytes: int | None = None) -> None:
        self.root = Path(root)
        self.public_url = public_url.rstrip("/")
        self.max_bytes = max_bytes

    def save(self, application_id: str, filename: str | None, source: BinaryIO) -> StoredFile:
        """Stream ``source`` to disk in chunks, refusing anything over ``max_bytes``."""
        name = safe_filename(filename)
        folder = self.root / SAFE_NAME.sub("_", str(application_id))
        folder.mkdir(parents=True, exist_ok=True)
        key = f"{uuid.uuid4().hex}_{name}"
        dest = folder / key

        tmp = dest.with_suffix(dest.suffix + ".part")
        size = 0
        try:
            with tmp.open("wb") as f:
                while True:
                    chunk = source.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if self.max_bytes is not None and size > self.max_bytes:
                        raise ValidationError(f"upload exceeds {self.max_bytes} bytes", entity="document")
                    f.write(chunk)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
        tmp.replace(dest)

        logger.info("stored %s (%d bytes) for application %s", key, size, application_id)
        return StoredFile(name=name, url=f"{self.public_url}/{folder.name}/{key}")

    def path_for(self, file_url: str) -> Path:
        relative = file_url[len(self.public_url) :] if file_url.startswith(self.public_url) else file_url
        parts = [p for p in relative.split("/") if p and p not in {".", ".."}]
        return self.root.joinpath(*parts[-2:])

    def delete(self, file_url: str) -> None:
        path = self.path_for(file_url)
        if path.exists():
            path.unlink()
            logger.info("deleted stored file %s", path.name)
        else:
            logger.warning("stored file for %s already gone", file_url)

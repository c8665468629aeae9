# src/minimind/storage/blob_store.py

from __future__ import annotations

import contextlib
import logging
import os
import re
from pathlib import Path

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


class JsonFileBlobStore:
    """
    One file per key under a local directory.

    Keys like "@todo_app_tasks" map to "<root>/todo_app_tasks.json".
    Writes go through a temp file + os.replace so a crash never leaves a
    half-written snapshot behind.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        logger.info("JsonFileBlobStore ready root=%s", self._root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        name = _UNSAFE_CHARS.sub("_", key).strip("_.") or "blob"
        return self._root / f"{name}.json"

    def get_item(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text("utf-8")

    def set_item(self, key: str, value: str) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, "utf-8")
        os.replace(tmp, path)
        with contextlib.suppress(OSError):
            # Task notes are personal; keep the snapshot private on disk.
            os.chmod(path, 0o600)
        logger.debug("Blob written key=%s bytes=%d", key, len(value))

from __future__ import annotations
import re
import time
from pathlib import Path
from typing import Protocol


class ObjectStore(Protocol):
    def put_bytes(self, *, key: str, data: bytes) -> str: ...


class LocalObjectStore:
    def __init__(self, base_dir: str):
        self.base = Path(base_dir)
        self.base.mkdir(parents=True, exist_ok=True)

    def put_bytes(self, *, key: str, data: bytes) -> str:
        path = self.base / key
        if path.exists():
            # archived uploads are never overwritten
            raise FileExistsError(f"object already exists: {key}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return f"file://{path.as_posix()}"


def import_archive_key(filename: str, user_id: str | None, *, now_ms: int | None = None) -> str:
    """imports/cvh/<user>/<epoch-ms>_<name>, whitespace collapsed to '_'."""
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    name = re.sub(r"\s+", "_", Path(filename).name) or "upload.csv"
    return f"imports/cvh/{user_id or 'anonymous'}/{ts}_{name}"

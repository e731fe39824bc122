from __future__ import annotations

import hashlib
import uuid
from pathlib import Path


class DataAccessError(Exception):
    pass


def resolve_under_data_root(*, data_root: Path, relpath: str) -> Path:
    """
    Resolve a relative path under an explicit data_root.

    Absolute paths and anything that escapes the root via `..` or symlinks are
    rejected.
    """

    if relpath.startswith(("/", "\\")) or (":" in relpath and "\\" in relpath):
        raise DataAccessError(f"Expected a relative path under data_root, got: {relpath!r}")

    root = data_root.expanduser().resolve()
    candidate = (root / relpath).resolve()

    if not candidate.is_relative_to(root):
        raise DataAccessError(f"Path traversal or external reference detected: relpath={relpath!r}")

    return candidate

def write_bytes_under_root(*, out_root: Path, relpath: str, data: bytes) -> Path:
    """
    Write `data` to `relpath` under `out_root` via a sibling temp file, so a
    failed write never leaves a truncated file at the final path.
    """

    out_file = resolve_under_data_root(data_root=out_root, relpath=relpath)
    out_file.parent.mkdir(parents=True, exist_ok=True)
    tmp_file = out_file.with_name(f".{out_file.name}.{uuid.uuid4().hex[:8]}.tmp")
    try:
        tmp_file.write_bytes(data)
        tmp_file.replace(out_file)
    except BaseException:
        tmp_file.unlink(missing_ok=True)
        raise
    return out_file


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()

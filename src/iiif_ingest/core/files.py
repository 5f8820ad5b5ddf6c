from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def make_work_dir(base_dir: Path, prefix: str = "ingest-") -> Path:
    ensure_directory(base_dir)
    return Path(tempfile.mkdtemp(prefix=prefix, dir=base_dir))


def remove_tree_quietly(path: Path | None) -> None:
    if path is None:
        return
    shutil.rmtree(path, ignore_errors=True)


def safe_copy_atomic(src: Path, dst: Path) -> None:
    # Copy (not rename) since the work root and the destination may be on different devices.
    ensure_directory(dst.parent)
    temp_path = dst.parent / f".{dst.name}.tmp"
    shutil.copy2(src, temp_path)
    os.replace(temp_path, dst)


def write_text_atomic(path: Path, content: str) -> None:
    ensure_directory(path.parent)
    temp_path = path.parent / f".{path.name}.tmp"
    temp_path.write_text(content, encoding="utf-8")
    os.replace(temp_path, path)

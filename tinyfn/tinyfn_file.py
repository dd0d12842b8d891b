from __future__ import annotations
import os
from typing import Optional

from tinyfn.tinyfn_location import Source


def resolve_path(path: str, base_dir: Optional[str]) -> str:
    """Resolves an include path against base_dir (or the working directory)."""
    if path.startswith("~"):
        return os.path.expanduser(path)
    if os.path.isabs(path):
        return os.path.normpath(path)
    base = base_dir or os.getcwd()
    return os.path.normpath(os.path.join(base, path))


def read_source(path: str, base_dir: Optional[str] = None, *, encoding: str = "utf-8") -> Source:
    """Reads a tinyfn source file. Raises OSError when it cannot be read."""
    full = resolve_path(path, base_dir)
    with open(full, "r", encoding=encoding) as f:
        text = f.read()
    return Source(text, name=path, path=full)

"""Create probe scripts for executor and strategy tests."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from pathlib import Path


def write_probe(directory: Path, name: str, body: str) -> Path:
    """Write an executable shell script named ``name`` running ``body``."""
    path = directory / name
    path.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
    path.chmod(0o755)
    return path

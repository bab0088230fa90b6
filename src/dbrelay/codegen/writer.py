"""Writes generated sources to disk without ever overwriting."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def write_source(base_dir: str | Path, relative_dir: str, file_name: str, content: str) -> Path:
    """Write a generated file, creating parent directories as needed.

    Args:
        base_dir: Project root
        relative_dir: Directory under the project root (e.g. ``src/models``)
        file_name: File name inside that directory
        content: File contents

    Returns:
        Path of the written file

    Raises:
        FileExistsError: If the file already exists
    """
    target_dir = Path(base_dir) / relative_dir
    path = target_dir / file_name
    if path.exists():
        raise FileExistsError(
            f"File already exists: {path}. Please use a different name or delete the existing file."
        )
    target_dir.mkdir(parents=True, exist_ok=True)
    # "x" mode keeps the no-overwrite guarantee even if the file appeared meanwhile
    with path.open("x", encoding="utf-8") as f:
        f.write(content)
    logger.info("Generated %s", path)
    return path

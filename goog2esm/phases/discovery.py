"""Phase 1: Source file discovery."""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path

from goog2esm.config import ConversionConfig

logger = logging.getLogger(__name__)

DEFAULT_IGNORE = {
    ".git", "node_modules", ".idea", ".vscode", "__pycache__",
    "dist", "build", "target", ".venv", "venv",
}

SOURCE_EXTENSIONS = (".js",)


def _should_ignore(name: str, patterns: set[str]) -> bool:
    """Check if a directory or file name matches ignore patterns."""
    if name.startswith("."):
        return True
    return any(fnmatch.fnmatch(name, pattern) for pattern in patterns)


def discover_sources(config: ConversionConfig) -> list[tuple[str, str]]:
    """Walk the repo and return sorted (relative path, text) pairs."""
    root = Path(config.repo_path)
    if not root.is_dir():
        logger.warning(f"Source root {root} is not a directory")
        return []

    ignore_set = set(DEFAULT_IGNORE)
    ignore_set.update(config.exclude_patterns)

    sources: list[tuple[str, str]] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [
            d for d in sorted(dirnames)
            if not _should_ignore(d, ignore_set)
        ]

        rel_dir = os.path.relpath(dirpath, root)
        if rel_dir == ".":
            rel_dir = ""

        for filename in sorted(filenames):
            if not filename.endswith(SOURCE_EXTENSIONS):
                continue
            if _should_ignore(filename, ignore_set):
                continue

            full_path = os.path.join(dirpath, filename)
            rel_path = os.path.join(rel_dir, filename) if rel_dir else filename
            # Normalise path separators
            rel_path = rel_path.replace("\\", "/")

            try:
                size = os.path.getsize(full_path)
            except OSError:
                size = 0
            if size > config.max_file_size:
                logger.warning(f"Skipping {rel_path}: {size} bytes exceeds max_file_size")
                continue

            try:
                with open(full_path, encoding="utf-8", errors="replace") as f:
                    text = f.read()
            except OSError as e:
                logger.warning(f"Failed to read {rel_path}: {e}")
                continue
            sources.append((rel_path, text))

    sources.sort(key=lambda item: item[0])
    logger.info(f"Discovered {len(sources)} source files under {root}")
    return sources

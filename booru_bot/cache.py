"""Local cache directory management."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Union

from .utils import DirectoryCreationError


logger = logging.getLogger(__name__)


def ensure_directories(paths: Iterable[Union[str, Path]]) -> List[Path]:
    """
    Create the cache directories that do not exist yet.

    Existing directories are left untouched, so calling this repeatedly is safe.

    Args:
        paths: Directories to ensure.

    Returns:
        The ensured directories as paths.

    Raises:
        DirectoryCreationError: If a directory cannot be created.
    """
    ensured: List[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            logger.debug("Cache directory %s already present", path)
        else:
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise DirectoryCreationError(
                    f"Cannot create cache directory {path}: {exc}") from exc
            logger.info("Created cache directory %s", path)
        ensured.append(path)
    return ensured

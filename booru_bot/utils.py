"""Shared utilities for the booru upload bot."""

from __future__ import annotations

import logging
import os
import re
import sys
from pathlib import Path


class BooruBotError(Exception):
    """Base exception for booru bot errors."""


class ConfigError(BooruBotError):
    """Raised when configuration is invalid or missing."""


class DirectoryCreationError(BooruBotError):
    """Raised when a local cache directory cannot be created."""


class FetchError(BooruBotError):
    """Raised when a remote resource cannot be downloaded."""


class UnsupportedFormatError(BooruBotError):
    """Raised when no preview profile exists for a file extension."""


class CompressionError(BooruBotError):
    """Raised when a preview cannot be encoded."""


class ManifestParseError(BooruBotError):
    """Raised when the remote manifest is malformed."""


class TransferError(BooruBotError):
    """Raised when an FTP session operation fails."""


LOGGER_NAME = "booru_bot"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(production: bool = False) -> logging.Logger:
    """
    Configure the package logger.

    Production mode logs at INFO, anything else at DEBUG.

    Args:
        production: Whether the bot runs in production mode.

    Returns:
        The configured package logger.
    """
    level = logging.INFO if production else logging.DEBUG
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(
            logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
        logger.addHandler(console_handler)
    for handler in logger.handlers:
        handler.setLevel(level)

    # discord.py is chatty at DEBUG
    logging.getLogger("discord").setLevel(logging.WARNING if production else logging.INFO)
    return logger


def format_bytes(size: int) -> str:
    """
    Convert bytes to a human-readable string.

    Args:
        size: Size in bytes.

    Returns:
        Human-readable size string.
    """
    if size < 0:
        raise ValueError("Size must be non-negative.")

    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    for unit in units:
        if value < 1024 or unit == units[-1]:
            if unit == "B":
                return f"{int(value)} {unit}"
            return f"{value:.2f} {unit}"
        value /= 1024
    return f"{value:.2f} TB"


def sanitize_filename(name: str) -> str:
    """
    Sanitize filename to remove unsafe characters.

    Letters and digits of any script are kept so distinct names stay distinct.

    Args:
        name: Original filename.

    Returns:
        Sanitized filename.
    """
    name = name.strip().replace(os.sep, "_").replace("/", "_")
    name = re.sub(r"[^\w.-]+", "_", name).lstrip(".")
    return name or "file"


def atomic_write(path: Path, data: str, mode: str = "w") -> None:
    """
    Write data atomically to a file.

    Args:
        path: Destination path.
        data: Data to write.
        mode: File mode.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(path.suffix + ".tmp")
    with open(temp_path, mode, encoding="utf-8") as file_handle:
        file_handle.write(data)
        file_handle.flush()
        os.fsync(file_handle.fileno())
    temp_path.replace(path)

"""Configuration management for the booru upload bot."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Optional, Tuple

from dotenv import load_dotenv

from .utils import ConfigError, atomic_write

ENV_TOKEN = "DISCORD_BOT_TOKEN"
ENV_OWNER = "OWNER_ID"
ENV_EMOJI = "TRIGGER_EMOJI"
ENV_FTP_HOST = "FTP_HOST"
ENV_FTP_PORT = "FTP_PORT"
ENV_FTP_USER = "FTP_USER"
ENV_FTP_PASSWORD = "FTP_PASSWORD"
ENV_REMOTE_ROOT = "REMOTE_ROOT"
ENV_REMOTE_GALLERY = "REMOTE_GALLERY_DIR"
ENV_REMOTE_PREVIEW = "REMOTE_PREVIEW_DIR"
ENV_MANIFEST_URL = "MANIFEST_URL"
ENV_MANIFEST_FILENAME = "MANIFEST_FILENAME"
ENV_DOWNLOAD_DIR = "DOWNLOAD_DIR"
ENV_PREVIEW_DIR = "PREVIEW_DIR"
ENV_PNG_MIN = "PNG_QUALITY_MIN"
ENV_PNG_MAX = "PNG_QUALITY_MAX"
ENV_JPEG_QUALITY = "JPEG_QUALITY"
ENV_BUSY_POLICY = "BUSY_POLICY"
ENV_COMMIT_LAST = "MANIFEST_COMMIT_LAST"
ENV_CHAT_FEEDBACK = "CHAT_FEEDBACK"
ENV_MODE = "BOT_ENV"

DEFAULT_EMOJI = "📤"
DEFAULT_MANIFEST_URL = "https://sinon.jagudev.net/database.json"
BUSY_POLICIES = ("queue", "reject")
# user id . timestamp . hmac, each url-safe base64
TOKEN_PATTERN = re.compile(r"[\w-]{20,}\.[\w-]{6,}\.[\w-]{20,}", re.ASCII)


def _base_dir() -> Path:
    return Path(__file__).resolve().parents[1]


def _env_path() -> Path:
    return _base_dir() / ".env"


def validate_token(token: str) -> bool:
    """
    Validate Discord bot token format.

    Args:
        token: Bot token string.

    Returns:
        True if the token looks valid.
    """
    return bool(token) and TOKEN_PATTERN.fullmatch(token) is not None


@dataclass(frozen=True)
class Config:
    """Singleton configuration object."""

    discord_bot_token: str
    owner_id: int
    ftp_host: str
    ftp_user: str
    ftp_password: str
    ftp_port: int = 21
    trigger_emoji: str = DEFAULT_EMOJI
    remote_root: str = "subdomain-sinon"
    remote_gallery_dir: str = "images/gallery"
    remote_preview_dir: str = "preview"
    manifest_url: str = DEFAULT_MANIFEST_URL
    manifest_filename: str = "database.json"
    download_dir: Path = Path("image_downloads")
    preview_dir: Path = Path("image_previews")
    png_quality: Tuple[float, float] = (0.56, 0.72)
    jpeg_quality: int = 70
    busy_policy: str = "queue"
    manifest_commit_last: bool = True
    chat_feedback: bool = True
    environment: str = "development"

    _instance: ClassVar[Optional["Config"]] = None

    @property
    def production(self) -> bool:
        return self.environment == "production"

    @property
    def cache_dirs(self) -> Tuple[Path, Path]:
        return self.download_dir, self.preview_dir

    @property
    def manifest_path(self) -> Path:
        """Local copy of the manifest, kept beside the download cache."""
        return self.download_dir / self.manifest_filename

    @classmethod
    def get_instance(cls) -> "Config":
        """
        Retrieve a singleton instance of Config.

        Returns:
            Config singleton instance.
        """
        if cls._instance is None:
            cls._instance = load_config()
        return cls._instance


def save_config(config: Config) -> None:
    """
    Persist the required settings to the .env file.

    Args:
        config: Config instance to save.
    """
    lines = [
        f"{ENV_TOKEN}={config.discord_bot_token}",
        f"{ENV_OWNER}={config.owner_id}",
        f"{ENV_EMOJI}={config.trigger_emoji}",
        f"{ENV_FTP_HOST}={config.ftp_host}",
        f"{ENV_FTP_PORT}={config.ftp_port}",
        f"{ENV_FTP_USER}={config.ftp_user}",
        f"{ENV_FTP_PASSWORD}={config.ftp_password}",
        f"{ENV_REMOTE_ROOT}={config.remote_root}",
        f"{ENV_MANIFEST_URL}={config.manifest_url}",
        f"{ENV_MODE}={config.environment}",
    ]
    data = "\n".join(lines) + "\n"
    env_file = _env_path()
    atomic_write(env_file, data)
    os.chmod(env_file, 0o600)


def _parse_int(value: str, name: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid integer for {name}.") from exc
    if parsed <= 0:
        raise ConfigError(f"{name} must be greater than 0.")
    return parsed


def _parse_fraction(value: str, name: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid number for {name}.") from exc
    if not 0.0 <= parsed <= 1.0:
        raise ConfigError(f"{name} must be between 0 and 1.")
    return parsed


def _parse_bool(value: str, name: str) -> bool:
    lowered = value.lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"Invalid boolean for {name}.")


def _require(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigError(f"{name} is required. Run `python main.py setup` to configure.")
    return value


def load_config() -> Config:
    """
    Load and validate configuration from the .env file and environment.

    Returns:
        Config instance.
    """
    env_file = _env_path()
    if env_file.exists():
        load_dotenv(env_file)

    token = _require(ENV_TOKEN)
    if not validate_token(token):
        raise ConfigError(f"{ENV_TOKEN} format is invalid.")

    png_min = _parse_fraction(os.getenv(ENV_PNG_MIN, "0.56").strip(), ENV_PNG_MIN)
    png_max = _parse_fraction(os.getenv(ENV_PNG_MAX, "0.72").strip(), ENV_PNG_MAX)
    if png_min > png_max:
        raise ConfigError(f"{ENV_PNG_MIN} must not exceed {ENV_PNG_MAX}.")

    jpeg_quality = _parse_int(os.getenv(ENV_JPEG_QUALITY, "70").strip(), ENV_JPEG_QUALITY)
    if jpeg_quality > 100:
        raise ConfigError(f"{ENV_JPEG_QUALITY} must be at most 100.")

    busy_policy = os.getenv(ENV_BUSY_POLICY, "queue").strip().lower()
    if busy_policy not in BUSY_POLICIES:
        raise ConfigError(f"{ENV_BUSY_POLICY} must be one of {', '.join(BUSY_POLICIES)}.")

    return Config(
        discord_bot_token=token,
        owner_id=_parse_int(_require(ENV_OWNER), ENV_OWNER),
        ftp_host=_require(ENV_FTP_HOST),
        ftp_user=_require(ENV_FTP_USER),
        ftp_password=_require(ENV_FTP_PASSWORD),
        ftp_port=_parse_int(os.getenv(ENV_FTP_PORT, "21").strip(), ENV_FTP_PORT),
        trigger_emoji=os.getenv(ENV_EMOJI, DEFAULT_EMOJI).strip() or DEFAULT_EMOJI,
        remote_root=os.getenv(ENV_REMOTE_ROOT, "subdomain-sinon").strip().strip("/"),
        remote_gallery_dir=os.getenv(ENV_REMOTE_GALLERY, "images/gallery").strip().strip("/"),
        remote_preview_dir=os.getenv(ENV_REMOTE_PREVIEW, "preview").strip().strip("/"),
        manifest_url=os.getenv(ENV_MANIFEST_URL, DEFAULT_MANIFEST_URL).strip(),
        manifest_filename=os.getenv(ENV_MANIFEST_FILENAME, "database.json").strip(),
        download_dir=Path(os.getenv(ENV_DOWNLOAD_DIR, "image_downloads").strip()),
        preview_dir=Path(os.getenv(ENV_PREVIEW_DIR, "image_previews").strip()),
        png_quality=(png_min, png_max),
        jpeg_quality=jpeg_quality,
        busy_policy=busy_policy,
        manifest_commit_last=_parse_bool(
            os.getenv(ENV_COMMIT_LAST, "true").strip(), ENV_COMMIT_LAST),
        chat_feedback=_parse_bool(
            os.getenv(ENV_CHAT_FEEDBACK, "true").strip(), ENV_CHAT_FEEDBACK),
        environment=os.getenv(ENV_MODE, "development").strip().lower(),
    )

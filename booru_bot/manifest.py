"""
Gallery manifest - the JSON document listing every published image.

The remote ``database.json`` looks like::

    {"imageCount": 2, "posts": ["newest.png", "older.jpg"]}

It is always read, modified and rewritten as a whole.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .utils import BooruBotError, ManifestParseError, atomic_write

if TYPE_CHECKING:
    from .fetcher import Fetcher
    from .transfer import TransferSession


logger = logging.getLogger(__name__)


@dataclass
class Manifest:
    """
    Publication count and filename history, newest first.

    Attributes:
        image_count: Number of publications recorded
        posts: Published filenames, newest first
        extra: Unknown top-level keys, kept so rewrites do not drop them
    """
    image_count: int = 0
    posts: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_consistent(self) -> bool:
        return self.image_count == len(self.posts)

    def add_entry(self, filename: str) -> None:
        """Record a new publication at the front of the history."""
        self.image_count += 1
        self.posts.insert(0, filename)

    def reconcile(self) -> bool:
        """Align image_count with the post list. Returns True if it changed."""
        if self.is_consistent:
            return False
        logger.warning(
            "Manifest imageCount %s does not match %s posts; using post count",
            self.image_count,
            len(self.posts),
        )
        self.image_count = len(self.posts)
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = dict(self.extra)
        data["imageCount"] = self.image_count
        data["posts"] = list(self.posts)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Manifest":
        """Create from a decoded JSON document, validating its shape."""
        if not isinstance(data, dict):
            raise ManifestParseError("Manifest must be a JSON object.")

        count = data.get("imageCount", 0)
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ManifestParseError(f"Invalid imageCount: {count!r}")

        posts = data.get("posts", [])
        if not isinstance(posts, list) or not all(isinstance(p, str) for p in posts):
            raise ManifestParseError("posts must be a list of filenames.")

        extra = {k: v for k, v in data.items() if k not in ("imageCount", "posts")}
        return cls(image_count=count, posts=list(posts), extra=extra)

    @classmethod
    def loads(cls, text: str) -> "Manifest":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ManifestParseError(f"Manifest is not valid JSON: {exc}") from exc
        return cls.from_dict(data)

    def dumps(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def load(cls, filepath: Path) -> "Manifest":
        """Load manifest from a local JSON file."""
        try:
            text = Path(filepath).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ManifestParseError(f"Cannot read manifest {filepath}: {exc}") from exc
        return cls.loads(text)

    def save(self, filepath: Path) -> None:
        """Save manifest to a local JSON file."""
        atomic_write(Path(filepath), self.dumps())


class ManifestSynchronizer:
    """
    Read-modify-write of the remote manifest.

    The remote copy is fetched over HTTP from the public site and written
    back through the FTP session. Callers must hold the publication lock.
    """

    def __init__(
        self,
        fetcher: "Fetcher",
        manifest_url: str,
        local_path: Path,
        remote_dir: str,
    ):
        self.fetcher = fetcher
        self.manifest_url = manifest_url
        self.local_path = Path(local_path)
        self.remote_dir = remote_dir
        self.pending: Optional[Manifest] = None

    @property
    def remote_name(self) -> str:
        return self.local_path.name

    async def prepare_entry(self, filename: str) -> Manifest:
        """
        Fetch the remote manifest, add filename and write it locally.

        Nothing is written remotely.

        Raises:
            FetchError: If the manifest cannot be downloaded.
            ManifestParseError: If the downloaded manifest is malformed.
        """
        self.pending = None
        await self.fetcher.fetch(self.manifest_url, self.local_path)
        manifest = Manifest.load(self.local_path)
        manifest.reconcile()
        manifest.add_entry(filename)
        manifest.save(self.local_path)
        logger.info(
            "Manifest prepared: imageCount=%s, newest=%s", manifest.image_count, filename)
        self.pending = manifest
        return manifest

    async def commit(self, transfer: "TransferSession") -> None:
        """
        Upload the prepared manifest into the manifest directory.

        The cursor is left in the manifest directory.

        Raises:
            TransferError: If any FTP operation fails.
        """
        if self.pending is None:
            raise BooruBotError("No prepared manifest to commit.")
        await transfer.ascii()
        await transfer.restore()
        if self.remote_dir:
            await transfer.cwd(self.remote_dir)
        await transfer.put(self.local_path, self.remote_name)
        logger.info("Manifest uploaded (%s entries)", self.pending.image_count)
        self.pending = None

    async def publish_entry(self, filename: str, transfer: "TransferSession") -> Manifest:
        """Prepare and commit a new entry in one step."""
        manifest = await self.prepare_entry(filename)
        await self.commit(transfer)
        return manifest

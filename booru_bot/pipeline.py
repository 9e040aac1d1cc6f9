"""
Publication pipeline - fetch, preview and upload one image.

A publication walks through ``PublicationState`` strictly in order. Any
failure stops it where it is; the error is logged and returned in the
``PublicationResult`` instead of being raised, so a bad publication never
takes the bot down. The FTP cursor is returned to the session root on every
exit path.

Only one publication runs at a time: a single lock guards both the FTP
session and the manifest read-modify-write.
"""

from __future__ import annotations

import asyncio
import ftplib
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from .config import Config
from .fetcher import Fetcher
from .manifest import Manifest, ManifestSynchronizer
from .preview import PreviewGenerator
from .transfer import TransferSession
from .utils import BooruBotError, TransferError, sanitize_filename


logger = logging.getLogger(__name__)


class PublicationState(Enum):
    IDLE = "idle"
    FETCHING_ASSET = "fetching-asset"
    FETCHED = "fetched"
    MANIFEST_SYNC = "manifest-sync"
    MANIFEST_UPDATED = "manifest-updated"
    MANIFEST_UPLOADED = "manifest-uploaded"
    ASSET_UPLOADED = "asset-uploaded"
    PREVIEW_READY = "preview-ready"
    PREVIEW_UPLOADED = "preview-uploaded"
    DONE = "done"
    FAILED = "failed"
    REJECTED = "rejected"


@dataclass
class PublicationResult:
    """Outcome of one publication."""
    filename: str
    state: PublicationState = PublicationState.IDLE
    failed_at: Optional[PublicationState] = None
    error: Optional[BaseException] = None
    manifest: Optional[Manifest] = None
    preview_path: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.state is PublicationState.DONE

    def summary(self) -> str:
        if self.ok:
            count = self.manifest.image_count if self.manifest else "?"
            return f"Published {self.filename} (image #{count})."
        if self.state is PublicationState.REJECTED:
            return f"Skipped {self.filename}: {self.error}"
        stage = self.failed_at.value if self.failed_at else "unknown"
        return f"Publishing {self.filename} failed during {stage}: {self.error}"


class PublicationRejected(BooruBotError):
    """Raised into a result when a publication is not started."""


class PublicationPipeline:
    """
    Runs publications one at a time against an owned FTP session.

    Args:
        fetcher: HTTP downloader for attachments and the manifest.
        transfer: FTP session; owned by the pipeline.
        manifest_sync: Manifest read-modify-write helper.
        previews: Preview generator writing into the preview cache.
        download_dir: Local download cache.
        gallery_dir: Remote gallery directory, relative to the session root.
        preview_dir: Remote preview directory, relative to the gallery.
        busy_policy: ``queue`` to wait for the running publication,
            ``reject`` to refuse while one is in flight.
        manifest_commit_last: Upload the manifest after the images.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        transfer: TransferSession,
        manifest_sync: ManifestSynchronizer,
        previews: PreviewGenerator,
        download_dir: Path,
        gallery_dir: str,
        preview_dir: str,
        busy_policy: str = "queue",
        manifest_commit_last: bool = True,
    ):
        self.fetcher = fetcher
        self.transfer = transfer
        self.manifest_sync = manifest_sync
        self.previews = previews
        self.download_dir = Path(download_dir)
        self.gallery_dir = gallery_dir
        self.preview_dir = preview_dir
        self.busy_policy = busy_policy
        self.manifest_commit_last = manifest_commit_last

        self._lock = asyncio.Lock()
        self._accepting = True
        self.in_flight: Optional[str] = None
        self.last_result: Optional[PublicationResult] = None

    @classmethod
    def from_config(
        cls,
        config: Config,
        fetcher: Optional[Fetcher] = None,
        ftp_factory: Callable[[], Any] = ftplib.FTP,
    ) -> "PublicationPipeline":
        """Wire a pipeline from configuration."""
        fetcher = fetcher or Fetcher()
        transfer = TransferSession(
            host=config.ftp_host,
            user=config.ftp_user,
            password=config.ftp_password,
            port=config.ftp_port,
            ftp_factory=ftp_factory,
        )
        manifest_sync = ManifestSynchronizer(
            fetcher=fetcher,
            manifest_url=config.manifest_url,
            local_path=config.manifest_path,
            remote_dir=config.remote_root,
        )
        previews = PreviewGenerator(
            config.preview_dir,
            png_quality=config.png_quality,
            jpeg_quality=config.jpeg_quality,
        )
        gallery_dir = "/".join(
            part for part in (config.remote_root, config.remote_gallery_dir) if part)
        return cls(
            fetcher=fetcher,
            transfer=transfer,
            manifest_sync=manifest_sync,
            previews=previews,
            download_dir=config.download_dir,
            gallery_dir=gallery_dir,
            preview_dir=config.remote_preview_dir,
            busy_policy=config.busy_policy,
            manifest_commit_last=config.manifest_commit_last,
        )

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def accepting(self) -> bool:
        return self._accepting

    async def publish(self, url: str, filename: str) -> PublicationResult:
        """
        Publish one attachment.

        Args:
            url: Attachment URL.
            filename: Attachment filename; sanitized before use.

        Returns:
            The publication result. Never raises for publication failures.
        """
        filename = sanitize_filename(filename)
        if not self._accepting:
            return self._rejected(filename, "bot is shutting down")
        if self.busy_policy == "reject" and self._lock.locked():
            return self._rejected(filename, f"{self.in_flight} is still being published")

        async with self._lock:
            if not self._accepting:
                return self._rejected(filename, "bot is shutting down")
            self.in_flight = filename
            try:
                result = await self._run(url, filename)
            finally:
                self.in_flight = None
            self.last_result = result
            return result

    def _rejected(self, filename: str, reason: str) -> PublicationResult:
        logger.warning("Publication of %s rejected: %s", filename, reason)
        return PublicationResult(
            filename=filename,
            state=PublicationState.REJECTED,
            error=PublicationRejected(reason),
        )

    @staticmethod
    def _advance(result: PublicationResult, state: PublicationState) -> None:
        result.state = state
        logger.debug("%s: %s", result.filename, state.value)

    async def _run(self, url: str, filename: str) -> PublicationResult:
        result = PublicationResult(filename=filename)
        logger.info("📤 Publishing %s", filename)
        try:
            # Unsupported formats fail before anything is downloaded or uploaded
            self.previews.profile_for(filename)

            self._advance(result, PublicationState.FETCHING_ASSET)
            asset = await self.fetcher.fetch(url, self.download_dir / filename)
            self._advance(result, PublicationState.FETCHED)

            self._advance(result, PublicationState.MANIFEST_SYNC)
            result.manifest = await self.manifest_sync.prepare_entry(filename)
            self._advance(result, PublicationState.MANIFEST_UPDATED)

            await self.transfer.ensure_connected()

            if not self.manifest_commit_last:
                await self._commit_manifest(result)

            await self.transfer.restore()
            await self.transfer.binary()
            await self.transfer.cwd(self.gallery_dir)
            await self.transfer.put(asset, filename)
            self._advance(result, PublicationState.ASSET_UPLOADED)

            await self.transfer.cwd(self.preview_dir)
            await self._probe_preview_dir()
            result.preview_path = await self.previews.generate_async(asset)
            self._advance(result, PublicationState.PREVIEW_READY)

            await self.transfer.put(result.preview_path, filename)
            self._advance(result, PublicationState.PREVIEW_UPLOADED)

            if self.manifest_commit_last:
                await self._commit_manifest(result)

            self._advance(result, PublicationState.DONE)
            logger.info("✅ %s", result.summary())
        except Exception as exc:
            result.failed_at = result.state
            result.state = PublicationState.FAILED
            result.error = exc
            if isinstance(exc, BooruBotError):
                logger.error("❌ %s", result.summary())
            else:
                logger.exception("❌ %s", result.summary())
        finally:
            await self._restore_cursor()
        return result

    async def _commit_manifest(self, result: PublicationResult) -> None:
        await self.manifest_sync.commit(self.transfer)
        self._advance(result, PublicationState.MANIFEST_UPLOADED)

    async def _probe_preview_dir(self) -> None:
        try:
            names = await self.transfer.list()
        except TransferError as exc:
            logger.debug("Listing preview directory failed: %s", exc)
            return
        logger.debug("Preview directory holds %s entries", len(names))

    async def _restore_cursor(self) -> None:
        if not self.transfer.connected:
            return
        try:
            await self.transfer.reset()
        except BooruBotError as exc:
            logger.error("FTP session could not be reset: %s", exc)
            await self.transfer.close()

    async def shutdown(self) -> None:
        """Stop accepting publications, wait for the running one, release resources."""
        self._accepting = False
        if self._lock.locked():
            logger.info("Waiting for publication of %s to finish", self.in_flight)
        async with self._lock:
            await self.transfer.close()
            await self.fetcher.close()

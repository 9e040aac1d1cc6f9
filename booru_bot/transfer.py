"""FTP transfer session with an explicit working-directory cursor."""

from __future__ import annotations

import asyncio
import ftplib
import logging
from pathlib import Path
from typing import Any, Callable, List, Optional

from .utils import TransferError


logger = logging.getLogger(__name__)

ASCII = "A"
BINARY = "I"


def _segments(path: str) -> List[str]:
    return [part for part in path.split("/") if part and part != "."]


class TransferSession:
    """
    A single FTP connection whose remote working directory is tracked.

    Every ``cwd`` pushes the descended segments onto a stack so ``restore``
    can always bring the cursor back to the session root. Blocking ftplib
    calls run in a worker thread; callers must not share a session between
    concurrent tasks.
    """

    def __init__(
        self,
        host: str,
        user: str,
        password: str,
        port: int = 21,
        root: str = "",
        ftp_factory: Callable[[], Any] = ftplib.FTP,
    ):
        self.host = host
        self.user = user
        self.password = password
        self.port = port
        self.root = root
        self._ftp_factory = ftp_factory
        self._ftp: Optional[Any] = None
        self._stack: List[str] = []
        self._root_path: Optional[str] = None
        self.mode: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self._ftp is not None

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def cursor(self) -> str:
        """Working directory relative to the session root."""
        return "/".join(self._stack)

    async def _call(self, action: str, method: str, *args: Any) -> Any:
        if self._ftp is None:
            raise TransferError(f"Cannot {action}: FTP session is not connected.")
        return await self._run(action, getattr(self._ftp, method), *args)

    async def _run(self, action: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except ftplib.all_errors as exc:
            raise TransferError(f"FTP {action} failed: {exc}") from exc

    async def connect(self) -> None:
        """Open the connection, log in and enter the session root."""
        ftp = self._ftp_factory()
        try:
            await asyncio.to_thread(ftp.connect, self.host, self.port)
            await asyncio.to_thread(ftp.login, self.user, self.password)
        except ftplib.all_errors as exc:
            ftp.close()
            raise TransferError(f"FTP connect to {self.host} failed: {exc}") from exc

        self._ftp = ftp
        self._stack = []
        self.mode = None
        if self.root:
            await self._call("cwd", "cwd", self.root)
        try:
            self._root_path = await self._call("pwd", "pwd")
        except TransferError as exc:
            logger.debug("PWD unsupported, restoring by CDUP only: %s", exc)
            self._root_path = None
        logger.info("FTP session ready on %s (root %s)", self.host, self._root_path or "/")

    async def close(self) -> None:
        """Close the connection. Safe to call when not connected."""
        ftp = self._ftp
        if ftp is None:
            return
        self._ftp = None
        self._stack = []
        try:
            await asyncio.to_thread(ftp.quit)
        except ftplib.all_errors as exc:
            logger.debug("FTP QUIT failed, closing socket: %s", exc)
            ftp.close()
        logger.info("FTP session closed")

    async def ascii(self) -> None:
        await self._call("TYPE A", "voidcmd", "TYPE A")
        self.mode = ASCII

    async def binary(self) -> None:
        await self._call("TYPE I", "voidcmd", "TYPE I")
        self.mode = BINARY

    async def cwd(self, path: str) -> None:
        """Descend into a directory relative to the current cursor."""
        parts = _segments(path)
        if not parts:
            return
        await self._call("cwd", "cwd", "/".join(parts))
        self._stack.extend(parts)
        logger.debug("FTP cwd -> /%s", self.cursor)

    async def cdup(self) -> None:
        """Move one level up. Never leaves the session root."""
        if not self._stack:
            raise TransferError("Cannot move above the session root.")
        await self._call("cdup", "cwd", "..")
        self._stack.pop()

    async def pwd(self) -> str:
        return await self._call("pwd", "pwd")

    async def list(self) -> List[str]:
        """Names in the current remote directory."""
        return await self._call("list", "nlst")

    async def put(self, local_path: Path, remote_name: str) -> None:
        """Upload a local file into the current remote directory."""
        local_path = Path(local_path)
        command = f"STOR {remote_name}"
        ftp = self._ftp
        if ftp is None:
            raise TransferError("Cannot put: FTP session is not connected.")

        def _store() -> None:
            with open(local_path, "rb") as handle:
                if self.mode == ASCII:
                    ftp.storlines(command, handle)
                else:
                    ftp.storbinary(command, handle)

        await self._run("put", _store)
        logger.debug("FTP put %s -> /%s/%s", local_path, self.cursor, remote_name)

    async def restore(self) -> None:
        """Return the cursor to the session root."""
        if not self._stack:
            return
        if self._root_path is not None:
            await self._call("cwd", "cwd", self._root_path)
            self._stack = []
        else:
            while self._stack:
                await self.cdup()
        logger.debug("FTP cursor restored to root")

    async def noop(self) -> None:
        await self._call("NOOP", "voidcmd", "NOOP")

    async def ensure_connected(self) -> None:
        """Connect, or reconnect when the server has dropped the control connection."""
        if self._ftp is not None:
            try:
                await self.noop()
                return
            except TransferError as exc:
                logger.warning("FTP session lost, reconnecting: %s", exc)
            await self.close()
        await self.connect()

    async def reset(self) -> None:
        """Restore the cursor, reconnecting if the session is unusable."""
        try:
            await self.restore()
            # restore is a no-op at the root, so check the connection itself
            await self.noop()
            return
        except TransferError as exc:
            logger.warning("FTP session unusable, reconnecting: %s", exc)
        await self.close()
        await self.connect()

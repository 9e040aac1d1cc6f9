"""Tests for the gallery manifest and its synchronizer."""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from booru_bot.manifest import Manifest, ManifestSynchronizer
from booru_bot.transfer import TransferSession
from booru_bot.utils import FetchError, ManifestParseError
from tests.fakes import MANIFEST_URL, REMOTE_MANIFEST, FakeFetcher, FakeFTP


class TestManifest(unittest.TestCase):
    def test_loads_and_dumps(self) -> None:
        manifest = Manifest.loads('{"imageCount": 2, "posts": ["b.png", "a.jpg"]}')
        self.assertEqual(manifest.image_count, 2)
        self.assertEqual(manifest.posts, ["b.png", "a.jpg"])
        self.assertEqual(
            json.loads(manifest.dumps()), {"imageCount": 2, "posts": ["b.png", "a.jpg"]})

    def test_add_entry_prepends(self) -> None:
        manifest = Manifest(image_count=1, posts=["old.png"])
        manifest.add_entry("new.png")
        self.assertEqual(manifest.image_count, 2)
        self.assertEqual(manifest.posts, ["new.png", "old.png"])

    def test_extra_keys_survive(self) -> None:
        manifest = Manifest.loads('{"imageCount": 0, "posts": [], "title": "Sinon"}')
        manifest.add_entry("cat.png")
        self.assertEqual(manifest.to_dict()["title"], "Sinon")

    def test_missing_fields_default_to_empty(self) -> None:
        manifest = Manifest.loads("{}")
        self.assertEqual(manifest.image_count, 0)
        self.assertEqual(manifest.posts, [])

    def test_malformed_documents(self) -> None:
        bad = [
            "",
            "{not json",
            "[]",
            '{"imageCount": "3", "posts": []}',
            '{"imageCount": true, "posts": []}',
            '{"imageCount": -1, "posts": []}',
            '{"imageCount": 1, "posts": "cat.png"}',
            '{"imageCount": 1, "posts": [1]}',
        ]
        for text in bad:
            with self.subTest(text=text):
                with self.assertRaises(ManifestParseError):
                    Manifest.loads(text)

    def test_reconcile(self) -> None:
        manifest = Manifest(image_count=5, posts=["a.png", "b.png"])
        self.assertFalse(manifest.is_consistent)
        self.assertTrue(manifest.reconcile())
        self.assertEqual(manifest.image_count, 2)
        self.assertFalse(manifest.reconcile())

    def test_save_and_load(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "database.json"
            Manifest(image_count=1, posts=["ü.png"]).save(path)
            self.assertEqual(Manifest.load(path).posts, ["ü.png"])

    def test_load_missing_file(self) -> None:
        with self.assertRaises(ManifestParseError):
            Manifest.load(Path("/nonexistent/database.json"))


class TestManifestSynchronizer(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.local_path = Path(self.temp_dir.name) / "database.json"
        self.ftp = FakeFTP()
        self.ftp.files[REMOTE_MANIFEST] = b'{"imageCount": 0, "posts": []}'
        self.fetcher = FakeFetcher({MANIFEST_URL: lambda: self.ftp.files[REMOTE_MANIFEST]})
        self.transfer = TransferSession("ftp.example", "u", "p", ftp_factory=lambda: self.ftp)
        await self.transfer.connect()
        self.sync = ManifestSynchronizer(
            self.fetcher, MANIFEST_URL, self.local_path, remote_dir="subdomain-sinon")

    async def asyncTearDown(self) -> None:
        self.temp_dir.cleanup()

    def _remote(self) -> dict:
        return json.loads(self.ftp.files[REMOTE_MANIFEST])

    async def test_prepare_does_not_touch_remote(self) -> None:
        manifest = await self.sync.prepare_entry("cat.png")
        self.assertEqual(manifest.image_count, 1)
        self.assertEqual(json.loads(self.local_path.read_text())["posts"], ["cat.png"])
        self.assertEqual(self._remote(), {"imageCount": 0, "posts": []})
        self.assertEqual(self.ftp.stores, [])

    async def test_publish_entry_uploads_in_ascii(self) -> None:
        await self.sync.publish_entry("cat.png", self.transfer)
        self.assertEqual(self._remote(), {"imageCount": 1, "posts": ["cat.png"]})
        self.assertEqual(self.ftp.stores, [(REMOTE_MANIFEST, "A")])
        self.assertEqual(self.transfer.cursor, "subdomain-sinon")

    async def test_sequential_publications(self) -> None:
        names = [f"img{i}.png" for i in range(5)]
        for name in names:
            await self.sync.publish_entry(name, self.transfer)
        remote = self._remote()
        self.assertEqual(remote["imageCount"], 5)
        self.assertEqual(remote["posts"], list(reversed(names)))

    async def test_malformed_remote_manifest(self) -> None:
        self.ftp.files[REMOTE_MANIFEST] = b"<html>502 Bad Gateway</html>"
        with self.assertRaises(ManifestParseError):
            await self.sync.prepare_entry("cat.png")
        self.assertIsNone(self.sync.pending)
        self.assertEqual(self.ftp.stores, [])

    async def test_fetch_failure(self) -> None:
        self.fetcher.sources.clear()
        with self.assertRaises(FetchError):
            await self.sync.prepare_entry("cat.png")

    async def test_inconsistent_remote_is_reconciled(self) -> None:
        self.ftp.files[REMOTE_MANIFEST] = b'{"imageCount": 7, "posts": ["a.png"]}'
        manifest = await self.sync.prepare_entry("cat.png")
        self.assertEqual(manifest.image_count, 2)
        self.assertEqual(manifest.posts, ["cat.png", "a.png"])


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from approvals.adapters.filesystem_storage_adapter import FilesystemArtifactStore
from approvals.adapters.memory_storage_adapter import InMemoryArtifactStore
from approvals.exceptions.errors import MissingArtifactError
from approvals.models.artifact import ArtifactKind, ArtifactRef


class TestArtifactRef(unittest.TestCase):
    def test_keys(self) -> None:
        self.assertEqual(ArtifactRef.original("d1").key, "d1/original/000")
        self.assertEqual(ArtifactRef.signed("d1", 2, "ab12").key, "d1/signed/002-ab12")

    def test_parse(self) -> None:
        ref = ArtifactRef.parse("d1/signature_image/003-ff00")
        self.assertEqual(ref, ArtifactRef.signature_image("d1", 3, "ff00"))
        self.assertEqual(ArtifactRef.parse(ref.key), ref)
        for bad in ("d1/original", "d1/unknown/000", "d1/signed/abc"):
            with self.subTest(key=bad), self.assertRaises(ValueError):
                ArtifactRef.parse(bad)


class StoreContract:
    def make_store(self):
        raise NotImplementedError

    def setUp(self) -> None:
        self.store = self.make_store()

    def test_put_get_delete(self) -> None:
        ref = ArtifactRef.original("doc-1")
        self.assertFalse(self.store.exists(ref))
        self.store.put(ref, b"%PDF-1.4 hello")
        self.assertTrue(self.store.exists(ref))
        self.assertEqual(self.store.get(ref), b"%PDF-1.4 hello")
        self.store.put(ref, b"%PDF-1.4 again")
        self.assertEqual(self.store.get(ref), b"%PDF-1.4 again")
        self.assertTrue(self.store.delete(ref))
        self.assertFalse(self.store.delete(ref))

    def test_missing_artifact(self) -> None:
        with self.assertRaises(MissingArtifactError) as ctx:
            self.store.get(ArtifactRef.converted("doc-1"))
        self.assertEqual(ctx.exception.key, "doc-1/converted/000")

    def test_list_refs(self) -> None:
        refs = [
            ArtifactRef.original("doc-1"),
            ArtifactRef.signed("doc-1", 1, "aa"),
            ArtifactRef.signed("doc-1", 2, "bb"),
            ArtifactRef.original("doc-2"),
        ]
        for ref in refs:
            self.store.put(ref, b"x")
        listed = self.store.list_refs("doc-1")
        self.assertEqual(set(listed), set(refs[:3]))
        self.assertEqual([r for r in listed if r.kind is ArtifactKind.SIGNED], refs[1:3])


class TestInMemoryArtifactStore(StoreContract, unittest.TestCase):
    def make_store(self):
        return InMemoryArtifactStore()


class TestFilesystemArtifactStore(StoreContract, unittest.TestCase):
    def make_store(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        return FilesystemArtifactStore(self._tmp.name)

    def test_layout_and_no_temp_leftovers(self) -> None:
        self.store.put(ArtifactRef.signed("doc-1", 1, "ab"), b"pdf")
        kind_dir = Path(self._tmp.name) / "doc-1" / "signed"
        self.assertEqual(sorted(p.name for p in kind_dir.iterdir()), ["001-ab.bin"])

    def test_unsafe_document_id(self) -> None:
        for doc_id in ("../etc", "a/b", ""):
            with self.subTest(doc_id=doc_id), self.assertRaises(ValueError):
                self.store.put(ArtifactRef.original(doc_id), b"x")


if __name__ == "__main__":
    unittest.main()

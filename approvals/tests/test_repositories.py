"""
Contract tests run against both DocumentRepository implementations.
"""
from __future__ import annotations

import tempfile
import unittest
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest import mock

from approvals.enum.document_status import DocumentStatus
from approvals.enum.level_status import LevelStatus
from approvals.enum.priority import Priority
from approvals.exceptions.errors import ConcurrentModificationError, UnknownDocumentError
from approvals.logic.state_machine import ApprovalStateMachine
from approvals.models.approval_models import SignatureRecord
from approvals.models.artifact import ArtifactRef
from approvals.repository.memory_document_repository import InMemoryDocumentRepository
from approvals.repository.sqlite_document_repository import SQLiteDocumentRepository
from approvals.tests.helpers import HEAD_ID, PRINCIPAL_ID, make_state

_T0 = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


class RepositoryContract:
    """Mixin; subclasses provide ``make_repository``."""

    def make_repository(self):
        raise NotImplementedError

    def setUp(self) -> None:
        self.repo = self.make_repository()
        self.fsm = ApprovalStateMachine()

    def _create(self, doc_id: str = "doc-1", *, priority: Priority = Priority.MEDIUM, minutes: int = 0):
        state = make_state(document_id=doc_id)
        when = _T0 + timedelta(minutes=minutes)
        document = replace(state.document, priority=priority, created_at=when, updated_at=when)
        return self.repo.create(document, state.levels)

    def _approve_level_one(self, state):
        ref = ArtifactRef.signed(state.document.id, 1, "abc")
        decided = self.fsm.decide_approve(
            state, 1, HEAD_ID, signature_id="sig-1", signed_artifact=ref, decided_at=_T0
        )
        record = SignatureRecord(
            id="sig-1",
            document_id=state.document.id,
            level=1,
            image=ArtifactRef.signature_image(state.document.id, 1, "abc"),
            image_mime="image/png",
            principal_id=HEAD_ID,
            full_name="Approver 11",
            role="department_head",
            department="science",
            subject=None,
            artifact_sha256="00" * 32,
            signed_artifact=ref,
            signed_at=_T0,
        )
        return decided, record

    def test_create_and_read_back(self) -> None:
        stored = self._create()
        self.assertEqual(stored.document.version, 0)
        self.assertEqual([lvl.level for lvl in stored.levels], [1, 2])
        again = self.repo.get_state("doc-1")
        self.assertEqual(again.document.title, "Field trip")
        self.assertEqual(again.levels[1].approver.principal_id, PRINCIPAL_ID)
        self.assertTrue(self.repo.exists("doc-1"))
        self.assertIsNone(self.repo.get("nope"))
        self.assertIsNone(self.repo.get_state("nope"))

    def test_commit_decision_bumps_version_and_records_signature(self) -> None:
        state = self._create()
        decided, record = self._approve_level_one(state)
        stored = self.repo.commit_decision(decided, expected_version=0, signature=record)

        self.assertEqual(stored.document.version, 1)
        self.assertIs(stored.document.status, DocumentStatus.IN_REVIEW)
        self.assertEqual(stored.document.signed_artifact, ArtifactRef.signed("doc-1", 1, "abc"))
        self.assertIs(stored.levels[0].status, LevelStatus.APPROVED)
        self.assertEqual(stored.levels[0].signature_id, "sig-1")
        sigs = self.repo.list_signatures("doc-1")
        self.assertEqual(len(sigs), 1)
        self.assertEqual(sigs[0].image, ArtifactRef.signature_image("doc-1", 1, "abc"))
        self.assertEqual(sigs[0].signed_at, _T0)

    def test_stale_version_is_refused(self) -> None:
        state = self._create()
        decided, record = self._approve_level_one(state)
        self.repo.commit_decision(decided, expected_version=0, signature=record)
        with self.assertRaises(ConcurrentModificationError):
            self.repo.commit_decision(decided, expected_version=0, signature=replace(record, id="sig-2"))
        self.assertEqual(len(self.repo.list_signatures("doc-1")), 1)

    def test_original_missing_flag(self) -> None:
        self._create()
        self.repo.set_original_missing("doc-1", True)
        self.assertTrue(self.repo.get("doc-1").original_missing)
        self.repo.set_original_missing("doc-1", False)
        self.assertFalse(self.repo.get("doc-1").original_missing)
        with self.assertRaises(UnknownDocumentError):
            self.repo.set_original_missing("nope", True)

    def test_pending_for_orders_by_priority_then_age(self) -> None:
        self._create("old-low", priority=Priority.LOW, minutes=0)
        self._create("new-urgent", priority=Priority.URGENT, minutes=5)
        self._create("mid-medium", priority=Priority.MEDIUM, minutes=2)
        self._create("old-medium", priority=Priority.MEDIUM, minutes=1)

        pending = self.repo.pending_for(HEAD_ID)
        self.assertEqual(
            [p.document_id for p in pending], ["new-urgent", "old-medium", "mid-medium", "old-low"]
        )
        self.assertEqual(self.repo.pending_for(PRINCIPAL_ID), [])

    def test_pending_moves_to_next_level(self) -> None:
        state = self._create()
        decided, record = self._approve_level_one(state)
        self.repo.commit_decision(decided, expected_version=0, signature=record)
        self.assertEqual(self.repo.pending_for(HEAD_ID), [])
        [item] = self.repo.pending_for(PRINCIPAL_ID)
        self.assertEqual((item.document_id, item.level, item.role), ("doc-1", 2, "principal"))

    def test_list_documents(self) -> None:
        self._create("b", minutes=1)
        self._create("a", minutes=2)
        self.assertEqual([d.id for d in self.repo.list_documents()], ["b", "a"])


class TestInMemoryDocumentRepository(RepositoryContract, unittest.TestCase):
    def make_repository(self):
        return InMemoryDocumentRepository()

    def test_returned_objects_are_copies(self) -> None:
        stored = self._create()
        stored.document.title = "changed"
        self.assertEqual(self.repo.get("doc-1").title, "Field trip")


class TestSQLiteDocumentRepository(RepositoryContract, unittest.TestCase):
    def make_repository(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        repo = SQLiteDocumentRepository(Path(self._tmp.name) / "approvals.db")
        self.addCleanup(repo.close)
        return repo

    def test_survives_reopen(self) -> None:
        self._create()
        path = Path(self._tmp.name) / "approvals.db"
        self.repo.close()
        reopened = SQLiteDocumentRepository(path)
        self.addCleanup(reopened.close)
        state = reopened.get_state("doc-1")
        self.assertEqual(len(state.levels), 2)
        self.assertIs(state.document.priority, Priority.MEDIUM)
        self.assertEqual(state.document.created_at, _T0)

    def test_row_vanishing_after_write_is_unknown_document(self) -> None:
        with mock.patch.object(self.repo, "get_state", return_value=None):
            with self.assertRaises(UnknownDocumentError):
                self._create()


if __name__ == "__main__":
    unittest.main()

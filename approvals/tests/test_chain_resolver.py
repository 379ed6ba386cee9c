from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from approvals.adapters.static_role_directory import StaticRoleDirectory
from approvals.enum.approver_role import ApproverRole
from approvals.exceptions.errors import ChainPolicyError, NoApproverConfiguredError
from approvals.logic.chain_policy import ChainPolicy
from approvals.logic.chain_resolver import ApprovalChainResolver
from approvals.tests.helpers import ADMIN_ID, HEAD_ID, OTHER_HEAD_ID, PRINCIPAL_ID, make_directory
from core.contracts.directory import PrincipalInfo


class TestChainPolicy(unittest.TestCase):
    def test_bundled_policy(self) -> None:
        policy = ChainPolicy.load()
        self.assertEqual(policy.roles_for("field_trip"), (ApproverRole.DEPARTMENT_HEAD, ApproverRole.PRINCIPAL))
        self.assertEqual(policy.roles_for("Budget_Request")[-1], ApproverRole.ADMIN)

    def test_invalid_policies(self) -> None:
        for data in (
            {"default": []},
            {"default": ["principal", "principal"]},
            {"document_types": {"x": ["janitor"]}},
        ):
            with self.subTest(data=data), self.assertRaises(ChainPolicyError):
                ChainPolicy.from_mapping(data)

    def test_load_from_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "policy.json"
            path.write_text(json.dumps({"default": ["principal"]}), encoding="utf-8")
            self.assertEqual(ChainPolicy.load(path).roles_for("anything"), (ApproverRole.PRINCIPAL,))
            path.write_text("{not json", encoding="utf-8")
            with self.assertRaises(ChainPolicyError):
                ChainPolicy.load(path)
            with self.assertRaises(ChainPolicyError):
                ChainPolicy.load(Path(tmp) / "missing.json")


class TestApprovalChainResolver(unittest.TestCase):
    def setUp(self) -> None:
        self.directory = make_directory()
        self.resolver = ApprovalChainResolver(self.directory, ChainPolicy.load())

    def test_default_chain(self) -> None:
        chain = self.resolver.resolve("field_trip", "science")
        self.assertEqual([(e.level, e.role, e.principal.principal_id) for e in chain], [
            (1, "department_head", HEAD_ID),
            (2, "principal", PRINCIPAL_ID),
        ])

    def test_department_scoping(self) -> None:
        chain = self.resolver.resolve("field_trip", "Languages")
        self.assertEqual(chain[0].principal.principal_id, OTHER_HEAD_ID)

    def test_typed_chain_adds_admin(self) -> None:
        chain = self.resolver.resolve("budget_request", "science")
        self.assertEqual(chain[-1].principal.principal_id, ADMIN_ID)
        self.assertEqual([e.level for e in chain], [1, 2, 3])

    def test_resolution_is_deterministic(self) -> None:
        self.assertEqual(
            self.resolver.resolve("budget_request", "science"),
            self.resolver.resolve("budget_request", "science"),
        )

    def test_lowest_active_id_wins(self) -> None:
        self.directory.add(PrincipalInfo("10", "Deputy Principal", "principal"))
        self.directory.add(PrincipalInfo("1", "Former Principal", "principal", active=False))
        chain = self.resolver.resolve("field_trip", "science")
        self.assertEqual(chain[1].principal.principal_id, PRINCIPAL_ID)
        self.directory.deactivate(PRINCIPAL_ID)
        chain = self.resolver.resolve("field_trip", "science")
        self.assertEqual(chain[1].principal.principal_id, "10")

    def test_missing_department_head(self) -> None:
        with self.assertRaises(NoApproverConfiguredError) as ctx:
            self.resolver.resolve("field_trip", "history")
        self.assertEqual(ctx.exception.role, "department_head")
        with self.assertRaises(NoApproverConfiguredError):
            self.resolver.resolve("field_trip", None)

    def test_missing_admin(self) -> None:
        self.directory.deactivate(ADMIN_ID)
        with self.assertRaises(NoApproverConfiguredError) as ctx:
            self.resolver.resolve("procurement", "science")
        self.assertEqual(ctx.exception.role, "admin")


class TestStaticRoleDirectory(unittest.TestCase):
    def test_from_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "roster.json"
            path.write_text(
                json.dumps([
                    {"principal_id": 5, "full_name": "Ann", "role": "principal"},
                    {"principal_id": "6", "full_name": "Bob", "role": "department_head",
                     "department": "art", "active": False},
                ]),
                encoding="utf-8",
            )
            directory = StaticRoleDirectory.from_json(path)
        self.assertEqual(directory.get("5").full_name, "Ann")
        self.assertFalse(directory.occupants("department_head", department="ART")[0].active)


if __name__ == "__main__":
    unittest.main()

"""
core/tests/test_cli.py

Smoke tests for the ``sigura`` command line.
"""

from __future__ import annotations

import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path

from pypdf import PdfReader

import main
from signature.tests.helpers import make_pdf, make_signature_png


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _run(self, *argv: str):
        out = io.StringIO()
        with redirect_stdout(out):
            code = main.main(list(argv))
        return code, out.getvalue()

    def test_classify(self) -> None:
        code, out = self._run("classify", "a.PDF", "b.docx", "c.exe")
        self.assertEqual(code, 0)
        self.assertIn("a.PDF: native-pdf", out)
        self.assertIn("b.docx: office-convertible", out)
        self.assertIn("c.exe: unsupported", out)

    def test_chain(self) -> None:
        roster = self.tmp / "roster.json"
        roster.write_text(
            json.dumps([
                {"principal_id": "11", "full_name": "Hannah Head", "role": "department_head", "department": "science"},
                {"principal_id": "2", "full_name": "Paula Principal", "role": "principal"},
            ]),
            encoding="utf-8",
        )
        code, out = self._run("chain", "--roster", str(roster), "--type", "field_trip", "--department", "science")
        self.assertEqual(code, 0)
        self.assertEqual(out.splitlines(), [
            "1. department_head: Hannah Head (11)",
            "2. principal: Paula Principal (2)",
        ])

    def test_chain_without_approver_is_an_error(self) -> None:
        roster = self.tmp / "roster.json"
        roster.write_text("[]", encoding="utf-8")
        with self.assertLogs("sigura", level="ERROR"):
            code, _ = self._run("chain", "--roster", str(roster), "--type", "field_trip", "--department", "x")
        self.assertEqual(code, 2)

    def test_preview_text_file(self) -> None:
        src = self.tmp / "notes.txt"
        src.write_text("Hello\nWorld\n", encoding="utf-8")
        out_pdf = self.tmp / "notes.pdf"
        code, out = self._run("preview", str(src), str(out_pdf))
        self.assertEqual(code, 0)
        self.assertIn("native-text", out)
        self.assertEqual(len(PdfReader(str(out_pdf)).pages), 1)

    def test_stamp(self) -> None:
        base = self.tmp / "base.pdf"
        base.write_bytes(make_pdf(("One",)))
        sig = self.tmp / "sig.png"
        sig.write_bytes(make_signature_png())
        out_pdf = self.tmp / "signed.pdf"
        code, _ = self._run("stamp", str(base), str(sig), str(out_pdf), "--name", "Hannah Head")
        self.assertEqual(code, 0)
        self.assertEqual(len(PdfReader(str(out_pdf)).pages), 1)


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import unittest
from unittest import mock
from io import BytesIO

from PIL import Image
from pypdf import PdfReader

from conversion.exceptions.errors import ConversionFailedError
from conversion.logic.native_renderer import image_to_pdf, text_to_pdf


def _png(width: int = 120, height: int = 60) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


class TestNativeRenderer(unittest.TestCase):
    def test_image_becomes_single_page_pdf(self) -> None:
        pdf = image_to_pdf(_png())
        self.assertTrue(pdf.startswith(b"%PDF"))
        self.assertEqual(len(PdfReader(BytesIO(pdf)).pages), 1)

    def test_image_output_is_deterministic(self) -> None:
        self.assertEqual(image_to_pdf(_png()), image_to_pdf(_png()))

    def test_undecodable_image_fails(self) -> None:
        with self.assertRaises(ConversionFailedError):
            image_to_pdf(b"not an image")

    def test_decompression_bomb_is_a_conversion_failure(self) -> None:
        with mock.patch.object(Image, "MAX_IMAGE_PIXELS", 1000):
            with self.assertRaises(ConversionFailedError):
                image_to_pdf(_png(120, 60))

    def test_oversized_image_is_refused_before_decoding(self) -> None:
        with mock.patch("conversion.logic.native_renderer._MAX_PIXELS", 5000):
            with self.assertRaises(ConversionFailedError):
                image_to_pdf(_png(120, 60))

    def test_text_keeps_its_words(self) -> None:
        pdf = text_to_pdf("Quarterly safety review\nSecond line".encode("utf-8"))
        text = PdfReader(BytesIO(pdf)).pages[0].extract_text()
        self.assertIn("Quarterly safety review", text)
        self.assertIn("Second line", text)

    def test_long_text_spans_pages(self) -> None:
        body = "\n".join(f"line {i}" for i in range(200)).encode("utf-8")
        self.assertGreater(len(PdfReader(BytesIO(text_to_pdf(body))).pages), 1)


if __name__ == "__main__":
    unittest.main()

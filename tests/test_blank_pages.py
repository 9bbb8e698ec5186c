"""Tests for blank page detection and removal."""

from unittest.mock import MagicMock, patch

import pikepdf
import pytest
from PIL import Image, ImageDraw

from pdftoolkit.services.blank_pages import (
    analyze_pages,
    find_blank_pages,
    page_content_ratio,
    remove_blank_pages,
    text_runs,
)
from pdftoolkit.utils.exceptions import DecodeError


class FakeRasterizer:
    """Returns a prepared image per page index."""

    def __init__(self, images):
        self.images = images
        self.calls = []

    def render(self, source, source_index, scale=None, rotation=0):
        self.calls.append((source_index, scale))
        return self.images[source_index]


def _white(size=(100, 100)):
    return Image.new("RGB", size, (255, 255, 255))


def _with_ink(percent):
    """White 100x100 image with `percent` black pixels."""
    image = _white()
    draw = ImageDraw.Draw(image)
    if percent:
        draw.rectangle((0, 0, 99, percent - 1), fill=(0, 0, 0))
    return image


class TestContentRatio:
    def test_white_page(self):
        assert page_content_ratio(_white()) == 0.0

    def test_partial_ink(self):
        assert page_content_ratio(_with_ink(10)) == 10.0

    def test_near_white_is_not_content(self):
        assert page_content_ratio(Image.new("RGB", (10, 10), (251, 252, 250))) == 0.0

    def test_any_dark_channel_counts(self):
        assert page_content_ratio(Image.new("RGB", (10, 10), (255, 255, 249))) == 100.0

    def test_grayscale_input(self):
        assert page_content_ratio(Image.new("L", (10, 10), 0)) == 100.0


class TestTextRuns:
    def test_collects_tj_and_tj_array(self):
        pdf = pikepdf.Pdf.new()
        content = b"BT /F1 12 Tf (Hello) Tj [(Wor) -20 (ld)] TJ ( ) Tj ET"
        pdf.add_blank_page()
        pdf.pages[0].obj.Contents = pdf.make_stream(content)
        assert text_runs(pdf.pages[0]) == ["Hello", "World"]
        pdf.close()


class TestFindBlankPages:
    def test_threshold(self, make_pdf_file):
        path = make_pdf_file(3, text=False)
        rasterizer = FakeRasterizer([_with_ink(2), _with_ink(30), _white()])
        assert find_blank_pages(path, 5, renderer=rasterizer) == [1, 3]
        assert [call[0] for call in rasterizer.calls] == [0, 1, 2]
        assert rasterizer.calls[0][1] == pytest.approx(1.0)

    def test_substantial_text_is_never_blank(self, tmp_path):
        pdf = pikepdf.Pdf.new()
        pdf.add_blank_page()
        pdf.add_blank_page()
        runs = " ".join(f"(word number {i}) Tj" for i in range(4))
        pdf.pages[0].obj.Contents = pdf.make_stream(f"BT /F1 1 Tf {runs} ET".encode())
        pdf.pages[1].obj.Contents = pdf.make_stream(b"BT /F1 1 Tf (tiny) Tj ET")
        path = tmp_path / "text.pdf"
        pdf.save(path)
        pdf.close()

        analyses = analyze_pages(path, renderer=FakeRasterizer([_white(), _white()]))
        assert analyses[0].has_substantial_text
        assert not analyses[0].is_blank
        assert analyses[1].is_blank

    def test_remove_blank_pages(self, make_pdf_file, tmp_path):
        path = make_pdf_file(3)
        out = tmp_path / "clean.pdf"
        rasterizer = FakeRasterizer([_with_ink(20), _white(), _with_ink(20)])
        result = remove_blank_pages(path, out, renderer=rasterizer)
        assert result.success
        with pikepdf.open(out) as pdf:
            assert len(pdf.pages) == 2

    def test_remove_when_nothing_blank(self, make_pdf_file, tmp_path):
        out = tmp_path / "clean.pdf"
        rasterizer = FakeRasterizer([_with_ink(20)])
        result = remove_blank_pages(make_pdf_file(1), out, renderer=rasterizer)
        assert not result.success
        assert not out.exists()

    def test_remove_when_everything_blank(self, make_pdf_file, tmp_path):
        out = tmp_path / "clean.pdf"
        rasterizer = FakeRasterizer([_white(), _white()])
        result = remove_blank_pages(make_pdf_file(2), out, renderer=rasterizer)
        assert not result.success

    def test_owned_renderer_released_on_corrupt_file(self, tmp_path):
        bad = tmp_path / "bad.pdf"
        bad.write_bytes(b"nope")
        renderer = MagicMock()
        with (
            patch("pdftoolkit.services.blank_pages.require_pdftoppm"),
            patch(
                "pdftoolkit.editor.thumbnail_renderer.ThumbnailRenderer",
                return_value=renderer,
            ),
        ):
            with pytest.raises(DecodeError):
                analyze_pages(bad)
        renderer.clear_all.assert_called_once_with()

    def test_owned_renderer_released_on_missing_file(self, tmp_path):
        renderer = MagicMock()
        with (
            patch("pdftoolkit.services.blank_pages.require_pdftoppm"),
            patch(
                "pdftoolkit.editor.thumbnail_renderer.ThumbnailRenderer",
                return_value=renderer,
            ),
        ):
            with pytest.raises(FileNotFoundError):
                analyze_pages(tmp_path / "missing.pdf")
        renderer.clear_all.assert_called_once_with()

    def test_corrupt_file(self, tmp_path):
        bad = tmp_path / "bad.pdf"
        bad.write_bytes(b"nope")
        result = remove_blank_pages(bad, tmp_path / "out.pdf", renderer=FakeRasterizer([]))
        assert not result.success

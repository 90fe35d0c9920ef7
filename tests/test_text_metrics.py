"""Tests for heuristic text measurement and wrapping."""

import pytest

from sketch_mcp.models import ShapeType
from sketch_mcp.text_metrics import (
    TextMetrics,
    arrow_label_width,
    estimate_text_width,
    interior_width,
    layout_text,
    wrap_text,
)


def test_estimate_text_width() -> None:
    assert estimate_text_width("abcd", 10) == pytest.approx(24)
    assert estimate_text_width("", 16) == 0


class TestWrapText:
    # font size 10 -> 6 units per glyph

    def test_fits_on_one_line(self) -> None:
        assert wrap_text("hello", 100, 10) == ["hello"]

    def test_greedy_word_packing(self) -> None:
        assert wrap_text("hello world foo", 66, 10) == ["hello world", "foo"]

    def test_long_word_is_hard_broken(self) -> None:
        assert wrap_text("abcdefghijklmnop", 30, 10) == ["abcde", "fghij", "klmno", "p"]

    def test_long_word_after_short_word(self) -> None:
        assert wrap_text("hi abcdefgh", 30, 10) == ["hi", "abcde", "fgh"]

    def test_explicit_newlines_kept(self) -> None:
        assert wrap_text("a\n\nb", 100, 10) == ["a", "", "b"]

    def test_at_least_one_glyph_per_line(self) -> None:
        assert wrap_text("abc", 1, 10) == ["a", "b", "c"]

    def test_custom_metrics(self) -> None:
        wide = TextMetrics(width_factor=1.0)
        assert wrap_text("ab cd", 30, 10, wide) == ["ab", "cd"]


class TestInteriorWidth:

    def test_rectangle_loses_padding(self) -> None:
        assert interior_width(ShapeType.RECTANGLE, 180, 16) == pytest.approx(160)

    def test_ellipse_and_diamond_are_narrower(self) -> None:
        assert interior_width(ShapeType.ELLIPSE, 180, 16) == pytest.approx(112)
        assert interior_width(ShapeType.DIAMOND, 180, 16) == pytest.approx(80)

    def test_never_below_one_glyph(self) -> None:
        assert interior_width(ShapeType.RECTANGLE, 10, 16) == pytest.approx(9.6)


def test_arrow_label_width() -> None:
    assert arrow_label_width(100, 16) == pytest.approx(96)
    assert arrow_label_width(400, 16) == pytest.approx(240)


def test_layout_text_measures_block() -> None:
    block = layout_text("hello world foo", 66, 10)
    assert block.lines == ("hello world", "foo")
    assert block.text == "hello world\nfoo"
    assert block.width == pytest.approx(66)
    assert block.height == pytest.approx(25)

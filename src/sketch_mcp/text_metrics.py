"""
Heuristic text measurement and wrapping for labels.

There is no font rasterizer here: a glyph is assumed to be
``font_size * width_factor`` wide.  That is close enough for the hand-drawn
font the renderer uses and keeps the synthesis step deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass

from sketch_mcp.models import ShapeType


@dataclass(frozen=True)
class TextMetrics:
    """Measurement constants."""
    width_factor: float = 0.6
    line_height: float = 1.25
    padding: float = 10
    ellipse_ratio: float = 0.7
    diamond_ratio: float = 0.5
    arrow_length_ratio: float = 0.6
    arrow_min_glyphs: float = 6


DEFAULT_METRICS = TextMetrics()


@dataclass(frozen=True)
class TextBlock:
    """Wrapped text and the box it occupies."""
    text: str
    lines: tuple[str, ...]
    width: float
    height: float


def estimate_text_width(text: str, font_size: float, metrics: TextMetrics = DEFAULT_METRICS) -> float:
    """Single-line width: ``chars × font_size × width_factor``."""
    return len(text) * font_size * metrics.width_factor


def wrap_text(
    text: str,
    max_width: float,
    font_size: float,
    metrics: TextMetrics = DEFAULT_METRICS,
) -> list[str]:
    """Greedy word wrap.

    Words are packed onto a line while it still fits *max_width*; a word
    longer than a whole line is hard-broken.  Explicit newlines are kept.
    At least one glyph always fits on a line.
    """
    glyph = font_size * metrics.width_factor
    max_chars = max(1, int(max_width // glyph)) if glyph > 0 else max(1, len(text))

    lines: list[str] = []
    for paragraph in text.split("\n"):
        words = paragraph.split()
        if not words:
            lines.append("")
            continue
        current = ""
        for word in words:
            while len(word) > max_chars:
                if current:
                    lines.append(current)
                    current = ""
                lines.append(word[:max_chars])
                word = word[max_chars:]
            if not word:
                continue
            candidate = f"{current} {word}" if current else word
            if len(candidate) <= max_chars:
                current = candidate
            else:
                lines.append(current)
                current = word
        if current:
            lines.append(current)
    return lines


def interior_width(
    shape_type: ShapeType,
    width: float,
    font_size: float,
    metrics: TextMetrics = DEFAULT_METRICS,
) -> float:
    """Usable label width inside a shape.

    Ellipses and diamonds lose width to their silhouette.
    """
    usable = width - 2 * metrics.padding
    if shape_type is ShapeType.ELLIPSE:
        usable *= metrics.ellipse_ratio
    elif shape_type is ShapeType.DIAMOND:
        usable *= metrics.diamond_ratio
    return max(usable, font_size * metrics.width_factor)


def arrow_label_width(
    arrow_length: float,
    font_size: float,
    metrics: TextMetrics = DEFAULT_METRICS,
) -> float:
    return max(
        arrow_length * metrics.arrow_length_ratio,
        metrics.arrow_min_glyphs * font_size,
    )


def layout_text(
    text: str,
    max_width: float,
    font_size: float,
    metrics: TextMetrics = DEFAULT_METRICS,
) -> TextBlock:
    """Wrap *text* to *max_width* and measure the result."""
    lines = wrap_text(text, max_width, font_size, metrics)
    widest = max((estimate_text_width(line, font_size, metrics) for line in lines), default=0)
    height = len(lines) * font_size * metrics.line_height
    return TextBlock(
        text="\n".join(lines),
        lines=tuple(lines),
        width=widest,
        height=height,
    )

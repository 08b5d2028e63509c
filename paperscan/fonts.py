"""
Header fonts - draw AI-supplied text in any script the header may receive.

The standard Helvetica faces only carry WinAnsi glyphs. Text outside that
set is split into runs and drawn with one of reportlab's built-in CJK
CID fonts, which need no font files and cover CJK, Greek and Cyrillic.
Widths are measured run by run with the same fonts, so wrapping and
truncation agree with what is drawn.
"""

import logging
from typing import List, Tuple

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont


logger = logging.getLogger(__name__)


CJK_FONT_SIMPLIFIED = "STSong-Light"
CJK_FONT_JAPANESE = "HeiseiKakuGo-W5"
CJK_FONT_KOREAN = "HYGothic-Medium"

for _name in (CJK_FONT_SIMPLIFIED, CJK_FONT_JAPANESE, CJK_FONT_KOREAN):
    pdfmetrics.registerFont(UnicodeCIDFont(_name))


def is_standard_char(ch: str) -> bool:
    """True if a standard (WinAnsi-encoded) PDF font has a glyph for ch."""
    try:
        ch.encode("cp1252")
        return True
    except UnicodeEncodeError:
        return False


def _is_kana(ch: str) -> bool:
    return "\u3040" <= ch <= "\u30ff" or "\u31f0" <= ch <= "\u31ff"


def _is_hangul(ch: str) -> bool:
    return "\uac00" <= ch <= "\ud7a3" or "\u1100" <= ch <= "\u11ff" or "\u3130" <= ch <= "\u318f"


def fallback_font(text: str) -> str:
    """CID font for the non-standard characters of a string, chosen once per string."""
    if any(_is_kana(ch) for ch in text):
        return CJK_FONT_JAPANESE
    if any(_is_hangul(ch) for ch in text):
        return CJK_FONT_KOREAN
    return CJK_FONT_SIMPLIFIED


def font_runs(text: str, font_name: str) -> List[Tuple[str, str]]:
    """Split text into (run, font) pairs: font_name where it has glyphs, a CID font elsewhere."""
    if not text:
        return []
    cid_font = fallback_font(text)
    runs: List[Tuple[str, str]] = []
    for ch in text:
        font = font_name if is_standard_char(ch) else cid_font
        if runs and runs[-1][1] == font:
            runs[-1] = (runs[-1][0] + ch, font)
        else:
            runs.append((ch, font))
    return runs


def text_width(text: str, font_name: str, font_size: float) -> float:
    return sum(pdfmetrics.stringWidth(run, font, font_size) for run, font in font_runs(text, font_name))


def draw_text(c, x: float, y: float, text: str, font_name: str, font_size: float) -> None:
    """Left-aligned drawString that switches fonts per run. Fill colour is left as set."""
    for run, font in font_runs(text, font_name):
        c.setFont(font, font_size)
        c.drawString(x, y, run)
        x += pdfmetrics.stringWidth(run, font, font_size)

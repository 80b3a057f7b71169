"""
Serialization of a lyric document back to canonical TTML.
"""

import logging
import xml.etree.ElementTree as ET
from xml.dom import minidom

from .models import Document, Line, Syllable
from .timestamps import UNBOUNDED, format_timestamp
from .ttml_reader import (
    AMLL_NS,
    ITUNES_NS,
    ROLE_BACKGROUND,
    ROLE_ROMANIZATION,
    ROLE_TRANSLATION,
    TTM_NS,
    TTML_NS,
    XML_NS,
)

logger = logging.getLogger("ttmldb")

MAIN_AGENT = "v1"
DUET_AGENT = "v2"
DEFAULT_TRANSLATION_LANG = "zh-CN"

ET.register_namespace("", TTML_NS)
ET.register_namespace("ttm", TTM_NS)
ET.register_namespace("amll", AMLL_NS)
ET.register_namespace("itunes", ITUNES_NS)


def _tt(local: str) -> str:
    return f"{{{TTML_NS}}}{local}"


def _ttm(local: str) -> str:
    return f"{{{TTM_NS}}}{local}"


def _amll(local: str) -> str:
    return f"{{{AMLL_NS}}}{local}"


def _itunes(local: str) -> str:
    return f"{{{ITUNES_NS}}}{local}"


def _xml(local: str) -> str:
    return f"{{{XML_NS}}}{local}"


def _group_lines(lines: list[Line]) -> list[list[tuple[Line, Line | None]]]:
    """
    Pair each main line with the background line that follows it and split
    the result into divs at lines without syllables. A main line without
    syllables is kept when it carries a non-empty background line.
    """
    groups: list[list[tuple[Line, Line | None]]] = [[]]
    i = 0
    while i < len(lines):
        line = lines[i]
        background = None
        if not line.is_background and i + 1 < len(lines) and lines[i + 1].is_background:
            background = lines[i + 1]
            i += 1
        i += 1

        if not line.syllables and (background is None or not background.syllables):
            if groups[-1]:
                groups.append([])
            continue
        if line.is_background:
            logger.warning("Background line without a preceding main line, writing it as a main line")
        groups[-1].append((line, background))

    return [g for g in groups if g]


def _append_text(parent: ET.Element, text: str) -> None:
    if len(parent):
        last = parent[-1]
        last.tail = (last.tail or "") + text
    else:
        parent.text = (parent.text or "") + text


def _write_syllables(parent: ET.Element, syllables: list[Syllable]) -> None:
    if len(syllables) == 1:
        parent.text = syllables[0].text
        return
    for syl in syllables:
        if syl.is_blank:
            _append_text(parent, syl.text)
            continue
        attrib = {"begin": format_timestamp(syl.start), "end": format_timestamp(syl.end)}
        if syl.empty_beat_count is not None:
            attrib[_amll("empty-beat")] = str(syl.empty_beat_count)
        span = ET.SubElement(parent, _tt("span"), attrib)
        span.text = syl.text


def _write_auxiliary(parent: ET.Element, line: Line) -> None:
    if line.translated_text:
        span = ET.SubElement(
            parent,
            _tt("span"),
            {
                _ttm("role"): ROLE_TRANSLATION,
                _xml("lang"): line.translation_lang or DEFAULT_TRANSLATION_LANG,
            },
        )
        span.text = line.translated_text
    if line.romanized_text:
        span = ET.SubElement(parent, _tt("span"), {_ttm("role"): ROLE_ROMANIZATION})
        span.text = line.romanized_text


def _parenthesize(syllables: list[Syllable]) -> list[Syllable]:
    """Copy background syllables, wrapping the text in one pair of parentheses."""
    out = [Syllable(s.text, s.start, s.end, s.empty_beat_count) for s in syllables]
    timed = [s for s in out if not s.is_blank]
    if not timed:
        return out
    first, last = timed[0], timed[-1]
    if not first.text.lstrip().startswith("("):
        first.text = "(" + first.text
    if not last.text.rstrip().endswith(")"):
        last.text = last.text + ")"
    return out


def _write_background(p: ET.Element, line: Line) -> None:
    syllables = _parenthesize(line.syllables)
    start, end = line.start, line.end
    if len(syllables) == 1:
        start, end = syllables[0].start, syllables[0].end
    span = ET.SubElement(
        p,
        _tt("span"),
        {
            _ttm("role"): ROLE_BACKGROUND,
            "begin": format_timestamp(start),
            "end": format_timestamp(end),
        },
    )
    _write_syllables(span, syllables)
    _write_auxiliary(span, line)


def _bounds(line: Line, background: Line | None) -> tuple[int | None, int | None]:
    """Line bounds, falling back to the background line's for an empty main line."""
    start, end = line.start, line.end
    if background is not None:
        if start is None:
            start = background.start
        if end is None:
            end = background.end
    return start, end


def build_tree(doc: Document) -> ET.Element:
    """Build the ``<tt>`` element tree for a document."""
    # always declared so single-syllable word-timed lines read back as word-timed
    root = ET.Element(_tt("tt"), {_itunes("timing"): "Line" if doc.is_line_timed else "Word"})

    head = ET.SubElement(root, _tt("head"))
    metadata = ET.SubElement(head, _tt("metadata"))
    ET.SubElement(metadata, _ttm("agent"), {"type": "person", _xml("id"): MAIN_AGENT})
    if any(line.is_duet for line in doc.lines if not line.is_background):
        ET.SubElement(metadata, _ttm("agent"), {"type": "other", _xml("id"): DUET_AGENT})
    for entry in doc.metadata:
        for value in entry.values:
            ET.SubElement(metadata, _amll("meta"), {"key": entry.key, "value": value})

    groups = _group_lines(doc.lines)
    if groups:
        last_end = _bounds(*groups[-1][-1])[1]
        dur = UNBOUNDED if last_end is None else last_end
    else:
        dur = 0
    body = ET.SubElement(root, _tt("body"), {"dur": format_timestamp(dur)})

    key = 0
    for group in groups:
        div = ET.SubElement(
            body,
            _tt("div"),
            {
                "begin": format_timestamp(_bounds(*group[0])[0]),
                "end": format_timestamp(_bounds(*group[-1])[1]),
            },
        )
        for line, background in group:
            key += 1
            start, end = _bounds(line, background)
            p = ET.SubElement(
                div,
                _tt("p"),
                {
                    "begin": format_timestamp(start),
                    "end": format_timestamp(end),
                    _ttm("agent"): DUET_AGENT if line.is_duet else MAIN_AGENT,
                    _itunes("key"): f"L{key}",
                },
            )
            _write_syllables(p, line.syllables)
            if background is not None and background.syllables:
                _write_background(p, background)
            _write_auxiliary(p, line)

    logger.debug(f"Built TTML tree: {key} paragraph(s) in {len(groups)} div(s)")
    return root


def serialize_document(doc: Document, pretty: bool = False) -> str:
    """Serialize a document to compressed TTML, or pretty-printed TTML for review."""
    text = ET.tostring(build_tree(doc), encoding="unicode")
    if pretty:
        return minidom.parseString(text).toprettyxml(indent="  ")
    return text

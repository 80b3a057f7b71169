"""
TTML parsing into the lyric document model.
"""

import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterator

from .errors import XmlSyntaxError
from .models import (
    BackgroundSpan,
    Document,
    Line,
    Node,
    Paragraph,
    RomanizationSpan,
    Syllable,
    TextSyllable,
    TimedSyllable,
    TimingMode,
    TranslationSpan,
)
from .timestamps import parse_timestamp
from .whitespace import collapse_whitespace

logger = logging.getLogger("ttmldb")

TTML_NS = "http://www.w3.org/ns/ttml"
TTM_NS = "http://www.w3.org/ns/ttml#metadata"
AMLL_NS = "http://www.example.com/ns/amll"
ITUNES_NS = "http://music.apple.com/lyric-ttml-internal"
XML_NS = "http://www.w3.org/XML/1998/namespace"

# Namespaces accepted for structural elements; "" covers files without a default xmlns
_CORE_NS = {TTML_NS, ""}
_ITUNES_META_NS = {ITUNES_NS, TTML_NS, ""}

ATTR_ROLE = (f"{{{TTM_NS}}}role", "role")
ATTR_AGENT = (f"{{{TTM_NS}}}agent", "agent")
ATTR_ITUNES_KEY = (f"{{{ITUNES_NS}}}key",)
ATTR_ITUNES_TIMING = (f"{{{ITUNES_NS}}}timing",)
ATTR_EMPTY_BEAT = (f"{{{AMLL_NS}}}empty-beat",)
ATTR_XML_ID = (f"{{{XML_NS}}}id",)
ATTR_XML_LANG = (f"{{{XML_NS}}}lang",)

ROLE_BACKGROUND = "x-bg"
ROLE_TRANSLATION = "x-translation"
ROLE_ROMANIZATION = "x-roman"

DEFAULT_MAIN_AGENT = "v1"


def _split_tag(tag) -> tuple[str, str]:
    """Split an ElementTree tag into (namespace, local name)."""
    if not isinstance(tag, str):
        # comments and processing instructions
        return "", ""
    if tag.startswith("{"):
        ns, _, local = tag[1:].partition("}")
        return ns, local
    return "", tag


def _is(el: ET.Element, namespaces: set[str], local: str) -> bool:
    ns, name = _split_tag(el.tag)
    return name == local and ns in namespaces


def _attr(el: ET.Element, names: tuple[str, ...]) -> str | None:
    for name in names:
        value = el.get(name)
        if value is not None:
            return value
    return None


def _children(el: ET.Element, namespaces: set[str], local: str) -> Iterator[ET.Element]:
    return (child for child in el if _is(child, namespaces, local))


def _descendants(el: ET.Element, namespaces: set[str], local: str) -> Iterator[ET.Element]:
    return (node for node in el.iter() if _is(node, namespaces, local))


def _time_attr(el: ET.Element, name: str) -> int | None:
    value = el.get(name)
    if value is None:
        return None
    return parse_timestamp(value)


def _all_text(el: ET.Element) -> str:
    return "".join(el.itertext())


class _ReaderState:
    """Per-document lookups built while reading ``<head>``."""

    def __init__(self, timing_mode: TimingMode):
        self.timing_mode = timing_mode
        self.main_agent = DEFAULT_MAIN_AGENT
        self.header_translations: dict[str, str] = {}
        self.header_romanizations: dict[str, str] = {}
        self.header_translation_langs: dict[str, str] = {}
        self.warnings: list[str] = []

    @property
    def word_mode(self) -> bool:
        return self.timing_mode == TimingMode.WORD

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


def parse_ttml(xml_text: str | bytes, timing_mode: TimingMode = TimingMode.AUTO) -> Document:
    """
    Parse a TTML lyric file into a Document.

    Raises XmlSyntaxError for malformed markup and MalformedTimestamp for
    unparseable time expressions. Every other irregularity degrades into a
    Document that the validator can report on.
    """
    if isinstance(xml_text, bytes):
        if xml_text.startswith(b"\xef\xbb\xbf"):
            raise XmlSyntaxError("歌词文件包含 BOM 头，请以不带 BOM 的 UTF-8 编码保存")
        try:
            xml_text = xml_text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise XmlSyntaxError(f"歌词文件不是有效的 UTF-8 文本: {e}") from e
    if xml_text.startswith("\ufeff"):
        raise XmlSyntaxError("歌词文件包含 BOM 头，请以不带 BOM 的 UTF-8 编码保存")

    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise XmlSyntaxError(f"XML 格式错误: {e}", position=getattr(e, "position", None)) from e

    if not _is(root, _CORE_NS, "tt"):
        _, local = _split_tag(root.tag)
        raise XmlSyntaxError(f"根元素必须为 <tt>，实际为 <{local}>")

    state = _ReaderState(timing_mode)
    doc = Document()

    head = next(_children(root, _CORE_NS, "head"), None)
    if head is not None:
        _read_head(head, doc, state)

    body = next(_children(root, _CORE_NS, "body"), None)
    state.timing_mode = _detect_timing_mode(root, body, timing_mode)
    doc.timing_mode = state.timing_mode
    logger.debug(f"Timing mode: {state.timing_mode.value} (requested {timing_mode.value})")

    if body is None:
        state.warn("未找到 <body> 元素，歌词内容为空")
    else:
        for p, inherited_agent in _iter_paragraphs(body, None):
            paragraph = _read_paragraph(p, inherited_agent, state)
            doc.lines.extend(_build_lines(paragraph, state))

    doc.warnings = state.warnings
    logger.info(f"Parsed {len(doc.lines)} line(s) in {doc.timing_mode.value}-timed mode")
    return doc


# ---------------------------------------------------------------------------
# <head>
# ---------------------------------------------------------------------------


def _read_head(head: ET.Element, doc: Document, state: _ReaderState) -> None:
    for meta in _descendants(head, {AMLL_NS}, "meta"):
        key = meta.get("key")
        if not key:
            state.warn("忽略了缺少 key 属性的 <amll:meta> 元素")
            continue
        doc.add_metadata(key, meta.get("value", ""))

    for title in _descendants(head, {TTM_NS}, "title"):
        text = _all_text(title).strip()
        if text and text not in doc.get_metadata("musicName"):
            doc.add_metadata("musicName", text)

    main_found = False
    for agent in _descendants(head, {TTM_NS}, "agent"):
        agent_id = _attr(agent, ATTR_XML_ID)
        if not main_found and agent.get("type") == "person" and agent_id:
            state.main_agent = agent_id
            main_found = True
        for name_el in _children(agent, {TTM_NS}, "name"):
            name = _all_text(name_el).strip()
            if name and name not in doc.get_metadata("artists"):
                doc.add_metadata("artists", name)

    for itunes in _descendants(head, _ITUNES_META_NS, "iTunesMetadata"):
        _read_itunes_metadata(itunes, doc, state)

    logger.debug(f"Main agent: {state.main_agent}; {len(doc.metadata)} metadata key(s)")


def _read_itunes_metadata(itunes: ET.Element, doc: Document, state: _ReaderState) -> None:
    for songwriter in _descendants(itunes, _ITUNES_META_NS, "songwriter"):
        text = _all_text(songwriter)
        if text.strip():
            doc.add_metadata("songwriters", text)

    for container, target in (
        ("translation", state.header_translations),
        ("transliteration", state.header_romanizations),
    ):
        for block in _descendants(itunes, _ITUNES_META_NS, container):
            lang = _attr(block, ATTR_XML_LANG)
            for text_el in _children(block, _ITUNES_META_NS, "text"):
                key = text_el.get("for")
                text = collapse_whitespace(_all_text(text_el))
                if key and text and key not in target:
                    target[key] = text
                    if container == "translation" and lang:
                        state.header_translation_langs[key] = lang


# ---------------------------------------------------------------------------
# timing mode
# ---------------------------------------------------------------------------


def _has_timed_span(p: ET.Element) -> bool:
    for span in _descendants(p, _CORE_NS, "span"):
        if span is p:
            continue
        if span.get("begin") is not None and span.get("end") is not None:
            return True
    return False


def _detect_timing_mode(root: ET.Element, body: ET.Element | None, requested: TimingMode) -> TimingMode:
    if requested != TimingMode.AUTO:
        return requested

    declared = (_attr(root, ATTR_ITUNES_TIMING) or "").strip().lower()
    if declared == "line":
        return TimingMode.LINE
    if declared == "word":
        return TimingMode.WORD

    if body is not None:
        for p in _descendants(body, _CORE_NS, "p"):
            if _has_timed_span(p):
                return TimingMode.WORD
    return TimingMode.LINE


# ---------------------------------------------------------------------------
# <body>
# ---------------------------------------------------------------------------


def _iter_paragraphs(el: ET.Element, agent: str | None) -> Iterator[tuple[ET.Element, str | None]]:
    """Yield paragraphs in document order with any agent inherited from a div."""
    for child in el:
        if _is(child, _CORE_NS, "p"):
            yield child, agent
        elif _split_tag(child.tag)[1]:
            yield from _iter_paragraphs(child, _attr(child, ATTR_AGENT) or agent)


def _read_paragraph(p: ET.Element, inherited_agent: str | None, state: _ReaderState) -> Paragraph:
    return Paragraph(
        nodes=_read_nodes(p, state),
        start=_time_attr(p, "begin"),
        end=_time_attr(p, "end"),
        agent=_attr(p, ATTR_AGENT) or inherited_agent,
        key=_attr(p, ATTR_ITUNES_KEY),
        text=_plain_text(p),
    )


def _plain_text(el: ET.Element) -> str:
    """Text content of an element, skipping translation/romanization/background spans."""
    parts = [el.text or ""]
    for child in el:
        _, local = _split_tag(child.tag)
        if local == "span" and _attr(child, ATTR_ROLE) in (
            ROLE_BACKGROUND,
            ROLE_TRANSLATION,
            ROLE_ROMANIZATION,
        ):
            pass
        elif local == "br":
            parts.append(" ")
        elif local:
            parts.append(_plain_text(child))
        parts.append(child.tail or "")
    return "".join(parts)


def _read_nodes(el: ET.Element, state: _ReaderState) -> list[Node]:
    """Map the children of a paragraph or background span to reader nodes."""
    nodes: list[Node] = []
    if el.text:
        nodes.append(TextSyllable(el.text))

    for child in el:
        _, local = _split_tag(child.tag)
        if local == "span":
            node = _read_span(child, state)
            if node is not None:
                nodes.append(node)
        elif local == "br":
            state.warn("在 <p> 中发现并忽略了一个 <br/> 标签")
        elif local:
            logger.debug(f"Ignoring unexpected <{local}> inside lyric line")
        if child.tail:
            nodes.append(TextSyllable(child.tail))
    return nodes


def _read_span(span: ET.Element, state: _ReaderState) -> Node | None:
    role = _attr(span, ATTR_ROLE)
    if role == ROLE_BACKGROUND:
        return BackgroundSpan(
            nodes=_read_nodes(span, state),
            start=_time_attr(span, "begin"),
            end=_time_attr(span, "end"),
        )
    if role == ROLE_TRANSLATION:
        return TranslationSpan(text=_all_text(span), lang=_attr(span, ATTR_XML_LANG))
    if role == ROLE_ROMANIZATION:
        return RomanizationSpan(text=_all_text(span))

    text = _all_text(span)
    begin = _time_attr(span, "begin")
    end = _time_attr(span, "end")
    if begin is not None and end is not None:
        return TimedSyllable(
            text=text, start=begin, end=end, empty_beat_count=_empty_beat(span, state)
        )
    if not text.strip():
        # untimed spacer span
        return TextSyllable(text) if text else None
    if state.word_mode:
        state.warn(f"逐字模式下，span 缺少时间信息，文本 {text.strip()!r} 被忽略")
        return None
    return TextSyllable(text)


def _empty_beat(span: ET.Element, state: _ReaderState) -> int | None:
    raw = _attr(span, ATTR_EMPTY_BEAT)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        state.warn(f"忽略了无效的 amll:empty-beat 值 {raw!r}")
        return None


# ---------------------------------------------------------------------------
# lines
# ---------------------------------------------------------------------------


def _build_lines(paragraph: Paragraph, state: _ReaderState) -> list[Line]:
    """Build the main line and, when present, its background line right after it."""
    is_duet = paragraph.agent is not None and paragraph.agent != state.main_agent

    if state.word_mode:
        main = _word_line(paragraph.nodes, paragraph.start, paragraph.end, state)
    else:
        main = _line_timed_line(paragraph.text, paragraph.start, paragraph.end)
        ignored = _count_timed(paragraph.nodes)
        if ignored:
            state.warn(
                f"在逐行歌词的段落 ({paragraph.start}ms-{paragraph.end}ms) 中"
                f"忽略了 {ignored} 个逐字音节的时间戳"
            )
    main.is_duet = is_duet
    _apply_auxiliary(main, paragraph.nodes, state)
    _apply_header_text(main, paragraph.key, state)

    lines = [main]
    background = _merge_backgrounds(paragraph.nodes, state)
    if background is not None:
        lines.append(_background_line(background, paragraph, state))
    return lines


def _word_line(nodes: list[Node], start: int | None, end: int | None, state: _ReaderState) -> Line:
    syllables: list[Syllable] = []
    for node in nodes:
        if isinstance(node, TextSyllable):
            if node.text.strip():
                syllables.append(Syllable(node.text, start or 0, end or 0))
            else:
                syllables.append(Syllable(node.text, 0, 0))
        elif isinstance(node, TimedSyllable):
            syllables.append(Syllable(node.text, node.start, node.end, node.empty_beat_count))
    return Line(syllables=syllables, start=start, end=end)


def _line_timed_line(text: str, start: int | None, end: int | None) -> Line:
    collapsed = collapse_whitespace(text)
    syllables = [Syllable(collapsed, start or 0, end or 0)] if collapsed else []
    return Line(syllables=syllables, start=start, end=end)


def _count_timed(nodes: list[Node]) -> int:
    count = 0
    for node in nodes:
        if isinstance(node, TimedSyllable):
            count += 1
        elif isinstance(node, BackgroundSpan):
            count += _count_timed(node.nodes)
    return count


def _apply_auxiliary(line: Line, nodes: list[Node], state: _ReaderState) -> None:
    translations = [n for n in nodes if isinstance(n, TranslationSpan) and n.text.strip()]
    romanizations = [n.text for n in nodes if isinstance(n, RomanizationSpan) and n.text.strip()]
    if translations:
        line.translated_text = translations[0].text
        line.translation_lang = translations[0].lang
    if romanizations:
        line.romanized_text = romanizations[0]
    if len(translations) > 1 or len(romanizations) > 1:
        state.warn("同一行包含多个翻译或音译 span，仅保留第一个")


def _apply_header_text(line: Line, key: str | None, state: _ReaderState) -> None:
    if key is None:
        return
    for attr, table, label in (
        ("translated_text", state.header_translations, "翻译"),
        ("romanized_text", state.header_romanizations, "音译"),
    ):
        header = table.get(key)
        if header is None:
            continue
        inline = getattr(line, attr)
        if inline:
            state.warn(f"行 {key} 同时存在内嵌{label}与头部{label}，两者已被拼接，请检查是否重复")
            setattr(line, attr, f"{inline} {header}")
        else:
            setattr(line, attr, header)
    if line.translation_lang is None:
        line.translation_lang = state.header_translation_langs.get(key)


def _merge_backgrounds(nodes: list[Node], state: _ReaderState) -> BackgroundSpan | None:
    spans = [n for n in nodes if isinstance(n, BackgroundSpan)]
    if not spans:
        return None
    if len(spans) > 1:
        state.warn(f"同一行包含 {len(spans)} 个背景人声 span，已合并为一个背景行")
    merged = BackgroundSpan(nodes=[], start=spans[0].start, end=spans[-1].end)
    for span in spans:
        merged.nodes.extend(span.nodes)
    return merged


def _background_line(span: BackgroundSpan, paragraph: Paragraph, state: _ReaderState) -> Line:
    nested = [n for n in span.nodes if isinstance(n, BackgroundSpan)]
    if nested:
        state.warn("背景人声 span 中嵌套了另一个背景人声 span，内层已被忽略")

    start = span.start if span.start is not None else paragraph.start
    end = span.end if span.end is not None else paragraph.end
    if state.word_mode:
        line = _word_line(span.nodes, start, end, state)
    else:
        text = "".join(n.text for n in span.nodes if isinstance(n, (TextSyllable, TimedSyllable)))
        line = _line_timed_line(text, start, end)

    if span.start is None or span.end is None:
        # fall back to the syllables' own extent
        lo, hi = line.syllable_bounds()
        line.start = lo if lo is not None else start
        line.end = hi if hi is not None else end

    line.is_background = True
    _strip_parentheses(line)
    _apply_auxiliary(line, span.nodes, state)
    return line


def _strip_parentheses(line: Line) -> None:
    """Remove one leading '(' and one trailing ')' around a background line."""
    timed = [s for s in line.syllables if not s.is_blank]
    if not timed:
        return
    first, last = timed[0], timed[-1]

    idx = first.text.find("(")
    if idx >= 0 and not first.text[:idx].strip():
        first.text = first.text[:idx] + first.text[idx + 1 :]

    idx = last.text.rfind(")")
    if idx >= 0 and not last.text[idx + 1 :].strip():
        last.text = last.text[:idx] + last.text[idx + 1 :]

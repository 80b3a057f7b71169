"""
Tests for TTML serialization.
"""

import xml.etree.ElementTree as ET

from src.ttmldb.models import Document, Line, MetadataEntry, Syllable, TimingMode, space_syllable
from src.ttmldb.ttml_reader import parse_ttml
from src.ttmldb.ttml_writer import serialize_document

TT = "{http://www.w3.org/ns/ttml}"
TTM = "{http://www.w3.org/ns/ttml#metadata}"
ITUNES = "{http://music.apple.com/lyric-ttml-internal}"


def _main_line() -> Line:
    return Line(syllables=[Syllable("Hello", 0, 500), space_syllable(), Syllable("world", 500, 1000)])


def test_background_parentheses_not_doubled():
    """Test existing parentheses on a background line are kept as is."""
    bg = Line(
        syllables=[Syllable("(hello", 1000, 1200), space_syllable(), Syllable("there)", 1200, 1500)],
        is_background=True,
    )
    doc = Document(lines=[_main_line(), bg])

    out = serialize_document(doc)

    assert "((hello" not in out
    assert "there))" not in out
    assert out.count("(") == 1
    assert out.count(")") == 1


def test_background_parentheses_added_once():
    """Test a bare background line gains exactly one pair of parentheses."""
    bg = Line(
        syllables=[Syllable("ooh", 1000, 1200), space_syllable(), Syllable("ah", 1200, 1500)],
        is_background=True,
    )
    doc = Document(lines=[_main_line(), bg])

    out = serialize_document(doc)
    root = ET.fromstring(out)

    assert out.count("(") == 1
    assert out.count(")") == 1
    ps = root.findall(f".//{TT}p")
    assert len(ps) == 1
    bg_span = [s for s in ps[0] if s.get(f"{TTM}role") == "x-bg"][0]
    texts = [s.text for s in bg_span]
    assert texts == ["(ooh", "ah)"]
    assert bg_span.get("begin") == "00:01.000"
    assert bg_span.get("end") == "00:01.500"


def test_single_syllable_background_is_plain_text():
    """Test a one-syllable background line is written without inner spans."""
    bg = Line(syllables=[Syllable("yeah", 1100, 1400)], start=1000, end=1500, is_background=True)
    doc = Document(lines=[_main_line(), bg])

    root = ET.fromstring(serialize_document(doc))

    bg_span = [s for s in root.iter(f"{TT}span") if s.get(f"{TTM}role") == "x-bg"][0]
    assert bg_span.text == "(yeah)"
    assert len(bg_span) == 0
    assert bg_span.get("begin") == "00:01.100"
    assert bg_span.get("end") == "00:01.400"


def test_single_syllable_line_is_plain_text():
    """Test a line with one syllable has no span children."""
    doc = Document(lines=[Line(syllables=[Syllable("Hello world", 1000, 3000)])])

    root = ET.fromstring(serialize_document(doc))

    p = root.find(f".//{TT}p")
    assert p.text == "Hello world"
    assert len(p) == 0
    assert p.get("begin") == "00:01.000"
    assert p.get("end") == "00:03.000"


def test_divs_split_at_empty_lines_and_keys_sequential():
    """Test empty lines separate divs and are not written."""
    doc = Document(
        lines=[
            Line(syllables=[Syllable("a", 0, 1000)]),
            Line(syllables=[], start=1000, end=2000),
            Line(syllables=[Syllable("b", 2000, 3000)]),
            Line(syllables=[Syllable("c", 3000, 4000)]),
        ]
    )

    root = ET.fromstring(serialize_document(doc))

    divs = root.findall(f"{TT}body/{TT}div")
    assert len(divs) == 2
    assert [len(d) for d in divs] == [1, 2]
    assert divs[1].get("begin") == "00:02.000"
    assert divs[1].get("end") == "00:04.000"
    keys = [p.get(f"{ITUNES}key") for p in root.iter(f"{TT}p")]
    assert keys == ["L1", "L2", "L3"]
    assert root.find(f"{TT}body").get("dur") == "00:04.000"


def test_head_agents_and_metadata():
    """Test agents are declared per singer and metadata values are written in order."""
    duet = Line(syllables=[Syllable("hey", 1000, 2000)], is_duet=True)
    doc = Document(
        metadata=[MetadataEntry("artists", ["A", "B"]), MetadataEntry("album", ["X"])],
        lines=[_main_line(), duet],
    )

    root = ET.fromstring(serialize_document(doc))

    agents = root.findall(f".//{TTM}agent")
    assert [a.get("{http://www.w3.org/XML/1998/namespace}id") for a in agents] == ["v1", "v2"]
    metas = root.findall(".//{http://www.example.com/ns/amll}meta")
    assert [(m.get("key"), m.get("value")) for m in metas] == [("artists", "A"), ("artists", "B"), ("album", "X")]
    assert [p.get(f"{TTM}agent") for p in root.iter(f"{TT}p")] == ["v1", "v2"]


def test_translation_and_romanization_spans():
    """Test auxiliary text is written as trailing role-tagged spans."""
    line = _main_line()
    line.translated_text = "你好世界"
    line.romanized_text = "ni hao"
    doc = Document(lines=[line])

    root = ET.fromstring(serialize_document(doc))

    p = root.find(f".//{TT}p")
    roles = [s.get(f"{TTM}role") for s in p]
    assert roles == [None, None, "x-translation", "x-roman"]
    assert p[2].text == "你好世界"
    assert p[2].get("{http://www.w3.org/XML/1998/namespace}lang") == "zh-CN"


def test_timing_mode_always_declared():
    """Test the root carries the timing granularity for both modes."""
    lines = [Line(syllables=[Syllable("hi", 0, 1000)])]

    line_root = ET.fromstring(serialize_document(Document(lines=lines, timing_mode=TimingMode.LINE)))
    word_root = ET.fromstring(serialize_document(Document(lines=lines, timing_mode=TimingMode.WORD)))

    assert line_root.get(f"{ITUNES}timing") == "Line"
    assert word_root.get(f"{ITUNES}timing") == "Word"


def test_single_syllable_word_timed_reads_back_as_word_timed():
    """Test plain-text single-syllable lines keep their word-timed granularity."""
    doc = Document(lines=[Line(syllables=[Syllable("Hi", 1000, 2000)])])

    reread = parse_ttml(serialize_document(doc))

    assert reread.timing_mode == TimingMode.WORD
    assert [(s.text, s.start, s.end) for s in reread.lines[0].syllables] == [("Hi", 1000, 2000)]


def test_background_kept_when_main_line_is_empty():
    """Test a background line owned by an empty main line is still written."""
    bg = Line(
        syllables=[Syllable("ooh", 1000, 1200), space_syllable(), Syllable("ah", 1200, 1500)],
        is_background=True,
    )
    doc = Document(lines=[Line(syllables=[]), bg])

    out = serialize_document(doc)
    root = ET.fromstring(out)

    assert "(ooh" in out
    assert "ah)" in out
    p = root.find(f".//{TT}p")
    assert p.get("begin") == "00:01.000"
    assert p.get("end") == "00:01.500"
    assert root.find(f"{TT}body").get("dur") == "00:01.500"

    reread = parse_ttml(out)
    assert [(line.is_background, line.text) for line in reread.lines] == [(False, ""), (True, "ooh ah")]


def test_background_span_precedes_translation():
    """Test the x-bg span is written before the main line's auxiliary spans."""
    line = _main_line()
    line.translated_text = "你好世界"
    line.romanized_text = "ni hao"
    bg = Line(syllables=[Syllable("ooh", 1000, 1200)], is_background=True)
    doc = Document(lines=[line, bg])

    p = ET.fromstring(serialize_document(doc)).find(f".//{TT}p")

    roles = [s.get(f"{TTM}role") for s in p]
    assert roles == [None, None, "x-bg", "x-translation", "x-roman"]


def test_translation_language_preserved():
    """Test a translation keeps its own language tag."""
    line = _main_line()
    line.translated_text = "hello world"
    line.translation_lang = "en"
    doc = Document(lines=[line])

    p = ET.fromstring(serialize_document(doc)).find(f".//{TT}p")

    assert p[2].get("{http://www.w3.org/XML/1998/namespace}lang") == "en"


def test_empty_document():
    """Test a document without lines still produces a valid tree."""
    root = ET.fromstring(serialize_document(Document()))

    assert root.find(f"{TT}body").get("dur") == "00:00.000"
    assert root.findall(f".//{TT}div") == []


def test_compressed_and_pretty_output():
    """Test canonical output is one line and pretty output is indented."""
    doc = Document(lines=[_main_line()])

    compressed = serialize_document(doc)
    pretty = serialize_document(doc, pretty=True)

    assert "\n" not in compressed
    assert '<span begin="00:00.000" end="00:00.500">Hello</span> <span' in compressed
    assert "\n  " in pretty

"""
End-to-end tests for the submission pipeline.
"""

import pytest

from src.ttmldb.errors import TTMLError
from src.ttmldb.models import TimingMode
from src.ttmldb.pipeline import process_submission
from src.ttmldb.ttml_reader import parse_ttml

HEAD = (
    '<ttm:agent type="person" xml:id="v1"/>'
    '<amll:meta key="musicName" value="Hello World"/>'
    '<amll:meta key="artists" value="Tester"/>'
    '<amll:meta key="album" value="Hello World"/>'
    '<amll:meta key="ncmMusicId" value="123456"/>'
)

SPANS = (
    '<span begin="00:00.100" end="00:00.500">Hello</span> '
    '<span begin="00:00.600" end="00:01.000">world</span>'
)


def _ttml(p_content: str, head: str = HEAD) -> str:
    return (
        '<tt xmlns="http://www.w3.org/ns/ttml" xmlns:ttm="http://www.w3.org/ns/ttml#metadata" '
        'xmlns:amll="http://www.example.com/ns/amll" xmlns:itunes="http://music.apple.com/lyric-ttml-internal">'
        f"<head><metadata>{head}</metadata></head>"
        f'<body><div><p begin="00:00.100" end="00:01.000">{p_content}</p></div></body></tt>'
    )


def test_hello_world_roundtrip():
    """Test syllables, timestamps and spacing survive parse and serialize."""
    result = process_submission(_ttml(SPANS))

    assert result.is_valid
    assert result.change_log == []
    assert SPANS in result.canonical_ttml

    line = parse_ttml(result.canonical_ttml).lines[0]
    assert [(s.text, s.start, s.end) for s in line.syllables] == [
        ("Hello", 100, 500),
        (" ", 0, 0),
        ("world", 600, 1000),
    ]


def test_canonical_output_is_a_fixed_point():
    """Test reprocessing canonical output of single-syllable lines changes nothing."""
    first = process_submission(_ttml('<span begin="00:00.200" end="00:00.800">Hi</span>'))
    second = process_submission(first.canonical_ttml)

    assert second.canonical_ttml == first.canonical_ttml
    assert 'itunes:timing="Word"' in first.canonical_ttml
    assert parse_ttml(second.canonical_ttml).timing_mode == TimingMode.WORD
    assert second.change_log == []


def test_irregular_whitespace_is_corrected_and_logged():
    """Test edge spaces move into a separator and the fix is reported."""
    raw = _ttml(
        '<span begin="00:00.100" end="00:00.500">Hello </span>'
        '<span begin="00:00.600" end="00:01.000">world</span>'
    )

    result = process_submission(raw)

    assert SPANS in result.canonical_ttml
    assert len(result.change_log) == 1
    assert result.change_log[0].startswith("- 第 1 行：")


def test_metadata_summary():
    """Test the summary groups titles, artists, albums and platform ids."""
    result = process_submission(_ttml(SPANS))

    assert result.metadata_summary == {
        "title": ["Hello World"],
        "artists": ["Tester"],
        "album": ["Hello World"],
        "platformIds": {
            "ncmMusicId": ["123456"],
            "qqMusicId": [],
            "spotifyId": [],
            "appleMusicId": [],
        },
    }


def test_defects_collected_not_raised():
    """Test timing and metadata problems end up in the defect list."""
    raw = _ttml(
        '<span begin="00:00.500" end="00:00.100">Hello</span>',
        head='<ttm:agent type="person" xml:id="v1"/>',
    )

    result = process_submission(raw)

    assert not result.is_valid
    assert "结束时间有误" in result.defects[0]
    assert any("musicName" in d for d in result.defects)


def test_pretty_output_is_optional():
    """Test the pretty copy is only produced on request."""
    assert process_submission(_ttml(SPANS)).pretty_ttml is None

    result = process_submission(_ttml(SPANS), pretty=True)

    assert result.pretty_ttml is not None
    assert "\n" in result.pretty_ttml
    assert "\n" not in result.canonical_ttml


def test_fatal_errors_propagate():
    """Test malformed input aborts with a TTMLError."""
    with pytest.raises(TTMLError):
        process_submission("<tt><body>")

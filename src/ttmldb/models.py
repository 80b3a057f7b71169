"""
Data models for the lyric pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

# Text of a synthesized inter-word separator syllable
SPACE = " "


class TimingMode(str, Enum):
    """Timing granularity of a lyric document."""

    AUTO = "auto"
    WORD = "word"
    LINE = "line"


@dataclass
class Syllable:
    """One timed unit of sung text, or a bare space separator."""

    text: str
    start: int = 0  # ms
    end: int = 0  # ms
    empty_beat_count: int | None = None

    @property
    def is_blank(self) -> bool:
        return not isinstance(self.text, str) or not self.text.strip()


def space_syllable() -> Syllable:
    """Build a synthesized single-space separator syllable."""
    return Syllable(text=SPACE, start=0, end=0)


@dataclass
class Line:
    """A lyric line with its syllables and auxiliary text."""

    syllables: list[Syllable] = field(default_factory=list)
    start: int | None = None  # ms; derived from syllables when omitted
    end: int | None = None  # ms; derived from syllables when omitted
    is_duet: bool = False
    is_background: bool = False
    translated_text: str | None = None
    translation_lang: str | None = None  # xml:lang of the translation
    romanized_text: str | None = None

    def __post_init__(self) -> None:
        lo, hi = self.syllable_bounds()
        if self.start is None:
            self.start = lo
        if self.end is None:
            self.end = hi

    def syllable_bounds(self) -> tuple[int | None, int | None]:
        """Min start / max end over the non-blank syllables, if any."""
        timed = [s for s in self.syllables if not s.is_blank]
        if not timed:
            return None, None
        return min(s.start for s in timed), max(s.end for s in timed)

    @property
    def text(self) -> str:
        return "".join(s.text for s in self.syllables if isinstance(s.text, str))


@dataclass
class MetadataEntry:
    """A metadata key with all of its values, in first-seen order."""

    key: str
    values: list[str] = field(default_factory=list)


@dataclass
class Document:
    """A parsed lyric document."""

    metadata: list[MetadataEntry] = field(default_factory=list)
    lines: list[Line] = field(default_factory=list)
    timing_mode: TimingMode = TimingMode.WORD
    warnings: list[str] = field(default_factory=list)

    def add_metadata(self, key: str, value: str) -> None:
        """Append a value, coalescing entries that share a key."""
        for entry in self.metadata:
            if entry.key == key:
                entry.values.append(value)
                return
        self.metadata.append(MetadataEntry(key=key, values=[value]))

    def get_metadata(self, key: str) -> list[str]:
        for entry in self.metadata:
            if entry.key == key:
                return list(entry.values)
        return []

    @property
    def is_line_timed(self) -> bool:
        return self.timing_mode == TimingMode.LINE


# Nodes produced by the TTML reader while walking a paragraph. Each paragraph
# child is mapped to exactly one of these before any Line is built.


@dataclass
class TextSyllable:
    """Bare text directly inside a paragraph or background span."""

    text: str


@dataclass
class TimedSyllable:
    """A span with its own begin/end pair."""

    text: str
    start: int
    end: int
    empty_beat_count: int | None = None


@dataclass
class TranslationSpan:
    text: str
    lang: str | None = None


@dataclass
class RomanizationSpan:
    text: str


@dataclass
class BackgroundSpan:
    """An ``x-bg`` span; its children are nodes of the same closed set."""

    nodes: list["Node"]
    start: int | None = None
    end: int | None = None


Node = Union[TextSyllable, TimedSyllable, TranslationSpan, RomanizationSpan, BackgroundSpan]


@dataclass
class Paragraph:
    """A ``<p>`` element reduced to its attributes and child nodes."""

    nodes: list[Node]
    start: int | None = None
    end: int | None = None
    agent: str | None = None
    key: str | None = None
    text: str = ""  # full text content, used in line-timed mode

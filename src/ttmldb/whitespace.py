"""
Whitespace normalization for syllables, auxiliary text and metadata values.
"""

import json
import logging
import re
from dataclasses import dataclass, field, replace

from .models import SPACE, Document, Line, MetadataEntry, Syllable, space_syllable

logger = logging.getLogger("ttmldb")

_WS_RUN_RE = re.compile(r"\s+")
_SPLIT_RE = re.compile(r"^(\s*)(.*?)(\s*)$", re.S)


@dataclass
class Change:
    """One automatic correction, kept so it can be shown to the submitter."""

    context: str
    message: str
    original: str | None = None
    corrected: str | None = None

    def to_markdown(self) -> str:
        head = f"- {self.context}：{self.message}" if self.context else f"- {self.message}"
        if self.original is None and self.corrected is None:
            return head
        return f"{head}（原值 {_quote(self.original)} → 修正为 {_quote(self.corrected)}）"


def _quote(value: str | None) -> str:
    # JSON quoting keeps tabs and newlines visible in review comments
    return f"`{json.dumps(value if value is not None else '', ensure_ascii=False)}`"


@dataclass
class TextResult:
    text: str
    changed: bool
    changes: list[Change] = field(default_factory=list)


@dataclass
class LineResult:
    line: Line
    changed: bool
    changes: list[Change] = field(default_factory=list)


@dataclass
class DocumentResult:
    document: Document
    changed: bool
    changes: list[Change] = field(default_factory=list)


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to one space and trim both ends."""
    return _WS_RUN_RE.sub(" ", text).strip()


def normalize_scalar_text(text: str, context: str = "") -> TextResult:
    """Normalize a free-text value such as a translation or a metadata value."""
    normalized = collapse_whitespace(text)
    if normalized == text:
        return TextResult(text=normalized, changed=False)
    change = Change(context, "规范化了文本中的空白字符", text, normalized)
    return TextResult(text=normalized, changed=True, changes=[change])


def _syllable_signature(syllables: list[Syllable]) -> list[tuple]:
    return [(s.text, s.start, s.end, s.empty_beat_count) for s in syllables]


def normalize_line(line: Line, context: str = "") -> LineResult:
    """
    Rebuild a line's syllables so that words are separated by exactly one
    synthesized space syllable and no syllable carries edge whitespace.
    Whitespace-only syllables are folded into the pending separator; leading
    and trailing whitespace of the whole line is removed.
    """
    changes: list[Change] = []
    out: list[Syllable] = []
    pending = 0

    def log(message: str, original: str | None = None, corrected: str | None = None) -> None:
        changes.append(Change(context, message, original, corrected))

    for idx, syl in enumerate(line.syllables, 1):
        if not isinstance(syl.text, str):
            log(f"跳过了第 {idx} 个无效音节（文本不是字符串）")
            continue

        lead, core, trail = _SPLIT_RE.match(syl.text).groups()

        if not core:
            if not (syl.text == SPACE and syl.start == 0 and syl.end == 0):
                log(f"发现第 {idx} 个音节仅包含空白，已移除", syl.text, "")
            pending += 1
            continue

        if lead or trail:
            log(f"将第 {idx} 个音节首尾的空白提取为独立的空格", syl.text, core)

        spaces = pending + (1 if lead else 0)
        if spaces:
            if not out:
                log(f"移除了行首的 {spaces} 处空白")
            else:
                out.append(space_syllable())
                if spaces > 1:
                    log(f"合并了 {spaces} 处不规则的词间空格", SPACE * spaces, SPACE)

        collapsed = _WS_RUN_RE.sub(" ", core)
        if collapsed != core:
            log(f"合并了第 {idx} 个音节内部的连续空白", core, collapsed)
        out.append(replace(syl, text=collapsed))
        pending = 1 if trail else 0

    if pending:
        log(f"移除了行尾的 {pending} 处空白")

    new_line = replace(line, syllables=out)
    changed = bool(changes) or _syllable_signature(out) != _syllable_signature(line.syllables)
    if changed:
        logger.debug(f"Normalized whitespace {context or 'line'}: {len(changes)} change(s)")
    return LineResult(line=new_line, changed=changed, changes=changes)


def normalize_document(doc: Document) -> DocumentResult:
    """Apply line and scalar normalization across a whole document."""
    changes: list[Change] = []
    lines: list[Line] = []
    changed = False

    for i, line in enumerate(doc.lines, 1):
        kind = "背景行" if line.is_background else "行"
        context = f"第 {i} {kind}"
        result = normalize_line(line, context)
        new_line = result.line
        changed = changed or result.changed
        changes.extend(result.changes)

        for attr, label in (("translated_text", "翻译"), ("romanized_text", "音译")):
            value = getattr(new_line, attr)
            if value is None:
                continue
            text_result = normalize_scalar_text(value, f"{context}{label}")
            if text_result.changed:
                changed = True
                changes.extend(text_result.changes)
                new_line = replace(new_line, **{attr: text_result.text or None})
        lines.append(new_line)

    metadata: list[MetadataEntry] = []
    for entry in doc.metadata:
        values: list[str] = []
        for value in entry.values:
            text_result = normalize_scalar_text(value, f"元数据 {entry.key}")
            if text_result.changed:
                changed = True
                changes.extend(text_result.changes)
            if text_result.text:
                values.append(text_result.text)
        if values:
            metadata.append(MetadataEntry(key=entry.key, values=values))

    if changed:
        logger.info(f"Whitespace normalization applied {len(changes)} change(s)")
    new_doc = replace(doc, lines=lines, metadata=metadata, warnings=list(doc.warnings))
    return DocumentResult(document=new_doc, changed=changed, changes=changes)


def render_change_log(changes: list[Change]) -> list[str]:
    """Render changes as markdown bullets, dropping exact duplicates."""
    seen: set[str] = set()
    out: list[str] = []
    for change in changes:
        bullet = change.to_markdown()
        if bullet in seen:
            continue
        seen.add(bullet)
        out.append(bullet)
    return out

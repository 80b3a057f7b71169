"""
Advisory checks over a parsed lyric document.

Nothing here raises or mutates the document; every problem becomes one
human-readable defect string.
"""

import logging
import re

from .metadata import (
    ALBUM,
    APPLE_ID,
    ARTISTS,
    NCM_ID,
    PLATFORM_ID_KEYS,
    QQ_ID,
    SPOTIFY_ID,
    TITLE,
    collect_values,
)
from .models import Document, Line

logger = logging.getLogger("ttmldb")

_DIGITS_RE = re.compile(r"^[0-9]+$")
_ALNUM_RE = re.compile(r"^[0-9A-Za-z]+$")

_ID_PATTERNS = {
    NCM_ID: (_DIGITS_RE, "只能包含数字"),
    APPLE_ID: (_DIGITS_RE, "只能包含数字"),
    QQ_ID: (_ALNUM_RE, "只能包含英文字母和数字"),
    SPOTIFY_ID: (_ALNUM_RE, "只能包含英文字母和数字"),
}


def _line_text(line: Line) -> str:
    return line.text.strip()


def _check_line(index: int, line: Line, line_timed: bool) -> list[str]:
    defects: list[str] = []
    if not _line_text(line):
        return [f"第 {index} 行歌词内容为空"]

    for j, syl in enumerate(line.syllables, 1):
        if syl.is_blank:
            continue
        if syl.start < 0:
            defects.append(f'第 {index} 行歌词的第 {j} 个单词 "{syl.text}" 开始时间有误 ({syl.start})')
        if syl.end < syl.start:
            defects.append(
                f'第 {index} 行歌词的第 {j} 个单词 "{syl.text}" 结束时间有误/小于开始时间 ({syl.end})'
            )

    start = line.start if line.start is not None else 0
    end = line.end if line.end is not None else 0
    if defects and (line.start, line.end) == line.syllable_bounds():
        # line bounds come straight from the syllables already reported
        return defects
    if start < 0:
        defects.append(f"第 {index} 行歌词 开始时间有误 ({start})")
    if end < start or (line_timed and end == start):
        defects.append(f"第 {index} 行歌词 结束时间有误/小于开始时间 ({end})")
    return defects


def _all_zero(doc: Document) -> bool:
    for line in doc.lines:
        if line.start or line.end:
            return False
        if any(s.start or s.end for s in line.syllables):
            return False
    return True


def validate_document(doc: Document) -> list[str]:
    """Return timing and content defects for every line of the document."""
    if not doc.lines:
        return ["歌词内容为空"]

    defects: list[str] = []
    for i, line in enumerate(doc.lines, 1):
        defects.extend(_check_line(i, line, doc.is_line_timed))

    if _all_zero(doc):
        defects.append("所有歌词的时间戳均为 0。")

    logger.debug(f"Validated {len(doc.lines)} line(s): {len(defects)} defect(s)")
    return defects


def validate_metadata(doc: Document) -> list[str]:
    """Return defects for missing required metadata and malformed platform ids."""
    defects: list[str] = []
    if not collect_values(doc, TITLE):
        defects.append("歌词文件中未包含歌曲名称信息 (缺失 musicName 元数据)。")
    if not collect_values(doc, ARTISTS):
        defects.append("歌词文件中未包含音乐作者信息 (缺失 artists 元数据)。")
    if not collect_values(doc, ALBUM):
        defects.append(
            "歌词文件中未包含专辑信息 (缺失 album 元数据)。(注：如果是单曲专辑请和歌曲名称同名)"
        )

    has_platform_id = False
    for key in PLATFORM_ID_KEYS:
        pattern, rule = _ID_PATTERNS[key]
        for value in collect_values(doc, key):
            has_platform_id = True
            if not pattern.match(value):
                defects.append(f"{key} 元数据 {value!r} 中包含非法字符，{rule}。")
    if not has_platform_id:
        defects.append("歌词文件中未包含任何音乐平台 ID。")

    logger.debug(f"Validated metadata: {len(defects)} defect(s)")
    return defects

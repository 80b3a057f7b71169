"""
Parse -> Normalize -> Validate -> Serialize for one lyric submission.
"""

import logging
from dataclasses import dataclass, field

from .models import TimingMode
from .metadata import summarize_metadata
from .ttml_reader import parse_ttml
from .ttml_writer import serialize_document
from .validator import validate_document, validate_metadata
from .whitespace import normalize_document, render_change_log

logger = logging.getLogger("ttmldb")


@dataclass
class SubmissionResult:
    """Everything produced for one submission."""

    canonical_ttml: str
    pretty_ttml: str | None = None
    metadata_summary: dict = field(default_factory=dict)
    defects: list[str] = field(default_factory=list)
    change_log: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.defects

    def to_dict(self) -> dict:
        return {
            "metadata": self.metadata_summary,
            "defects": self.defects,
            "changeLog": self.change_log,
            "warnings": self.warnings,
        }


def process_submission(
    raw_text: str | bytes,
    timing_mode: TimingMode = TimingMode.AUTO,
    pretty: bool = False,
) -> SubmissionResult:
    """
    Run one raw TTML submission through the whole pipeline.

    Fatal input problems propagate as TTMLError; everything else is reported
    in the returned result.
    """
    document = parse_ttml(raw_text, timing_mode=timing_mode)
    normalized = normalize_document(document)
    document = normalized.document

    defects = validate_document(document) + validate_metadata(document)
    for defect in defects:
        logger.debug(f"Defect: {defect}")

    canonical = serialize_document(document)
    result = SubmissionResult(
        canonical_ttml=canonical,
        pretty_ttml=serialize_document(document, pretty=True) if pretty else None,
        metadata_summary=summarize_metadata(document),
        defects=defects,
        change_log=render_change_log(normalized.changes),
        warnings=list(document.warnings),
    )
    logger.info(
        f"Processed submission: {len(document.lines)} line(s), "
        f"{len(result.defects)} defect(s), {len(result.change_log)} correction(s)"
    )
    return result

"""
Command-line interface for the TTML lyric ingestion pipeline.
"""

import argparse
import json
import logging
import os
import pathlib
import sys

from dotenv import load_dotenv
from tqdm import tqdm

from .errors import TTMLError
from .models import TimingMode
from .pipeline import SubmissionResult, process_submission

logger = logging.getLogger("ttmldb")


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    ap = argparse.ArgumentParser(description="Check and canonicalize TTML lyric submissions")

    # IO
    ap.add_argument("--input", action="append", required=True, help="TTML file (repeatable)")
    ap.add_argument(
        "--output",
        help="Canonical TTML output file (a directory when several inputs are given); stdout if omitted",
    )
    ap.add_argument(
        "--json-output",
        help="Metadata summary / defects JSON file (a directory when several inputs are given)",
    )

    # Processing options
    ap.add_argument(
        "--timing-mode",
        choices=[m.value for m in TimingMode],
        default=os.getenv("TTMLDB_TIMING_MODE", TimingMode.AUTO.value).strip().lower(),
        help="Timing granularity: auto-detect, word-timed or line-timed",
    )
    ap.add_argument(
        "--pretty",
        action="store_true",
        default=_env_flag("TTMLDB_PRETTY"),
        help="Also write a pretty-printed TTML copy for human review",
    )
    ap.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = ap.parse_args(argv)
    if args.timing_mode not in [m.value for m in TimingMode]:
        ap.error(f"invalid TTMLDB_TIMING_MODE: {args.timing_mode!r}")
    if len(args.input) > 1 and args.output is None:
        ap.error("--output must name a directory when several inputs are given")
    return args


def _write_text(path: pathlib.Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _pretty_path(path: pathlib.Path) -> pathlib.Path:
    return path.with_name(f"{path.stem}.pretty{path.suffix or '.ttml'}")


def _emit(src: pathlib.Path, result: SubmissionResult, args: argparse.Namespace, many: bool) -> None:
    """Write the outputs for one processed input."""
    if args.output is None:
        sys.stdout.write(result.canonical_ttml + "\n")
        if result.pretty_ttml is not None:
            sys.stdout.write(result.pretty_ttml)
    else:
        out = pathlib.Path(args.output)
        if many:
            out = out / f"{src.stem}.ttml"
        _write_text(out, result.canonical_ttml)
        if result.pretty_ttml is not None:
            _write_text(_pretty_path(out), result.pretty_ttml)
        logger.info(f"Wrote {out}")

    if args.json_output is not None:
        json_path = pathlib.Path(args.json_output)
        if many:
            json_path = json_path / f"{src.stem}.json"
        _write_text(json_path, json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        logger.info(f"Wrote {json_path}")


def _report(src: pathlib.Path, result: SubmissionResult) -> None:
    for warning in result.warnings:
        logger.warning(f"{src.name}: {warning}")
    if result.change_log:
        logger.info(f"{src.name}: 自动修正了 {len(result.change_log)} 处空白问题")
        for bullet in result.change_log:
            logger.info(bullet)
    for defect in result.defects:
        sys.stderr.write(f"{src.name}: {defect}\n")


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    # Look for .env in the project root (parent of src directory)
    project_root = pathlib.Path(__file__).parent.parent.parent
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()

    args = parse_args(argv)
    setup_logging(args.verbose)

    inputs = [pathlib.Path(p) for p in args.input]
    many = len(inputs) > 1
    timing_mode = TimingMode(args.timing_mode)
    failed = 0

    for src in tqdm(inputs, desc="Checking lyrics", disable=not many):
        try:
            raw = src.read_bytes()
            result = process_submission(raw, timing_mode=timing_mode, pretty=args.pretty)
        except TTMLError as e:
            logger.error(f"{src.name}: {e}")
            sys.stderr.write(f"{src.name}: {e}\n")
            failed += 1
            continue

        _emit(src, result, args, many)
        _report(src, result)
        if not result.is_valid:
            failed += 1

    if failed:
        logger.error(f"{failed} of {len(inputs)} file(s) failed the lyric check")
        sys.exit(1)
    logger.info(f"Done ({len(inputs)} file(s) checked)")


if __name__ == "__main__":
    main()

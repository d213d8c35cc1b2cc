"""Command-line entry point.

Usage:
    loresuggest detect session.txt
    loresuggest detect blocks.json --records notes.json --min-confidence medium

A .json input is read as a list of {"id", "content"} blocks; anything else
is plain text ("-" reads stdin). Output is JSON on stdout with camelCase keys,
matching the worker message format.
"""

import argparse
import json
import sys
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from loresuggest.config import load_config
from loresuggest.errors import MalformedInputError
from loresuggest.logging import setup_logging
from loresuggest.models import Confidence, RecordSummary
from loresuggest.pipeline.analysis import block_content_map
from loresuggest.pipeline.detector import PatternDetector, filter_by_confidence
from loresuggest.pipeline.matcher import match_candidates
from loresuggest.pipeline.proximity import suggest_proximity

_RECORDS = TypeAdapter(list[RecordSummary])


def _read_content(path: str) -> str | list:
    raw = sys.stdin.read() if path == "-" else Path(path).read_text(encoding="utf-8")
    if path.endswith(".json"):
        return json.loads(raw)
    return raw


def _detect(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    setup_logging(args.log_level or config.log_level, name="loresuggest")

    try:
        content = _read_content(args.input)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: cannot read {args.input}: {e}", file=sys.stderr)
        return 1

    try:
        candidates = PatternDetector(config.detection).detect(content)
    except MalformedInputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    min_confidence = Confidence(args.min_confidence) if args.min_confidence else config.worker.min_confidence
    candidates = filter_by_confidence(candidates, min_confidence)

    output: dict = {
        "entities": [c.model_dump(mode="json", by_alias=True) for c in candidates],
        "proximity": [
            s.model_dump(mode="json", by_alias=True)
            for s in suggest_proximity(candidates, block_content_map(content), config.proximity)
        ],
    }
    if args.records is not None:
        try:
            records = _RECORDS.validate_json(args.records.read_bytes())
        except (OSError, ValidationError) as e:
            print(f"Error: cannot read records from {args.records}: {e}", file=sys.stderr)
            return 1
        output["matches"] = match_candidates(candidates, records, config.matcher)

    json.dump(output, sys.stdout, indent=2 if args.pretty else None, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="loresuggest", description="Suggest entities from session logs.")
    parser.add_argument("--config", type=Path, default=None, help="TOML config file")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    detect = subparsers.add_parser("detect", help="Detect candidate entities in a text or JSON blocks file")
    detect.add_argument("input", help="Text file, JSON blocks file, or - for stdin")
    detect.add_argument("--records", type=Path, default=None, help="JSON list of {id, title, record_type}")
    detect.add_argument(
        "--min-confidence",
        choices=[c.value for c in Confidence],
        default=None,
        help="Drop candidates below this tier",
    )
    detect.add_argument("--pretty", action="store_true", help="Indent JSON output")
    detect.set_defaults(handler=_detect)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())

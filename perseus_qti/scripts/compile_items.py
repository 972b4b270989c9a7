"""Compile Perseus source items (or merged items) into QTI 3.0 XML.

The input JSON is one of:
- a list of source items, or an object with an ``items`` list;
- a single source item (has ``content``);
- a single merged ``AssessmentItem`` (has ``body``), compiled directly.

Usage:
    # Compile a batch, writing <identifier>.xml and result JSON per item
    python -m perseus_qti.scripts.compile_items items.json --out output/

    # Compile one merged item to stdout
    python -m perseus_qti.scripts.compile_items item.json -v
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from perseus_qti.errors import CompilationError
from perseus_qti.qti_compiler import CompilationStatus, compile_item, compile_source_items
from perseus_qti.utils.logging_config import setup_logging
from perseus_qti.utils.xml_utils import sanitize_identifier

_logger = logging.getLogger(__name__)


def main() -> None:
    """CLI entry point."""
    args = _parse_args()
    setup_logging(verbose=args.verbose)

    try:
        data = json.loads(args.input.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        _logger.error("Cannot read %s: %s", args.input, e)
        sys.exit(2)

    if isinstance(data, dict) and "body" in data:
        sys.exit(_compile_merged(data, args.out))

    items = _source_items(data)
    results = compile_source_items(items, output_dir=args.out)
    for result in results:
        if result.status == CompilationStatus.COMPILED and args.out is None:
            print(result.xml, end="")
        elif result.status != CompilationStatus.COMPILED:
            where = f" at {result.error_location}" if result.error_location else ""
            print(f"{result.source_id}: {result.status.value} ({result.stage_failed}{where}): {result.error}")

    failed = sum(1 for r in results if r.status == CompilationStatus.FAILED)
    sys.exit(1 if failed else 0)


def _source_items(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, dict) and isinstance(data.get("items"), list):
        return data["items"]
    if isinstance(data, list):
        return data
    return [data]


def _compile_merged(data: dict[str, Any], out: Path | None) -> int:
    try:
        xml = compile_item(data)
    except CompilationError as e:
        _logger.error("Compilation failed: %s", e)
        return 1
    if out is None:
        print(xml, end="")
        return 0
    out.mkdir(parents=True, exist_ok=True)
    try:
        name = sanitize_identifier(str(data.get("identifier", "")))
    except ValueError:
        name = "item"
    path = out / f"{name}.xml"
    path.write_text(xml, encoding="utf-8")
    _logger.info("Wrote %s", path)
    return 0


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Compile Perseus items into QTI 3.0 XML",
    )
    parser.add_argument("input", type=Path, help="Input JSON file")
    parser.add_argument(
        "--out", type=Path, default=None,
        help="Output directory (default: print XML to stdout)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args()


if __name__ == "__main__":
    main()

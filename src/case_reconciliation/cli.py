"""Command-line entry point for searching both stores from a terminal."""
from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from .config import Settings
from .engine import CaseSearchEngine, SearchOptions
from .errors import CaseReconciliationError
from .logging_utils import configure_logging
from .reconcile import PERIODS, is_active, is_completed, is_in_service
from .records import SearchResult

logger = logging.getLogger(__name__)

PREDICATES = {
    "completed": is_completed,
    "in-service": is_in_service,
    "active": is_active,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Search and reconcile cases across both record stores")
    parser.add_argument("query", nargs="?", help="Free-text query (plate, name, phone, make, model, status)")
    parser.add_argument("--plate", help="Fuzzy plate lookup instead of free-text search")
    parser.add_argument("--ocr", help="Raw OCR text to extract a plate from and look up")
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print statistics over the reconciled view instead of searching",
    )
    parser.add_argument(
        "--filter",
        choices=sorted(PREDICATES),
        help="Restrict --stats to one status category",
    )
    parser.add_argument(
        "--period",
        choices=PERIODS,
        default="month",
        help="Reporting window for the --stats period comparison",
    )
    parser.add_argument(
        "--documents",
        type=Path,
        help="JSON file holding a list of secondary-store documents",
    )
    parser.add_argument("--limit", type=int, default=20, help="Maximum number of results to print")
    return parser


def json_file_loader(path: Path) -> Callable[[], List[Any]]:
    """Loader reading secondary documents from a JSON export."""

    def _load() -> List[Any]:
        with path.open(encoding="utf-8") as fh:
            payload = json.load(fh)
        if not isinstance(payload, list):
            raise ValueError(f"{path} does not contain a list of documents")
        return payload

    return _load


def _result_row(result: SearchResult) -> dict:
    row = result.record.as_dict()
    row["matched_fields"] = sorted(result.matched_fields)
    row["relevance_score"] = result.relevance_score
    row["contributions"] = dict(result.contributions)
    if result.similarity is not None:
        row["similarity"] = result.similarity
    return row


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    loader = json_file_loader(args.documents) if args.documents else None
    engine = CaseSearchEngine.from_settings(settings, secondary_loader=loader)

    try:
        if args.stats:
            stats = engine.statistics(PREDICATES.get(args.filter), period=args.period)
            print(json.dumps(asdict(stats), ensure_ascii=False, indent=2))
            return 0
        if args.ocr:
            results = engine.search_by_ocr_text(args.ocr, limit=args.limit)
        elif args.plate:
            results = engine.search_by_plate(args.plate, limit=args.limit)
        elif args.query:
            results = engine.search(args.query, SearchOptions(limit=args.limit))
        else:
            build_parser().print_usage()
            return 2
    except CaseReconciliationError as exc:
        logger.error("Search failed: %s", exc)
        return 1

    for result in results:
        print(json.dumps(_result_row(result), ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations
import argparse
import json
import logging
import sys
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from eventfeed.config import Settings, load_settings
from eventfeed.core.audit import BatchRunner, audit_dates, needs_enrichment
from eventfeed.core.models import Event, RawEvent
from eventfeed.core.parse_log import ParseLog, RawDataLog
from eventfeed.core.pipeline import ingest
from eventfeed.core.quality import QualityGate, prune_events
from eventfeed.core.store import load_events, save_events
from eventfeed.utils.fetch import build_fetcher
from eventfeed.utils.http import HttpClient

logger = logging.getLogger("eventfeed")

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def _read_raw(path: str) -> List[RawEvent]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("events", [])
    return [RawEvent.model_validate(item) for item in data]


def cmd_ingest(args: argparse.Namespace, settings: Settings, events: List[Event]) -> Dict[str, object]:
    log = ParseLog()
    raw_log = RawDataLog()
    gate = QualityGate(settings)
    raws = _read_raw(args.input)
    client = None if args.no_link_check else HttpClient(timeout=settings.http_timeout)
    try:
        merged, report = ingest(
            raws, events, gate, log=log, raw_log=raw_log, link_check=client.is_alive if client else None
        )
    finally:
        if client is not None:
            client.close()
    events[:] = merged
    result = report.as_dict()
    result["parseErrors"] = log.stats()
    result["rawCaptured"] = len(raw_log)
    return result


def cmd_enrich(args: argparse.Namespace, settings: Settings, events: List[Event]) -> Dict[str, object]:
    if args.batch_size:
        settings = settings.model_copy(update={"batch_size": args.batch_size})
    gate = QualityGate(settings)
    runner = BatchRunner(build_fetcher(settings), gate, settings)

    def predicate(event: Event) -> bool:
        if args.source and event.source.lower() != args.source.lower():
            return False
        return needs_enrichment(event)

    return runner.enrich_all(events, predicate=predicate, start=args.start, limit=args.limit).as_dict()


def cmd_audit_dates(args: argparse.Namespace, settings: Settings, events: List[Event]) -> Dict[str, object]:
    log = ParseLog()
    result = audit_dates(events, log=log).as_dict()
    result["parseErrors"] = log.stats()
    return result


def cmd_prune(args: argparse.Namespace, settings: Settings, events: List[Event]) -> Dict[str, object]:
    before = len(events)
    events[:] = prune_events(events, QualityGate(settings), keep=args.keep)
    return {"total": before, "kept": len(events), "dropped": before - len(events)}


COMMANDS: Dict[str, Callable[[argparse.Namespace, Settings, List[Event]], Dict[str, object]]] = {
    "ingest": cmd_ingest,
    "enrich": cmd_enrich,
    "audit-dates": cmd_audit_dates,
    "prune": cmd_prune,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Toronto event feed normalizer")
    parser.add_argument("--env-file", type=str, default=None, help="path to a .env file")
    parser.add_argument("--events-file", type=str, default=None, help="collection file (overrides EVENTS_FILE)")
    parser.add_argument("--dry-run", action="store_true", help="do not write the collection back")
    sub = parser.add_subparsers(dest="command", required=True)

    p_ingest = sub.add_parser("ingest", help="normalize raw scraper records into the collection")
    p_ingest.add_argument("--input", type=str, required=True, help="JSON file of raw records")
    p_ingest.add_argument(
        "--no-link-check", action="store_true", help="do not check pages of stored events missing from the input"
    )

    p_enrich = sub.add_parser("enrich", help="fetch detail pages and merge what they add")
    p_enrich.add_argument("--batch-size", type=int, default=None)
    p_enrich.add_argument("--start", type=int, default=0)
    p_enrich.add_argument("--limit", type=int, default=None)
    p_enrich.add_argument("--source", type=str, default=None, help="only events from this source")

    sub.add_parser("audit-dates", help="re-normalize stored dates")

    p_prune = sub.add_parser("prune", help="drop rejected and duplicate events")
    p_prune.add_argument("--keep", choices=("first", "last"), default="first")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.env_file, events_file=args.events_file)
    except ValidationError as exc:
        configure_logging()
        logger.error("invalid configuration: %s", exc)
        return 2
    configure_logging(settings.log_level)

    try:
        events = load_events(settings.events_file)
        result = COMMANDS[args.command](args, settings, events)
    except (OSError, ValueError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1

    if not args.dry_run:
        save_events(settings.events_file, events)
        logger.info("wrote %d events to %s", len(events), settings.events_file)
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import argparse
import sys
import os
import time
import logging
from typing import Dict, List

import httpx
from rich.console import Console
from rich.table import Table

from event_tracker.config import DEFAULT_CONFIG_PATH, Settings, load_settings
from event_tracker.core.models import Event, EventStatus
from event_tracker.core.normalize import COLUMN_ALIASES, parse_date
from event_tracker.core.output import events_from_csv, write_csv, write_json
from event_tracker.core.sheets import SheetsClient, SheetsError
from event_tracker.store import EventStore, RefreshScheduler

console = Console()

def parse_args(argv: List[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Track college events: import, score and export")
    p.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to event_tracker.yml")
    p.add_argument("--store", default="", help="Event store JSON path (overrides config)")
    p.add_argument("--log", default="", help="Log output path (overrides config)")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import events from a CSV file")
    imp.add_argument("csv", help="CSV file to import")
    imp.add_argument("--map", action="append", default=[], metavar="HEADER=FIELD",
                     help="Explicit column mapping; disables auto-detection")

    exp = sub.add_parser("export", help="Export events to CSV")
    exp.add_argument("--out", default="out/events.csv", help="CSV output path")
    exp.add_argument("--json", default="", help="Optional JSON output path")

    ls = sub.add_parser("list", help="Show events, highest priority first")
    ls.add_argument("--limit", type=int, default=20)
    ls.add_argument("--status", default="")
    ls.add_argument("--type", dest="event_type", default="")
    ls.add_argument("--search", default="")
    ls.add_argument("--sort", default="", choices=["", "priority_score", "deadline", "start_date", "prize_amount"])

    sub.add_parser("refresh", help="Recompute status and priority of all events")

    add = sub.add_parser("add", help="Add a single event")
    add.add_argument("--name", required=True)
    add.add_argument("--college", required=True)
    add.add_argument("--type", dest="event_type", default="Other")
    add.add_argument("--deadline", required=True)
    add.add_argument("--start", required=True)
    add.add_argument("--end", default="")
    add.add_argument("--prize", type=float, default=0.0)
    add.add_argument("--fee", type=float, default=0.0)
    add.add_argument("--online", action="store_true")
    add.add_argument("--accommodation", action="store_true")
    add.add_argument("--location", default="")
    add.add_argument("--website", default="")

    st = sub.add_parser("set-status", help="Set an event's status by hand (e.g. Won, Blocked)")
    st.add_argument("id", type=int)
    st.add_argument("status", choices=[s.value for s in EventStatus])

    w = sub.add_parser("watch", help="Keep refreshing statuses on the configured interval")
    w.add_argument("--interval-hours", type=float, default=0.0)

    sh = sub.add_parser("sheets", help="Google Apps Script sheet bridge")
    sh.add_argument("action", choices=["ping", "pull", "push"])
    sh.add_argument("--url", default="", help="Apps Script /exec URL (overrides config)")
    sh.add_argument("--overwrite", action="store_true", help="On pull, delete local events missing from the sheet")

    return p.parse_args(argv)

def setup_logging(log_path: str) -> logging.Logger:
    os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
    logger = logging.getLogger("event_tracker")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(message)s")

    # stdout
    sh = logging.StreamHandler(sys.stdout)
    sh.setFormatter(fmt)
    logger.addHandler(sh)

    # file
    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    return logger

def render_preview(records: List[Event], limit: int = 20) -> None:
    t = Table(title=f"Events (first {min(limit, len(records))} of {len(records)})")
    t.add_column("id", justify="right")
    t.add_column("event")
    t.add_column("college")
    t.add_column("type")
    t.add_column("deadline")
    t.add_column("status")
    t.add_column("score", justify="right")
    for r in records[:limit]:
        deadline = r.registration_deadline.date().isoformat() if r.registration_deadline else ""
        t.add_row(str(r.id), r.event_name, r.college_name, r.event_type, deadline, r.status, str(r.priority_score))
    console.print(t)

def _parse_mapping(pairs: List[str]) -> Dict[str, str]:
    mapping = {}
    for pair in pairs:
        header, sep, field_name = pair.partition("=")
        if not sep or field_name.strip() not in COLUMN_ALIASES:
            raise ValueError(f"Bad --map {pair!r}; expected HEADER=FIELD with FIELD one of {sorted(COLUMN_ALIASES)}")
        mapping[header] = field_name.strip()
    return mapping

def cmd_import(args: argparse.Namespace, store: EventStore, log: logging.Logger) -> int:
    mapping, records = events_from_csv(args.csv, mapping=_parse_mapping(args.map) or None)
    log.info("Column mapping: %s", mapping)
    result = store.import_events(records)
    store.save()
    console.print(f"[green]Imported[/green] {result.added} new, {result.updated} updated, {result.skipped} skipped")
    return 0

def cmd_export(args: argparse.Namespace, store: EventStore, log: logging.Logger) -> int:
    records = store.all()
    write_csv(args.out, records)
    log.info("Wrote CSV: %s", args.out)
    if args.json:
        write_json(args.json, records)
        log.info("Wrote JSON: %s", args.json)
    return 0

def cmd_list(args: argparse.Namespace, store: EventStore, settings: Settings) -> int:
    state = settings.state
    if args.status:
        state.filters.status = args.status
    if args.event_type:
        state.filters.event_type = args.event_type
    if args.search:
        state.filters.search = args.search
    if args.sort:
        state.sort_by = args.sort
    render_preview(state.apply(store.all()), limit=args.limit)
    return 0

def cmd_add(args: argparse.Namespace, store: EventStore) -> int:
    start = parse_date(args.start)
    data = {
        "event_name": args.name,
        "college_name": args.college,
        "event_type": args.event_type,
        "registration_deadline": parse_date(args.deadline),
        "start_date": start,
        "end_date": parse_date(args.end) if args.end else start,
        "prize_amount": args.prize,
        "registration_fee": args.fee,
        "is_online": args.online,
        "accommodation": args.accommodation,
        "location": args.location,
        "website": args.website,
    }
    e = store.add_event(data)
    store.save()
    console.print(f"[green]Added[/green] #{e.id} {e.event_name}: {e.status}, priority {e.priority_score}")
    return 0

def cmd_watch(args: argparse.Namespace, store: EventStore, settings: Settings, log: logging.Logger) -> int:
    interval_s = args.interval_hours * 3600 if args.interval_hours > 0 else settings.refresh_interval_s
    store.subscribe(lambda events: store.save())
    scheduler = RefreshScheduler(store, interval_s=interval_s)
    log.info("Refreshing statuses every %.1f hours; Ctrl-C to stop", interval_s / 3600)
    scheduler.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop(timeout=5)
    return 0

def cmd_sheets(args: argparse.Namespace, store: EventStore, settings: Settings, log: logging.Logger) -> int:
    url = args.url or settings.sheets_url
    if not url:
        console.print("[red]No Apps Script URL configured[/red] (set sheets_url or pass --url)")
        return 2
    with SheetsClient(url, log=log) as client:
        if args.action == "ping":
            payload = client.ping()
            console.print(f"[green]Connected![/green] Server v{payload.get('version') or '1.0'}")
        elif args.action == "pull":
            events = client.pull()
            result = store.bulk_import(events, overwrite=args.overwrite)
            store.save()
            console.print(f"[green]Pulled[/green] {result.added} new, {result.updated} updated, {result.deleted} deleted")
        else:
            count = client.push(store.all())
            console.print(f"[green]Pushed[/green] {count} events")
    return 0

def main(argv: List[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as e:
        console.print(f"[red]Bad config:[/red] {e}")
        return 2

    log = setup_logging(args.log or settings.log_path)
    store = EventStore(args.store or settings.store_path, log=log)
    store.load()

    try:
        if args.command == "import":
            return cmd_import(args, store, log)
        if args.command == "export":
            return cmd_export(args, store, log)
        if args.command == "list":
            return cmd_list(args, store, settings)
        if args.command == "refresh":
            changed = store.refresh_statuses()
            store.save()
            console.print(f"{changed} events changed")
            return 0
        if args.command == "add":
            return cmd_add(args, store)
        if args.command == "set-status":
            e = store.update_event(args.id, {"status": args.status})
            store.save()
            console.print(f"#{e.id} {e.event_name} -> {e.status}")
            return 0
        if args.command == "watch":
            return cmd_watch(args, store, settings, log)
        if args.command == "sheets":
            return cmd_sheets(args, store, settings, log)
    except KeyError as e:
        console.print(f"[red]No such event:[/red] {e}")
        return 2
    except (OSError, ValueError, SheetsError, httpx.HTTPError) as e:
        log.error("%s failed: %s", args.command, e)
        console.print(f"[red]{args.command} failed:[/red] {e}")
        return 2
    return 2

if __name__ == "__main__":
    raise SystemExit(main())

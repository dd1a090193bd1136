from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from event_tracker.core.models import Event, dedup_key, plain, snake_key
from event_tracker.core.output import write_json
from event_tracker.core.rules import compute_score, initial_status, is_terminal, refresh_event

# Touching any of these re-scores the event (and re-derives a non-terminal status)
RECALC_FIELDS = {
    "registration_deadline",
    "start_date",
    "end_date",
    "prize_amount",
    "registration_fee",
    "is_online",
    "accommodation",
    "event_type",
}

MIN_NAME_LENGTH = 2

Listener = Callable[[List[Event]], None]

@dataclass
class ImportResult:
    added: int = 0
    updated: int = 0
    skipped: int = 0
    deleted: int = 0

def _supplied(data: Mapping[str, Any], name: str) -> Any:
    for k, v in data.items():
        if (k == name or snake_key(k) == name) and v not in (None, ""):
            return v
    return None

class EventStore:
    """
    In-memory event table with integer ids and optional JSON file persistence.

    Every create/update runs the rules engine; listeners registered with
    subscribe() get the full event list after each mutation.
    """

    def __init__(self, path: Optional[str] = None, log: Optional[logging.Logger] = None) -> None:
        self.path = path
        self.log = log or logging.getLogger("event_tracker")
        self._events: Dict[int, Event] = {}
        self._next_id = 1
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()

    # ---- persistence -------------------------------------------------

    def load(self) -> int:
        if not self.path or not os.path.exists(self.path):
            return 0
        with open(self.path, "r", encoding="utf-8") as f:
            rows = json.load(f)
        with self._lock:
            self._events.clear()
            for row in rows:
                e = Event.from_dict(row)
                if e.id is None:
                    e.id = self._next_id
                self._events[e.id] = e
                self._next_id = max(self._next_id, e.id + 1)
        self.log.info("Loaded %s events from %s", len(self._events), self.path)
        return len(self._events)

    def save(self) -> None:
        if not self.path:
            return
        write_json(self.path, self.all())

    # ---- observers ---------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.all()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                self.log.exception("Event store listener failed")

    # ---- reads -------------------------------------------------------

    def get(self, event_id: int) -> Optional[Event]:
        return self._events.get(event_id)

    def all(self) -> List[Event]:
        with self._lock:
            return sorted(self._events.values(), key=lambda e: e.id or 0)

    def __len__(self) -> int:
        return len(self._events)

    # ---- writes ------------------------------------------------------

    def _insert(self, data: Mapping[str, Any], now: datetime) -> Event:
        e = Event.from_dict({k: v for k, v in data.items() if k != "id"})
        e.status = initial_status(e, now, _supplied(data, "status"))
        e.priority_score = compute_score(e, now)
        e.id = self._next_id
        self._next_id += 1
        self._events[e.id] = e
        return e

    def _apply_update(self, e: Event, updates: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
        explicit_status = _supplied(updates, "status")
        changes = {k: v for k, v in updates.items() if snake_key(k) != "status"}
        changed = e.update(changes)
        if explicit_status:
            e.status = str(plain(explicit_status))

        if RECALC_FIELDS.intersection(changed):
            if not explicit_status and not is_terminal(e.status):
                e.status = initial_status(e, now)
            e.priority_score = compute_score(e, now)
        e.updated_at = now
        return changed

    def add_event(self, data: Mapping[str, Any], now: Optional[datetime] = None) -> Event:
        now = now or datetime.now()
        with self._lock:
            e = self._insert(data, now)
        self.log.debug("Added event %s (%s)", e.id, e.event_name)
        self._notify()
        return e

    def update_event(self, event_id: int, updates: Mapping[str, Any], now: Optional[datetime] = None) -> Event:
        now = now or datetime.now()
        with self._lock:
            e = self._events.get(event_id)
            if e is None:
                raise KeyError(event_id)
            self._apply_update(e, updates, now)
        self._notify()
        return e

    def delete_event(self, event_id: int) -> bool:
        with self._lock:
            removed = self._events.pop(event_id, None)
        if removed is not None:
            self._notify()
        return removed is not None

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
        self._notify()

    def import_events(self, records: Iterable[Mapping[str, Any]], now: Optional[datetime] = None) -> ImportResult:
        """
        CSV import: a record whose event name + college name (case-insensitive)
        matches an existing event updates it in place, anything else is inserted.
        """
        now = now or datetime.now()
        result = ImportResult()
        with self._lock:
            by_key = {e.key: e for e in self._events.values()}
            for data in records:
                name = str(_supplied(data, "event_name") or "")
                if len(name) < MIN_NAME_LENGTH:
                    result.skipped += 1
                    continue
                key = dedup_key(name, _supplied(data, "college_name"))
                existing = by_key.get(key)
                if existing is not None:
                    self._apply_update(existing, data, now)
                    result.updated += 1
                else:
                    by_key[key] = self._insert(data, now)
                    result.added += 1
        self.log.info("Import: %s added, %s updated, %s skipped", result.added, result.updated, result.skipped)
        self._notify()
        return result

    def bulk_import(
        self,
        records: Iterable[Mapping[str, Any]],
        overwrite: bool = False,
        now: Optional[datetime] = None,
    ) -> ImportResult:
        """
        Mirror records pulled from a remote copy. Matches on server_id, then on
        the name + college key. Incoming values win. With overwrite=True local
        events whose server_id is missing from the batch are deleted.
        """
        now = now or datetime.now()
        result = ImportResult()
        seen = set()
        with self._lock:
            by_server = {e.server_id: e for e in self._events.values() if e.server_id}
            by_key = {e.key: e for e in self._events.values()}
            for data in records:
                name = str(_supplied(data, "event_name") or "")
                if len(name) < MIN_NAME_LENGTH:
                    result.skipped += 1
                    continue
                incoming = Event.from_dict({k: v for k, v in data.items() if k != "id"})
                status = _supplied(data, "status")
                local = by_server.get(incoming.server_id) or by_key.get(incoming.key)
                if local is not None:
                    if not status and local.is_terminal:
                        status = local.status
                    incoming.id = local.id
                    result.updated += 1
                else:
                    incoming.id = self._next_id
                    self._next_id += 1
                    result.added += 1
                incoming.status = initial_status(incoming, now, status)
                incoming.priority_score = compute_score(incoming, now)
                self._events[incoming.id] = incoming
                by_server[incoming.server_id] = incoming
                by_key[incoming.key] = incoming
                seen.add(incoming.server_id)

            if overwrite:
                for e in list(self._events.values()):
                    if e.server_id and e.server_id not in seen:
                        del self._events[e.id]
                        result.deleted += 1
        self._notify()
        return result

    def refresh_statuses(self, now: Optional[datetime] = None) -> int:
        """
        Re-derive status and score for every non-terminal event.
        `now` is sampled once so the whole pass sees the same day.
        """
        now = now or datetime.now()
        changed = 0
        with self._lock:
            for e in self._events.values():
                if e.is_terminal:
                    continue
                if refresh_event(e, now):
                    changed += 1
        self.log.info("Status refresh: %s of %s events changed", changed, len(self._events))
        if changed:
            self._notify()
        return changed

class RefreshScheduler:
    """Runs EventStore.refresh_statuses every `interval_s` seconds on a daemon thread."""

    def __init__(self, store: EventStore, interval_s: float = 6 * 60 * 60, on_refresh: Optional[Callable[[int], None]] = None) -> None:
        self.store = store
        self.interval_s = interval_s
        self.on_refresh = on_refresh
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="event-refresh", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)

    def _run(self) -> None:
        # initial pass, then one per interval
        while True:
            try:
                changed = self.store.refresh_statuses()
                if self.on_refresh:
                    self.on_refresh(changed)
            except Exception:
                self.store.log.exception("Scheduled status refresh failed")
            if self._stop.wait(self.interval_s):
                return

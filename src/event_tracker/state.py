from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping

from event_tracker.core.models import Event

def _sortable(value: Any) -> datetime:
    # undated events sort last; aware and naive values compare by wall clock
    return value.replace(tzinfo=None) if value else datetime.max

SORT_KEYS: Dict[str, Callable[[Event], Any]] = {
    "priority_score": lambda e: e.priority_score,
    "deadline": lambda e: _sortable(e.registration_deadline),
    "start_date": lambda e: _sortable(e.start_date),
    "prize_amount": lambda e: e.prize_amount,
}

VIEW_MODES = ("cards", "list", "calendar")

@dataclass
class Filters:
    status: str = "all"
    event_type: str = "all"
    search: str = ""
    shortlisted_only: bool = False

    def matches(self, e: Event) -> bool:
        if self.status != "all" and e.status != self.status:
            return False
        if self.event_type != "all" and e.event_type != self.event_type:
            return False
        if self.shortlisted_only and not e.is_shortlisted:
            return False
        if self.search:
            needle = self.search.lower()
            haystack = " ".join((e.event_name, e.college_name, e.location, e.description)).lower()
            if needle not in haystack:
                return False
        return True

@dataclass
class AppState:
    """
    View state owned by whoever drives the UI/CLI and passed in explicitly.
    Persisted as the `state:` section of the YAML config.
    """
    theme: str = "light"
    view_mode: str = "cards"
    filters: Filters = field(default_factory=Filters)
    sort_by: str = "priority_score"
    sort_order: str = "desc"
    preferences: Dict[str, Any] = field(default_factory=lambda: {
        "auto_sync": True,
        "compact_view": False,
        "pinned_events": [],
    })

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "AppState":
        data = dict(data or {})
        filters = Filters(**{k: v for k, v in (data.pop("filters", None) or {}).items()
                             if k in Filters.__dataclass_fields__})
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        state = cls(filters=filters, **known)
        if state.sort_by not in SORT_KEYS:
            state.sort_by = "priority_score"
        if state.view_mode not in VIEW_MODES:
            state.view_mode = "cards"
        return state

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def toggle_theme(self) -> None:
        self.theme = "dark" if self.theme == "light" else "light"

    def reset_filters(self) -> None:
        self.filters = Filters()

    def toggle_pinned(self, event_id: int) -> None:
        pinned = list(self.preferences.get("pinned_events") or [])
        if event_id in pinned:
            pinned.remove(event_id)
        else:
            pinned.append(event_id)
        self.preferences["pinned_events"] = pinned

    def apply(self, events: Iterable[Event]) -> List[Event]:
        selected = [e for e in events if self.filters.matches(e)]
        key = SORT_KEYS.get(self.sort_by, SORT_KEYS["priority_score"])
        return sorted(selected, key=key, reverse=self.sort_order == "desc")

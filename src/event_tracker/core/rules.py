from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Any, Mapping, Optional, Union

from .models import TERMINAL_STATUSES, Event, EventStatus, EventType, plain, snake_key
from .utils import coerce_datetime, to_bool, to_float

ONE_DAY = timedelta(days=1)

CATEGORY_WEIGHTS = {
    EventType.HACKATHON.value: 20,
    EventType.PROJECT_EXPO.value: 18,
    EventType.CONTEST.value: 18,
    EventType.PAPER_PRESENTATION.value: 15,
    EventType.WORKSHOP.value: 12,
    EventType.CONFERENCE.value: 10,
    EventType.SEMINAR.value: 8,
    EventType.OTHER.value: 5,
}
DEFAULT_CATEGORY_WEIGHT = 5

# (minimum ratio, points), checked top-down
RATIO_TIERS = ((10, 30), (5, 20), (2, 10))

# (max days remaining, points)
URGENCY_TIERS = ((2, 25), (7, 20), (14, 15), (30, 10))
URGENCY_FLOOR = 5

# (minimum prize, points)
PRIZE_TIERS = ((100_000, 10), (50_000, 7), (10_000, 5))

EventLike = Union[Event, Mapping[str, Any]]

def is_terminal(status: Any) -> bool:
    return plain(status) in TERMINAL_STATUSES

def _align(value: datetime, now: datetime) -> datetime:
    # aware/aware compares in now's zone; naive/aware mixes compare wall clock
    if value.tzinfo is not None and now.tzinfo is not None:
        try:
            return value.astimezone(now.tzinfo)
        except OverflowError:
            # shifting past year 1 or 9999
            return value.replace(tzinfo=now.tzinfo)
    if value.tzinfo is not None:
        return value.replace(tzinfo=None)
    if now.tzinfo is not None:
        return value.replace(tzinfo=now.tzinfo)
    return value

def _day(value: datetime, now: datetime) -> date:
    return _align(value, now).date()

def derive_status(
    registration_deadline: Any,
    start_date: Any,
    end_date: Any,
    now: datetime,
) -> EventStatus:
    """
    Lifecycle status of an event on the calendar day of `now`.

    First match wins:
      now > end             -> Completed
      start <= now <= end   -> Attended
      now > deadline        -> Closed
      now == deadline       -> Deadline Today
      otherwise             -> Open

    Any date that does not parse yields Open.
    """
    deadline = coerce_datetime(registration_deadline)
    start = coerce_datetime(start_date)
    end = coerce_datetime(end_date)
    if deadline is None or start is None or end is None:
        return EventStatus.OPEN

    today = now.date()
    deadline_day = _day(deadline, now)
    start_day = _day(start, now)
    end_day = _day(end, now)

    if today > end_day:
        return EventStatus.COMPLETED
    if start_day <= today <= end_day:
        return EventStatus.ATTENDED
    if today > deadline_day:
        return EventStatus.CLOSED
    if today == deadline_day:
        return EventStatus.DEADLINE_TODAY
    return EventStatus.OPEN

def _get(event: EventLike, name: str) -> Any:
    if isinstance(event, Event):
        return getattr(event, name)
    if name in event:
        return event[name]
    for k, v in event.items():
        if snake_key(k) == name:
            return v
    return None

def value_ratio_points(prize: float, fee: float) -> int:
    if fee == 0 and prize > 0:
        return 30
    if fee > 0:
        ratio = prize / fee
        for minimum, points in RATIO_TIERS:
            if ratio >= minimum:
                return points
    return 0

def category_points(event_type: Any) -> int:
    return CATEGORY_WEIGHTS.get(plain(event_type), DEFAULT_CATEGORY_WEIGHT)

def urgency_points(days_remaining: int) -> int:
    for max_days, points in URGENCY_TIERS:
        if days_remaining <= max_days:
            return points
    return URGENCY_FLOOR

def mode_points(is_online: bool, accommodation: bool) -> int:
    if is_online:
        return 15
    return 10 if accommodation else 5

def prize_points(prize: float) -> int:
    for minimum, points in PRIZE_TIERS:
        if prize >= minimum:
            return points
    return 3 if prize > 0 else 0

def days_remaining(deadline: datetime, now: datetime) -> int:
    return math.ceil((_align(deadline, now) - now) / ONE_DAY)

def compute_score(event: EventLike, now: datetime) -> int:
    """
    Priority score 0..100: value ratio (30) + category (20) + urgency (25)
    + mode (15) + prize bonus (10). An unparseable deadline scores 0.
    """
    deadline = coerce_datetime(_get(event, "registration_deadline"))
    if deadline is None:
        return 0

    prize = to_float(_get(event, "prize_amount"))
    fee = to_float(_get(event, "registration_fee"))

    score = (
        value_ratio_points(prize, fee)
        + category_points(_get(event, "event_type"))
        + urgency_points(days_remaining(deadline, now))
        + mode_points(to_bool(_get(event, "is_online")), to_bool(_get(event, "accommodation")))
        + prize_points(prize)
    )
    return max(0, min(100, score))

def refresh_event(event: Event, now: datetime) -> bool:
    """Recompute status (unless terminal) and score in place. True if anything changed."""
    changed = False
    if not event.is_terminal:
        status = derive_status(event.registration_deadline, event.start_date, event.end_date, now).value
        if status != event.status:
            event.status = status
            changed = True
    score = compute_score(event, now)
    if score != event.priority_score:
        event.priority_score = score
        changed = True
    return changed

def initial_status(event: Event, now: datetime, supplied: Optional[str] = None) -> str:
    if supplied:
        return plain(supplied)
    return derive_status(event.registration_deadline, event.start_date, event.end_date, now).value
